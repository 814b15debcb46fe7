"""User/Role directory — resolves user ids to identity + role."""

import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.enums import UserRole
from src.fd_common.errors import UserDataIntegrityError
from src.fd_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    id: str
    role: UserRole
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class UserDirectoryProtocol(Protocol):
    async def get_user(self, db: AsyncSession, user_id: str) -> User | None: ...


def _parse_role(user_id: str, raw: str | None) -> UserRole:
    # Users created before roles existed carry NULL; they are customers.
    if not raw:
        return UserRole.CUSTOMER
    try:
        return UserRole(raw)
    except ValueError:
        logger.error("User %s has unrecognized role %r; refusing access", user_id, raw)
        raise UserDataIntegrityError(user_id, raw) from None


def user_from_model(model: UserModel) -> User:
    user_id = str(model.id)
    return User(
        id=user_id,
        role=_parse_role(user_id, model.role),
        email=model.email,
        first_name=model.first_name,
        last_name=model.last_name,
        phone=model.phone,
        is_active=model.is_active,
    )


class UserDirectory:
    async def get_user(self, db: AsyncSession, user_id: str) -> User | None:
        try:
            uid = uuid.UUID(str(user_id))
        except ValueError:
            return None
        result = await db.execute(select(UserModel).where(UserModel.id == uid))
        model = result.scalar_one_or_none()
        return user_from_model(model) if model else None
