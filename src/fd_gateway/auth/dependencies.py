"""FastAPI dependencies: get_current_user and role guards.

Usage in any protected router:
    from src.fd_gateway.auth.dependencies import get_current_user, require_role

    @router.post("/admin/thing")
    async def thing(user: Annotated[User, Depends(require_role(UserRole.ADMIN))]):
        ...
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.database import get_db_session
from src.fd_common.enums import UserRole
from src.fd_common.errors import AccountDisabledError, ForbiddenError, InvalidCredentialsError
from src.fd_gateway.auth.jwt_handler import decode_access_token
from src.fd_gateway.user.directory import User, UserDirectory

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)

_directory = UserDirectory()


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Validate the Bearer token and return the acting user with their stored role.

    Raises HTTP 401 if the token is missing, invalid, expired, or names an unknown user.
    Raises AccountDisabledError (403) if the user is disabled.
    """
    try:
        payload = decode_access_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id = payload.get("sub")
    if not user_id:
        raise _CREDENTIALS_EXCEPTION

    user = await _directory.get_user(db, user_id)
    if user is None:
        raise _CREDENTIALS_EXCEPTION
    if not user.is_active:
        raise AccountDisabledError()
    return user


def require_role(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """Build a dependency that admits only users holding one of `roles`."""
    allowed = frozenset(roles)

    async def _guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            names = ", ".join(sorted(r.value for r in allowed))
            raise ForbiddenError(f"Forbidden: {names} access required")
        return current_user

    return _guard
