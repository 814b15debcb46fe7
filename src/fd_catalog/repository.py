"""Read-only catalog collaborator: foods (price snapshot source) and addresses.

Menu and address CRUD live elsewhere; orders only read from here, once, at
creation time.
"""

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class Food:
    id: int
    name: str
    price: int  # kobo
    is_available: bool = True


@dataclass(frozen=True)
class Address:
    id: int
    user_id: str
    name: str
    address: str


class CatalogProtocol(Protocol):
    async def get_food(self, db: AsyncSession, food_id: int) -> Food | None: ...

    async def get_address(self, db: AsyncSession, address_id: int) -> Address | None: ...


_GET_FOOD_SQL = text("""
    SELECT id, name, price, is_available FROM foods WHERE id = :id
""")

_GET_ADDRESS_SQL = text("""
    SELECT id, user_id, name, address FROM addresses WHERE id = :id
""")


class CatalogRepository:
    async def get_food(self, db: AsyncSession, food_id: int) -> Food | None:
        row = (await db.execute(_GET_FOOD_SQL, {"id": food_id})).fetchone()
        if row is None:
            return None
        return Food(id=row.id, name=row.name, price=row.price, is_available=row.is_available)

    async def get_address(self, db: AsyncSession, address_id: int) -> Address | None:
        row = (await db.execute(_GET_ADDRESS_SQL, {"id": address_id})).fetchone()
        if row is None:
            return None
        return Address(id=row.id, user_id=row.user_id, name=row.name, address=row.address)
