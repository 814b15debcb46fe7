"""Direct-SQL seeding for integration tests.

Login lives outside this backend, so users are inserted directly and their
bearer tokens minted with the shared JWT secret.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import text

from src.fd_common.database import async_session_factory
from src.fd_gateway.auth.jwt_handler import create_access_token


@dataclass
class Actor:
    id: str
    role: str
    headers: dict[str, str]


@dataclass
class Catalog:
    food_id: int
    food_price: int
    address_id: int


async def create_actor(role: str) -> Actor:
    uid = uuid.uuid4().hex[:8]
    async with async_session_factory() as db:
        async with db.begin():
            user_id = (
                await db.execute(
                    text("""
                        INSERT INTO users (first_name, last_name, email, role)
                        VALUES (:first, 'Test', :email, :role)
                        RETURNING id
                    """),
                    {"first": f"{role}_{uid}", "email": f"{role}_{uid}@example.com", "role": role},
                )
            ).scalar_one()
    token = create_access_token(str(user_id), role)
    return Actor(id=str(user_id), role=role, headers={"Authorization": f"Bearer {token}"})


async def create_catalog(customer_id: str, price: int = 2500) -> Catalog:
    async with async_session_factory() as db:
        async with db.begin():
            food_id = (
                await db.execute(
                    text("INSERT INTO foods (name, price) VALUES ('Jollof Rice', :price) RETURNING id"),
                    {"price": price},
                )
            ).scalar_one()
            address_id = (
                await db.execute(
                    text("""
                        INSERT INTO addresses (user_id, name, address)
                        VALUES (:user_id, 'Home', '12 Allen Avenue, Ikeja')
                        RETURNING id
                    """),
                    {"user_id": customer_id},
                )
            ).scalar_one()
    return Catalog(food_id=food_id, food_price=price, address_id=address_id)
