"""OrderRepository Protocol — interface contract for persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def save(self, db: AsyncSession, order: Order) -> Order:
        """Insert order + items; returns the order with ids and timestamps set."""
        ...

    async def get_by_id(self, db: AsyncSession, order_id: int) -> Order | None: ...

    async def get_for_update(self, db: AsyncSession, order_id: int) -> Order | None:
        """Read the order row holding a row lock until the transaction ends."""
        ...

    async def update_status(
        self,
        db: AsyncSession,
        order_id: int,
        status: str,
        delivery_time: datetime | None = None,
    ) -> None: ...

    async def update_payment_status(
        self, db: AsyncSession, order_id: int, payment_status: str
    ) -> None: ...

    async def assign_rider(
        self, db: AsyncSession, order_id: int, rider_id: str, delivery_code: str
    ) -> None: ...

    async def list_orders(
        self,
        db: AsyncSession,
        customer_id: str | None,
        rider_id: str | None,
        status: str | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[Order]:
        """Newest first. None filters are not applied."""
        ...
