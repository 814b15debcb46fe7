"""OrderRepository — raw SQL persistence implementation.

Transaction ownership: the CALLER (OrderService) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.errors import InternalError
from src.fd_order.domain.models import Order, OrderItem

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, customer_id, address_id, rider_id, total, status,
    payment_method, payment_status, delivery_code, delivery_time,
    created_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (customer_id, address_id, total, status,
        payment_method, payment_status)
    VALUES (:customer_id, :address_id, :total, :status,
        :payment_method, :payment_status)
    RETURNING {_SELECT_COLUMNS}
""")

_INSERT_ITEM_SQL = text("""
    INSERT INTO order_items (order_id, food_id, quantity, unit_price)
    VALUES (:order_id, :food_id, :quantity, :unit_price)
    RETURNING id
""")

_GET_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_LOCK_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
    FOR UPDATE
""")

_GET_ITEMS_SQL = text("""
    SELECT id, order_id, food_id, quantity, unit_price
    FROM order_items
    WHERE order_id = ANY(:order_ids)
    ORDER BY id
""")

# delivered is the only status that stamps delivery_time; COALESCE keeps it
# untouched for every other update.
_UPDATE_STATUS_SQL = text("""
    UPDATE orders
    SET status = :status,
        delivery_time = COALESCE(:delivery_time, delivery_time),
        updated_at = NOW()
    WHERE id = :id
""")

_UPDATE_PAYMENT_STATUS_SQL = text("""
    UPDATE orders
    SET payment_status = :payment_status, updated_at = NOW()
    WHERE id = :id
""")

# delivery_code is set once; a re-assignment keeps the existing code.
_ASSIGN_RIDER_SQL = text("""
    UPDATE orders
    SET rider_id = :rider_id,
        delivery_code = COALESCE(delivery_code, :delivery_code),
        updated_at = NOW()
    WHERE id = :id
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE (CAST(:customer_id AS TEXT) IS NULL OR customer_id = :customer_id)
      AND (CAST(:rider_id AS TEXT) IS NULL OR rider_id = :rider_id)
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS INTEGER) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    return Order(
        id=row.id,
        customer_id=row.customer_id,
        address_id=row.address_id,
        rider_id=row.rider_id,
        total=row.total,
        status=row.status,
        payment_method=row.payment_method,
        payment_status=row.payment_status,
        delivery_code=row.delivery_code,
        delivery_time=row.delivery_time,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_item(row: Any) -> OrderItem:
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        food_id=row.food_id,
        quantity=row.quantity,
        unit_price=row.unit_price,
    )


class OrderRepository:
    async def save(self, db: AsyncSession, order: Order) -> Order:
        row = (
            await db.execute(
                _INSERT_ORDER_SQL,
                {
                    "customer_id": order.customer_id,
                    "address_id": order.address_id,
                    "total": order.total,
                    "status": order.status,
                    "payment_method": order.payment_method,
                    "payment_status": order.payment_status,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Order insert returned no rows")
        saved = _row_to_order(row)
        for item in order.items:
            item_id = (
                await db.execute(
                    _INSERT_ITEM_SQL,
                    {
                        "order_id": saved.id,
                        "food_id": item.food_id,
                        "quantity": item.quantity,
                        "unit_price": item.unit_price,
                    },
                )
            ).scalar_one()
            saved.items.append(
                OrderItem(
                    id=item_id,
                    order_id=saved.id,
                    food_id=item.food_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
            )
        return saved

    async def get_by_id(self, db: AsyncSession, order_id: int) -> Order | None:
        row = (await db.execute(_GET_ORDER_SQL, {"id": order_id})).fetchone()
        if row is None:
            return None
        order = _row_to_order(row)
        await self._attach_items(db, [order])
        return order

    async def get_for_update(self, db: AsyncSession, order_id: int) -> Order | None:
        row = (await db.execute(_LOCK_ORDER_SQL, {"id": order_id})).fetchone()
        if row is None:
            return None
        order = _row_to_order(row)
        await self._attach_items(db, [order])
        return order

    async def update_status(
        self,
        db: AsyncSession,
        order_id: int,
        status: str,
        delivery_time: datetime | None = None,
    ) -> None:
        await db.execute(
            _UPDATE_STATUS_SQL,
            {"id": order_id, "status": status, "delivery_time": delivery_time},
        )

    async def update_payment_status(
        self, db: AsyncSession, order_id: int, payment_status: str
    ) -> None:
        await db.execute(
            _UPDATE_PAYMENT_STATUS_SQL, {"id": order_id, "payment_status": payment_status}
        )

    async def assign_rider(
        self, db: AsyncSession, order_id: int, rider_id: str, delivery_code: str
    ) -> None:
        await db.execute(
            _ASSIGN_RIDER_SQL,
            {"id": order_id, "rider_id": rider_id, "delivery_code": delivery_code},
        )

    async def list_orders(
        self,
        db: AsyncSession,
        customer_id: str | None,
        rider_id: str | None,
        status: str | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "customer_id": customer_id,
                "rider_id": rider_id,
                "status": status,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        orders = [_row_to_order(row) for row in result.fetchall()]
        await self._attach_items(db, orders)
        return orders

    async def _attach_items(self, db: AsyncSession, orders: list[Order]) -> None:
        if not orders:
            return
        by_id = {o.id: o for o in orders}
        result = await db.execute(_GET_ITEMS_SQL, {"order_ids": list(by_id)})
        for row in result.fetchall():
            by_id[row.order_id].items.append(_row_to_item(row))
