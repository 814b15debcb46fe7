"""Order domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

# Statuses in which a delivery code may be assigned (rider assignment window).
ASSIGNABLE_STATUSES = frozenset({"confirmed", "preparing", "ready"})

# Statuses in which the customer may see the delivery code.
CODE_VISIBLE_STATUSES = frozenset(
    {"confirmed", "preparing", "ready", "picked_up", "out_for_delivery"}
)


@dataclass
class OrderItem:
    food_id: int
    quantity: int
    unit_price: int          # kobo, snapshot at order time
    id: int | None = None
    order_id: int | None = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass
class Order:
    id: int | None           # SERIAL, None until inserted
    customer_id: str
    address_id: int
    total: int               # kobo, immutable after creation
    status: str = "placed"
    payment_method: str = "wallet"
    payment_status: str = "unpaid"
    rider_id: str | None = None
    delivery_code: str | None = None
    delivery_time: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItem] = field(default_factory=list)

    @property
    def is_wallet_paid(self) -> bool:
        return self.payment_method == "wallet" and self.payment_status == "paid"

    @property
    def can_assign_rider(self) -> bool:
        return self.status in ASSIGNABLE_STATUSES

    @property
    def delivery_code_visible(self) -> bool:
        return self.delivery_code is not None and self.status in CODE_VISIBLE_STATUSES
