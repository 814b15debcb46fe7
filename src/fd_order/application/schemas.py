"""Pydantic request/response schemas for the fd_order API.

OrderResponse never carries the delivery code: only the owning customer can
read it, through its own endpoint, so a rider cannot learn it from an order
listing.
"""

from pydantic import BaseModel, Field

from src.fd_common.enums import OrderStatus, PaymentMethod
from src.fd_common.money import kobo_to_display
from src.fd_order.domain.models import Order, OrderItem

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class OrderItemRequest(BaseModel):
    food_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0, le=100)


class CreateOrderRequest(BaseModel):
    address_id: int = Field(..., gt=0)
    items: list[OrderItemRequest] = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.WALLET


class ChangeStatusRequest(BaseModel):
    # Free string: an unknown status must reach the state machine and be
    # rejected there, not by request parsing.
    status: str = Field(..., min_length=1, max_length=32)


class AssignRiderRequest(BaseModel):
    rider_id: str = Field(..., min_length=1, max_length=64)


class VerifyDeliveryRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderItemResponse(BaseModel):
    food_id: int
    quantity: int
    unit_price_kobo: int
    line_total_kobo: int

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(
            food_id=item.food_id,
            quantity=item.quantity,
            unit_price_kobo=item.unit_price,
            line_total_kobo=item.line_total,
        )


class OrderResponse(BaseModel):
    id: int
    customer_id: str
    address_id: int
    rider_id: str | None
    status: str
    total_kobo: int
    total_display: str
    payment_method: str
    payment_status: str
    has_delivery_code: bool
    delivery_time: str | None
    created_at: str
    items: list[OrderItemResponse]

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id or 0,
            customer_id=order.customer_id,
            address_id=order.address_id,
            rider_id=order.rider_id,
            status=order.status,
            total_kobo=order.total,
            total_display=kobo_to_display(order.total),
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            has_delivery_code=order.delivery_code is not None,
            delivery_time=order.delivery_time.isoformat() if order.delivery_time else None,
            created_at=order.created_at.isoformat() if order.created_at else "",
            items=[OrderItemResponse.from_item(i) for i in order.items],
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


class DeliveryCodeResponse(BaseModel):
    order_id: int
    delivery_code: str
    status: OrderStatus


class VerifyDeliveryResponse(BaseModel):
    order_id: int
    verified: bool
