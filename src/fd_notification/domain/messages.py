"""User-facing notification copy for order and wallet events."""

from src.fd_common.enums import OrderStatus

_ORDER_STATUS_COPY: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.CONFIRMED: (
        "Order Confirmed",
        "Your order #{order_id} has been confirmed and is being prepared.",
    ),
    OrderStatus.PREPARING: (
        "Order Being Prepared",
        "Your order #{order_id} is being prepared by our kitchen.",
    ),
    OrderStatus.READY: (
        "Order Ready",
        "Your order #{order_id} is ready for pickup by our rider.",
    ),
    OrderStatus.PICKED_UP: (
        "Order Picked Up",
        "Your order #{order_id} has been picked up by your rider.",
    ),
    OrderStatus.OUT_FOR_DELIVERY: (
        "Out for Delivery",
        "Your order #{order_id} is on its way to you!",
    ),
    OrderStatus.DELIVERED: (
        "Order Delivered",
        "Your order #{order_id} has been delivered successfully.",
    ),
    OrderStatus.CANCELLED: (
        "Order Cancelled",
        "Your order #{order_id} has been cancelled.",
    ),
}


def order_status_copy(order_id: int, status: OrderStatus) -> tuple[str, str]:
    title, template = _ORDER_STATUS_COPY.get(
        status, ("Order Update", "Your order #{order_id} status has been updated.")
    )
    return title, template.format(order_id=order_id)


def rider_status_copy(order_id: int, status: OrderStatus) -> tuple[str, str]:
    return (
        "Delivery Update",
        f"Order #{order_id} is now {status.value.replace('_', ' ')}.",
    )


def order_placed_copy(order_id: int) -> tuple[str, str]:
    return "Order Placed", f"Your order #{order_id} has been placed and is awaiting confirmation."


def rider_assignment_copy(order_id: int) -> tuple[str, str]:
    return "New Delivery Assignment", f"You have been assigned to deliver order #{order_id}."


def rider_assigned_copy(order_id: int) -> tuple[str, str]:
    return "Rider Assigned", f"A rider has been assigned to your order #{order_id}."
