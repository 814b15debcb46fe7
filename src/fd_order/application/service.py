"""OrderService — the only writer of order status.

Every status change runs under the per-order asyncio lock and a
SELECT ... FOR UPDATE on the order row, so load → validate → write is atomic
per order. When a change moves money (confirming an unpaid wallet order,
cancelling a paid one) the wallet lock is taken second and the ledger posting
shares the order's transaction: either both commit or neither does.

Lock order is always order → wallet.
"""

import logging
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager, AsyncExitStack

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_catalog.repository import CatalogProtocol, CatalogRepository
from src.fd_common.datetime_utils import utc_now
from src.fd_common.enums import (
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    UserRole,
)
from src.fd_common.errors import (
    AddressNotFoundError,
    DeliveryCodeUnavailableError,
    FoodNotFoundError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidOrderStateError,
    InvalidTransitionError,
    OrderDataIntegrityError,
    OrderNotFoundError,
    RiderNotFoundError,
    ValidationError,
)
from src.fd_common.locks import KeyedLocks
from src.fd_common.references import new_delivery_code
from src.fd_gateway.user.directory import User, UserDirectory, UserDirectoryProtocol
from src.fd_notification.domain.gateway import NotificationGatewayProtocol
from src.fd_notification.domain.messages import (
    order_placed_copy,
    order_status_copy,
    rider_assigned_copy,
    rider_assignment_copy,
    rider_status_copy,
)
from src.fd_notification.service import BestEffortNotifier, NullNotificationGateway
from src.fd_order.application.schemas import (
    DeliveryCodeResponse,
    OrderListResponse,
    OrderResponse,
)
from src.fd_order.domain.models import Order, OrderItem
from src.fd_order.domain.repository import OrderRepositoryProtocol
from src.fd_order.domain.state_machine import can_request, has_edge, parse_status
from src.fd_order.infrastructure.persistence import OrderRepository
from src.fd_wallet.application.ledger import WalletLedger
from src.fd_wallet.application.schemas import cursor_decode, cursor_encode
from src.fd_wallet.domain.models import LedgerPosting

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(
        self,
        ledger: WalletLedger,
        repo: OrderRepositoryProtocol | None = None,
        catalog: CatalogProtocol | None = None,
        directory: UserDirectoryProtocol | None = None,
        notifier: NotificationGatewayProtocol | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._ledger = ledger
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._catalog: CatalogProtocol = catalog or CatalogRepository()
        self._directory: UserDirectoryProtocol = directory or UserDirectory()
        self._notifier = BestEffortNotifier(notifier or NullNotificationGateway())
        self._locks = locks or KeyedLocks()

    def order_lock(self, order_id: int) -> AbstractAsyncContextManager[None]:
        return self._locks.hold(order_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(
        self,
        db: AsyncSession,
        customer_id: str,
        address_id: int,
        items: Sequence[tuple[int, int]],
        payment_method: str = PaymentMethod.WALLET.value,
    ) -> Order:
        """Place an order from (food_id, quantity) pairs.

        Prices are snapshotted from the catalog now and never re-read. A wallet
        order is debited and confirmed in the same transaction as the insert;
        if the debit fails nothing of the order survives.
        """
        if not items:
            raise ValidationError("Order must contain at least one item")
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {payment_method}") from None

        address = await self._catalog.get_address(db, address_id)
        if address is None or address.user_id != customer_id:
            raise AddressNotFoundError(address_id)

        lines: list[OrderItem] = []
        for food_id, quantity in items:
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValidationError(f"Quantity for food {food_id} must be a positive integer")
            food = await self._catalog.get_food(db, food_id)
            if food is None:
                raise FoodNotFoundError(food_id)
            if not food.is_available:
                raise ValidationError(f"{food.name} is currently unavailable")
            lines.append(OrderItem(food_id=food.id, quantity=quantity, unit_price=food.price))
        total = sum(line.line_total for line in lines)
        if total <= 0:
            raise ValidationError("Order total must be positive")

        if method is PaymentMethod.WALLET:
            check = await self._ledger.check_sufficient_balance(db, customer_id, total)
            if not check.sufficient:
                raise InsufficientFundsError(required=total, balance=check.current_balance_kobo)

        posting: LedgerPosting | None = None
        async with AsyncExitStack() as stack:
            if method is PaymentMethod.WALLET:
                await stack.enter_async_context(self._ledger.wallet_lock(customer_id))
            try:
                order = await self._repo.save(
                    db,
                    Order(
                        id=None,
                        customer_id=customer_id,
                        address_id=address_id,
                        total=total,
                        status=OrderStatus.PLACED.value,
                        payment_method=method.value,
                        payment_status=PaymentStatus.UNPAID.value,
                        items=lines,
                    ),
                )
                if method is PaymentMethod.WALLET:
                    posting = await self._ledger.apply_debit(
                        db, customer_id, total, order_id=order.id
                    )
                    await self._repo.update_status(db, order.id, OrderStatus.CONFIRMED.value)
                    await self._repo.update_payment_status(db, order.id, PaymentStatus.PAID.value)
                    order.status = OrderStatus.CONFIRMED.value
                    order.payment_status = PaymentStatus.PAID.value
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Order %s created: customer=%s total=%d method=%s status=%s",
            order.id, customer_id, total, method.value, order.status,
        )
        if posting is not None:
            await self._ledger.announce_debit(customer_id, posting)
            title, message = order_status_copy(order.id, OrderStatus.CONFIRMED)
        else:
            title, message = order_placed_copy(order.id)
        await self._notifier.notify(
            customer_id, NotificationType.ORDER, title, message, order_id=order.id
        )
        await self._notifier.push_realtime(
            customer_id, "order_status_updated", {"orderId": order.id, "status": order.status}
        )
        return order

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def change_status(
        self, db: AsyncSession, order_id: int, target_status: str, actor: User
    ) -> Order:
        target = parse_status(target_status)
        if target is None:
            raise ValidationError(f"Unknown order status: {target_status}")

        posting: LedgerPosting | None = None
        async with self.order_lock(order_id), AsyncExitStack() as stack:
            try:
                order = await self._repo.get_for_update(db, order_id)
                if order is None:
                    raise OrderNotFoundError(order_id)
                if not can_request(actor.role, target):
                    raise ForbiddenError(
                        f"Role {actor.role.value} cannot set status {target.value}"
                    )
                self._check_actor_scope(order, actor)

                current = parse_status(order.status)
                if current is None:
                    logger.error(
                        "Order %s has unrecognized status %r; refusing transition to %s",
                        order_id, order.status, target.value,
                    )
                    raise OrderDataIntegrityError(order_id, order.status)
                if not has_edge(current, target):
                    raise InvalidTransitionError(current.value, target.value)

                if self._needs_debit(order, target) or self._needs_refund(order, target):
                    await stack.enter_async_context(self._ledger.wallet_lock(order.customer_id))
                    posting = await self._settle_payment(db, order, target)

                delivery_time = utc_now() if target is OrderStatus.DELIVERED else None
                await self._repo.update_status(db, order_id, target.value, delivery_time)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        order.status = target.value
        if delivery_time is not None:
            order.delivery_time = delivery_time
        logger.info(
            "Order %s: %s -> %s by %s %s",
            order_id, current.value, target.value, actor.role.value, actor.id,
        )
        await self._announce_status(order, target, posting)
        return order

    async def assign_rider(self, db: AsyncSession, order_id: int, rider_id: str) -> Order:
        async with self.order_lock(order_id):
            try:
                order = await self._repo.get_for_update(db, order_id)
                if order is None:
                    raise OrderNotFoundError(order_id)
                rider = await self._directory.get_user(db, rider_id)
                if rider is None:
                    raise RiderNotFoundError(rider_id)
                if not order.can_assign_rider:
                    raise InvalidOrderStateError(
                        f"Cannot assign a rider to order {order_id} in status {order.status}"
                    )
                if rider.role is not UserRole.RIDER:
                    raise ForbiddenError(f"User {rider_id} is not a rider")

                code = order.delivery_code or new_delivery_code()
                await self._repo.assign_rider(db, order_id, rider.id, code)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        order.rider_id = rider.id
        order.delivery_code = code
        logger.info("Order %s assigned to rider %s", order_id, rider.id)

        title, message = rider_assignment_copy(order_id)
        await self._notifier.notify(
            rider.id, NotificationType.DELIVERY, title, message, order_id=order_id
        )
        await self._notifier.push_realtime(rider.id, "rider_assigned", {"orderId": order_id})
        title, message = rider_assigned_copy(order_id)
        await self._notifier.notify(
            order.customer_id, NotificationType.ORDER, title, message, order_id=order_id
        )
        await self._notifier.push_realtime(
            order.customer_id,
            "order_status_updated",
            {"orderId": order_id, "status": order.status, "riderId": rider.id},
        )
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def find_order(self, db: AsyncSession, order_id: int) -> Order:
        order = await self._repo.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_order(self, db: AsyncSession, order_id: int, user: User) -> Order:
        order = await self.find_order(db, order_id)
        self._check_actor_scope(order, user)
        return order

    async def get_delivery_code(
        self, db: AsyncSession, order_id: int, customer_id: str
    ) -> DeliveryCodeResponse:
        order = await self.find_order(db, order_id)
        if order.customer_id != customer_id:
            raise ForbiddenError("You can only view delivery codes for your own orders")
        if not order.delivery_code_visible:
            raise DeliveryCodeUnavailableError()
        return DeliveryCodeResponse(
            order_id=order_id,
            delivery_code=order.delivery_code,
            status=OrderStatus(order.status),
        )

    async def list_orders(
        self,
        db: AsyncSession,
        user: User,
        cursor: str | None,
        limit: int,
        status: str | None = None,
    ) -> OrderListResponse:
        if status is not None and parse_status(status) is None:
            raise ValidationError(f"Unknown order status: {status}")
        customer_id = user.id if user.role is UserRole.CUSTOMER else None
        rider_id = user.id if user.role is UserRole.RIDER else None

        orders = await self._repo.list_orders(
            db, customer_id, rider_id, status, cursor_decode(cursor), limit + 1
        )
        has_more = len(orders) > limit
        page = orders[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page and page[-1].id else None
        return OrderListResponse(
            items=[OrderResponse.from_order(o) for o in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_actor_scope(order: Order, actor: User) -> None:
        if actor.role is UserRole.CUSTOMER and order.customer_id != actor.id:
            raise ForbiddenError("You can only access your own orders")
        if actor.role is UserRole.RIDER and order.rider_id != actor.id:
            raise ForbiddenError("This order is not assigned to you")

    @staticmethod
    def _needs_debit(order: Order, target: OrderStatus) -> bool:
        return (
            target is OrderStatus.CONFIRMED
            and order.payment_method == PaymentMethod.WALLET.value
            and order.payment_status == PaymentStatus.UNPAID.value
        )

    @staticmethod
    def _needs_refund(order: Order, target: OrderStatus) -> bool:
        return target is OrderStatus.CANCELLED and order.is_wallet_paid

    async def _settle_payment(
        self, db: AsyncSession, order: Order, target: OrderStatus
    ) -> LedgerPosting:
        if self._needs_debit(order, target):
            posting = await self._ledger.apply_debit(
                db, order.customer_id, order.total, order_id=order.id
            )
            new_status = PaymentStatus.PAID
        else:
            posting = await self._ledger.apply_credit(
                db,
                order.customer_id,
                order.total,
                f"Refund for cancelled Order #{order.id}",
                order_id=order.id,
            )
            new_status = PaymentStatus.REFUNDED
        await self._repo.update_payment_status(db, order.id, new_status.value)
        order.payment_status = new_status.value
        return posting

    async def _announce_status(
        self, order: Order, target: OrderStatus, posting: LedgerPosting | None
    ) -> None:
        if posting is not None:
            if order.payment_status == PaymentStatus.REFUNDED.value:
                await self._ledger.announce_credit(order.customer_id, posting)
            else:
                await self._ledger.announce_debit(order.customer_id, posting)

        payload = {"orderId": order.id, "status": target.value}
        title, message = order_status_copy(order.id, target)
        await self._notifier.notify(
            order.customer_id, NotificationType.ORDER, title, message, order_id=order.id
        )
        await self._notifier.push_realtime(order.customer_id, "order_status_updated", payload)
        if order.rider_id:
            title, message = rider_status_copy(order.id, target)
            await self._notifier.notify(
                order.rider_id, NotificationType.DELIVERY, title, message, order_id=order.id
            )
            await self._notifier.push_realtime(order.rider_id, "order_status_updated", payload)
