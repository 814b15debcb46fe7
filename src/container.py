"""Application service wiring.

The services hold process-wide state (per-wallet and per-order locks, the
notification gateway), so exactly one instance of each exists per app. main.py
builds them and stores them on `app.state.services`; routers reach them through
the `get_services` dependency, which tests override.
"""

from dataclasses import dataclass

from fastapi import Request

from src.fd_notification.domain.gateway import NotificationGatewayProtocol
from src.fd_order.application.delivery import DeliveryAttemptLimiter, DeliveryVerifier
from src.fd_order.application.service import OrderService
from src.fd_wallet.application.ledger import WalletLedger
from src.fd_wallet.application.topup import TopupReconciler


@dataclass
class Services:
    ledger: WalletLedger
    topups: TopupReconciler
    orders: OrderService
    delivery: DeliveryVerifier


def build_services(notifier: NotificationGatewayProtocol | None = None) -> Services:
    ledger = WalletLedger(notifier=notifier)
    orders = OrderService(ledger=ledger, notifier=notifier)
    return Services(
        ledger=ledger,
        topups=TopupReconciler(ledger=ledger),
        orders=orders,
        delivery=DeliveryVerifier(orders=orders, limiter=DeliveryAttemptLimiter()),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
