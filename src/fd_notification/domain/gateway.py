"""Notification Gateway Protocol — injected into the order and wallet services.

Implementations own their persistence (a notification is written in its own
session, never in the caller's money/order transaction) and their transport.
"""

from typing import Any, Protocol

from src.fd_common.enums import NotificationType


class NotificationGatewayProtocol(Protocol):
    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        order_id: int | None = None,
    ) -> None: ...

    async def push_realtime(
        self, user_id: str, event_type: str, payload: dict[str, Any]
    ) -> None: ...
