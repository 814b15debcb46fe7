"""Notification Gateway implementations.

NotificationService   — persists the notification, then pushes it over the
                        realtime registry together with the unread count.
BestEffortNotifier    — wraps any gateway; failures are logged, never raised.
                        The order and wallet services only ever see this wrapper.
"""

import logging
from typing import Any

from src.fd_common.enums import NotificationType
from src.fd_notification.domain.gateway import NotificationGatewayProtocol
from src.fd_notification.infrastructure.registry import ConnectionRegistry
from src.fd_notification.infrastructure.store import NotificationStore

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(
        self, registry: ConnectionRegistry, store: NotificationStore | None = None
    ) -> None:
        self._registry = registry
        self._store = store or NotificationStore()

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        order_id: int | None = None,
    ) -> None:
        record = await self._store.insert(user_id, type.value, title, message, order_id)
        await self._registry.send(user_id, {"type": "notification", "data": record})
        unread = await self._store.unread_count(user_id)
        await self.push_realtime(user_id, "notifications_updated", {"unreadCount": unread})

    async def push_realtime(
        self, user_id: str, event_type: str, payload: dict[str, Any]
    ) -> None:
        await self._registry.send(user_id, {"type": event_type, "data": payload})


class BestEffortNotifier:
    """Fire-and-forget facade: side-channel failures never fail the caller."""

    def __init__(self, gateway: NotificationGatewayProtocol) -> None:
        self._gateway = gateway

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        order_id: int | None = None,
    ) -> None:
        try:
            await self._gateway.notify(user_id, type, title, message, order_id)
        except Exception:
            logger.exception("Notification %r for user %s failed", title, user_id)

    async def push_realtime(
        self, user_id: str, event_type: str, payload: dict[str, Any]
    ) -> None:
        try:
            await self._gateway.push_realtime(user_id, event_type, payload)
        except Exception:
            logger.exception("Realtime %s push for user %s failed", event_type, user_id)


class NullNotificationGateway:
    """Gateway that drops everything — default for scripts and tests."""

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        order_id: int | None = None,
    ) -> None:
        return None

    async def push_realtime(
        self, user_id: str, event_type: str, payload: dict[str, Any]
    ) -> None:
        return None
