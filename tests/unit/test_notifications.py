"""Unit tests for the notification side channel."""

import logging
from typing import Any

import pytest

from src.fd_common.enums import NotificationType, OrderStatus
from src.fd_notification.domain.messages import order_status_copy, rider_status_copy
from src.fd_notification.infrastructure.registry import ConnectionRegistry
from src.fd_notification.service import BestEffortNotifier, NotificationService
from tests.unit.fakes import FailingNotifier, RecordingNotifier


class _Socket:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.received: list[dict[str, Any]] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionResetError("client went away")
        self.received.append(message)


class _Store:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []

    async def insert(self, user_id, type, title, message, order_id) -> dict[str, Any]:
        row = {"id": len(self.rows) + 1, "user_id": user_id, "type": type,
               "title": title, "message": message, "order_id": order_id, "is_read": False}
        self.rows.append(row)
        return row

    async def unread_count(self, user_id: str) -> int:
        return sum(1 for r in self.rows if r["user_id"] == user_id and not r["is_read"])


class TestConnectionRegistry:
    async def test_send_to_all_connections(self) -> None:
        registry = ConnectionRegistry()
        phone, laptop = _Socket(), _Socket()
        registry.register("u1", phone)
        registry.register("u1", laptop)

        delivered = await registry.send("u1", {"type": "ping"})

        assert delivered == 2
        assert phone.received == laptop.received == [{"type": "ping"}]

    async def test_no_connections(self) -> None:
        assert await ConnectionRegistry().send("nobody", {"type": "ping"}) == 0

    async def test_dead_connection_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        registry = ConnectionRegistry()
        alive, dead = _Socket(), _Socket(fail=True)
        registry.register("u1", alive)
        registry.register("u1", dead)

        with caplog.at_level(logging.WARNING):
            delivered = await registry.send("u1", {"type": "ping"})

        assert delivered == 1
        assert registry.connection_count("u1") == 1
        assert "Dropping dead realtime connection" in caplog.text

    def test_unregister_last_connection(self) -> None:
        registry = ConnectionRegistry()
        sock = _Socket()
        registry.register("u1", sock)
        registry.unregister("u1", sock)
        registry.unregister("u1", sock)
        assert registry.connection_count("u1") == 0


class TestNotificationService:
    async def test_persists_then_pushes_with_unread_count(self) -> None:
        registry = ConnectionRegistry()
        sock = _Socket()
        registry.register("u1", sock)
        store = _Store()
        service = NotificationService(registry, store)  # type: ignore[arg-type]

        await service.notify("u1", NotificationType.ORDER, "Order Confirmed", "msg", order_id=3)

        assert store.rows[0]["type"] == "order"
        assert store.rows[0]["order_id"] == 3
        assert [m["type"] for m in sock.received] == ["notification", "notifications_updated"]
        assert sock.received[1]["data"] == {"unreadCount": 1}

    async def test_push_realtime_envelope(self) -> None:
        registry = ConnectionRegistry()
        sock = _Socket()
        registry.register("u1", sock)
        service = NotificationService(registry, _Store())  # type: ignore[arg-type]

        await service.push_realtime("u1", "wallet_debited", {"amount": 100})

        assert sock.received == [{"type": "wallet_debited", "data": {"amount": 100}}]


class TestBestEffortNotifier:
    async def test_forwards_calls(self) -> None:
        inner = RecordingNotifier()
        notifier = BestEffortNotifier(inner)
        await notifier.notify("u1", NotificationType.PAYMENT, "t", "m", order_id=1)
        await notifier.push_realtime("u1", "evt", {})
        assert inner.titles_for("u1") == ["t"]
        assert inner.events_for("u1") == ["evt"]

    async def test_swallows_and_logs_failures(self, caplog: pytest.LogCaptureFixture) -> None:
        notifier = BestEffortNotifier(FailingNotifier())
        with caplog.at_level(logging.ERROR):
            await notifier.notify("u1", NotificationType.SYSTEM, "Hello", "m")
            await notifier.push_realtime("u1", "evt", {})
        assert "Notification 'Hello' for user u1 failed" in caplog.text
        assert "Realtime evt push for user u1 failed" in caplog.text


class TestCopy:
    def test_every_status_has_copy(self) -> None:
        for status in OrderStatus:
            title, message = order_status_copy(5, status)
            assert title
            assert "#5" in message

    def test_rider_copy(self) -> None:
        assert rider_status_copy(5, OrderStatus.OUT_FOR_DELIVERY) == (
            "Delivery Update",
            "Order #5 is now out for delivery.",
        )
