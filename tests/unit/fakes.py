"""In-memory fakes conforming to the repository Protocols.

FakeSession mimics the unit-of-work contract the services rely on: writes are
applied immediately but recorded in an undo log, `rollback()` reverts them and
`commit()` makes them permanent. Every repository call yields to the event
loop once so concurrent coroutines can interleave like real I/O would.
"""

import asyncio
import dataclasses
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from src.fd_catalog.repository import Address, Food
from src.fd_common.enums import NotificationType, UserRole
from src.fd_common.errors import InternalError
from src.fd_gateway.user.directory import User
from src.fd_order.domain.models import Order, OrderItem
from src.fd_wallet.domain.models import (
    Wallet,
    WalletDiscrepancy,
    WalletTopup,
    WalletTransaction,
)


def _copy(obj: Any) -> Any:
    return dataclasses.replace(obj)


class InMemoryStore:
    def __init__(self) -> None:
        self.wallets: dict[str, Wallet] = {}
        self.transactions: list[WalletTransaction] = []
        self.topups: dict[str, WalletTopup] = {}
        self.orders: dict[int, Order] = {}
        self._ids: dict[str, int] = {}

    def next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    def transactions_for(self, user_id: str) -> list[WalletTransaction]:
        wallet = self.wallets.get(user_id)
        if wallet is None:
            return []
        return [t for t in self.transactions if t.wallet_id == wallet.id]

    def ledger_sum(self, user_id: str) -> int:
        return sum(t.signed_amount for t in self.transactions_for(user_id))


class FakeSession:
    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []
        self.commits = 0
        self.rollbacks = 0

    def record(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    async def commit(self) -> None:
        self._undo.clear()
        self.commits += 1

    async def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()
        self.rollbacks += 1


class FakeWalletRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get_wallet(self, db: FakeSession, user_id: str) -> Wallet | None:
        await asyncio.sleep(0)
        wallet = self.store.wallets.get(user_id)
        return _copy(wallet) if wallet else None

    async def create_wallet(
        self, db: FakeSession, user_id: str, currency: str
    ) -> tuple[Wallet, bool]:
        await asyncio.sleep(0)
        if user_id in self.store.wallets:
            return _copy(self.store.wallets[user_id]), False
        wallet = Wallet(
            id=self.store.next_id("wallets"),
            user_id=user_id,
            balance=0,
            currency=currency,
            status="active",
            version=0,
            created_at=datetime.now(UTC),
        )
        self.store.wallets[user_id] = wallet
        db.record(lambda: self.store.wallets.pop(user_id, None))
        return _copy(wallet), True

    async def lock_wallet(self, db: FakeSession, user_id: str) -> Wallet | None:
        return await self.get_wallet(db, user_id)

    async def update_balance(
        self, db: FakeSession, wallet: Wallet, new_balance: int
    ) -> Wallet:
        await asyncio.sleep(0)
        stored = self.store.wallets[wallet.user_id]
        if stored.version != wallet.version:
            raise InternalError(f"Wallet {wallet.id} changed concurrently")
        if new_balance < 0:
            raise InternalError("balance CHECK violated")
        before, version = stored.balance, stored.version

        def undo() -> None:
            stored.balance, stored.version = before, version

        stored.balance = new_balance
        stored.version += 1
        db.record(undo)
        return _copy(stored)

    async def insert_transaction(
        self, db: FakeSession, txn: WalletTransaction
    ) -> WalletTransaction:
        await asyncio.sleep(0)
        if any(t.reference == txn.reference for t in self.store.transactions):
            raise InternalError("duplicate reference")
        row = dataclasses.replace(
            txn, id=self.store.next_id("wallet_transactions"), created_at=datetime.now(UTC)
        )
        self.store.transactions.append(row)
        db.record(lambda: self.store.transactions.remove(row))
        return _copy(row)

    async def list_transactions(
        self,
        db: FakeSession,
        wallet_id: int,
        cursor_id: int | None,
        limit: int,
        txn_type: str | None,
    ) -> list[WalletTransaction]:
        await asyncio.sleep(0)
        rows = [
            t
            for t in self.store.transactions
            if t.wallet_id == wallet_id
            and (cursor_id is None or (t.id or 0) < cursor_id)
            and (txn_type is None or t.type == txn_type)
        ]
        rows.sort(key=lambda t: t.id or 0, reverse=True)
        return [_copy(t) for t in rows[:limit]]

    async def find_discrepancies(self, db: FakeSession) -> list[WalletDiscrepancy]:
        await asyncio.sleep(0)
        found = []
        for user_id, wallet in self.store.wallets.items():
            txns = self.store.transactions_for(user_id)
            ledger = sum(t.signed_amount for t in txns)
            broken = sum(1 for t in txns if not t.is_consistent)
            if ledger != wallet.balance or broken:
                found.append(
                    WalletDiscrepancy(wallet.id, user_id, wallet.balance, ledger, broken)
                )
        return found


class FakeTopupRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create_topup(
        self,
        db: FakeSession,
        user_id: str,
        wallet_id: int,
        amount: int,
        payment_reference: str,
        gateway: str,
    ) -> WalletTopup:
        await asyncio.sleep(0)
        topup = WalletTopup(
            id=self.store.next_id("wallet_topups"),
            user_id=user_id,
            wallet_id=wallet_id,
            amount=amount,
            payment_reference=payment_reference,
            gateway=gateway,
            status="pending",
            created_at=datetime.now(UTC),
        )
        self.store.topups[payment_reference] = topup
        db.record(lambda: self.store.topups.pop(payment_reference, None))
        return _copy(topup)

    async def get_by_reference(
        self, db: FakeSession, payment_reference: str
    ) -> WalletTopup | None:
        await asyncio.sleep(0)
        topup = self.store.topups.get(payment_reference)
        return _copy(topup) if topup else None

    async def _transition(
        self, db: FakeSession, payment_reference: str, status: str, gateway_response: str
    ) -> WalletTopup | None:
        await asyncio.sleep(0)
        topup = self.store.topups.get(payment_reference)
        if topup is None or topup.status != "pending":
            return None
        previous = _copy(topup)

        def undo() -> None:
            self.store.topups[payment_reference] = previous

        topup.status = status
        topup.gateway_response = gateway_response
        if status == "completed":
            topup.completed_at = datetime.now(UTC)
        db.record(undo)
        return _copy(topup)

    async def mark_completed(
        self, db: FakeSession, payment_reference: str, gateway_response: str
    ) -> WalletTopup | None:
        return await self._transition(db, payment_reference, "completed", gateway_response)

    async def mark_failed(
        self, db: FakeSession, payment_reference: str, gateway_response: str
    ) -> WalletTopup | None:
        return await self._transition(db, payment_reference, "failed", gateway_response)

    async def list_by_user(self, db: FakeSession, user_id: str, limit: int) -> list[WalletTopup]:
        rows = [t for t in self.store.topups.values() if t.user_id == user_id]
        rows.sort(key=lambda t: t.id, reverse=True)
        return [_copy(t) for t in rows[:limit]]


class FakeOrderRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def _snapshot(self, order: Order) -> Order:
        return dataclasses.replace(order, items=[_copy(i) for i in order.items])

    async def save(self, db: FakeSession, order: Order) -> Order:
        await asyncio.sleep(0)
        order_id = self.store.next_id("orders")
        saved = dataclasses.replace(
            order,
            id=order_id,
            created_at=datetime.now(UTC),
            items=[
                OrderItem(
                    id=self.store.next_id("order_items"),
                    order_id=order_id,
                    food_id=i.food_id,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                )
                for i in order.items
            ],
        )
        self.store.orders[order_id] = saved
        db.record(lambda: self.store.orders.pop(order_id, None))
        return self._snapshot(saved)

    async def get_by_id(self, db: FakeSession, order_id: int) -> Order | None:
        await asyncio.sleep(0)
        order = self.store.orders.get(order_id)
        return self._snapshot(order) if order else None

    async def get_for_update(self, db: FakeSession, order_id: int) -> Order | None:
        return await self.get_by_id(db, order_id)

    def _mutate(self, db: FakeSession, order_id: int, **changes: Any) -> None:
        order = self.store.orders[order_id]
        previous = {k: getattr(order, k) for k in changes}

        def undo() -> None:
            for k, v in previous.items():
                setattr(order, k, v)

        for k, v in changes.items():
            setattr(order, k, v)
        db.record(undo)

    async def update_status(
        self,
        db: FakeSession,
        order_id: int,
        status: str,
        delivery_time: datetime | None = None,
    ) -> None:
        await asyncio.sleep(0)
        changes: dict[str, Any] = {"status": status}
        if delivery_time is not None:
            changes["delivery_time"] = delivery_time
        self._mutate(db, order_id, **changes)

    async def update_payment_status(
        self, db: FakeSession, order_id: int, payment_status: str
    ) -> None:
        await asyncio.sleep(0)
        self._mutate(db, order_id, payment_status=payment_status)

    async def assign_rider(
        self, db: FakeSession, order_id: int, rider_id: str, delivery_code: str
    ) -> None:
        await asyncio.sleep(0)
        code = self.store.orders[order_id].delivery_code or delivery_code
        self._mutate(db, order_id, rider_id=rider_id, delivery_code=code)

    async def list_orders(
        self,
        db: FakeSession,
        customer_id: str | None,
        rider_id: str | None,
        status: str | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[Order]:
        rows = [
            o
            for o in self.store.orders.values()
            if (customer_id is None or o.customer_id == customer_id)
            and (rider_id is None or o.rider_id == rider_id)
            and (status is None or o.status == status)
            and (cursor_id is None or (o.id or 0) < cursor_id)
        ]
        rows.sort(key=lambda o: o.id or 0, reverse=True)
        return [self._snapshot(o) for o in rows[:limit]]


class FakeCatalog:
    def __init__(self, foods: list[Food], addresses: list[Address]) -> None:
        self.foods = {f.id: f for f in foods}
        self.addresses = {a.id: a for a in addresses}

    async def get_food(self, db: FakeSession, food_id: int) -> Food | None:
        return self.foods.get(food_id)

    async def get_address(self, db: FakeSession, address_id: int) -> Address | None:
        return self.addresses.get(address_id)


class FakeDirectory:
    def __init__(self, users: list[User]) -> None:
        self.users = {u.id: u for u in users}

    async def get_user(self, db: FakeSession, user_id: str) -> User | None:
        return self.users.get(user_id)


class RecordingNotifier:
    """Notification gateway that remembers every call."""

    def __init__(self) -> None:
        self.notifications: list[dict[str, Any]] = []
        self.events: list[dict[str, Any]] = []

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        order_id: int | None = None,
    ) -> None:
        self.notifications.append(
            {"user_id": user_id, "type": type, "title": title, "message": message, "order_id": order_id}
        )

    async def push_realtime(self, user_id: str, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append({"user_id": user_id, "event": event_type, "payload": payload})

    def titles_for(self, user_id: str) -> list[str]:
        return [n["title"] for n in self.notifications if n["user_id"] == user_id]

    def events_for(self, user_id: str) -> list[str]:
        return [e["event"] for e in self.events if e["user_id"] == user_id]


class FailingNotifier:
    async def notify(self, *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("notification store down")

    async def push_realtime(self, *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("socket closed")


def make_user(user_id: str, role: UserRole = UserRole.CUSTOMER) -> User:
    return User(id=user_id, role=role, email=f"{user_id}@example.com", first_name=user_id)
