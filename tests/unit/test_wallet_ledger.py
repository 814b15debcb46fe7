"""Unit tests for WalletLedger against the in-memory wallet repository."""

import asyncio
import logging

import pytest

from src.fd_common.errors import (
    InsufficientFundsError,
    ValidationError,
    WalletNotActiveError,
)
from src.fd_common.locks import KeyedLocks
from src.fd_wallet.application.ledger import WalletLedger
from tests.unit.fakes import (
    FailingNotifier,
    FakeSession,
    FakeWalletRepo,
    InMemoryStore,
    RecordingNotifier,
)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ledger(store: InMemoryStore, notifier: RecordingNotifier) -> WalletLedger:
    return WalletLedger(repo=FakeWalletRepo(store), notifier=notifier, currency="NGN")


async def _fund(ledger: WalletLedger, user_id: str, amount: int) -> None:
    await ledger.credit(FakeSession(), user_id, amount, "seed")


def _assert_invariant(store: InMemoryStore, user_id: str) -> None:
    assert store.wallets[user_id].balance == store.ledger_sum(user_id)
    assert all(t.is_consistent for t in store.transactions_for(user_id))


class TestGetOrCreate:
    async def test_creates_empty_wallet_once(
        self, ledger: WalletLedger, store: InMemoryStore, notifier: RecordingNotifier
    ) -> None:
        db = FakeSession()
        wallet = await ledger.get_or_create(db, "u1")
        again = await ledger.get_or_create(db, "u1")

        assert wallet.balance == 0
        assert wallet.currency == "NGN"
        assert wallet.status == "active"
        assert again.id == wallet.id
        assert db.commits == 1
        assert notifier.titles_for("u1") == ["Wallet Created"]

    async def test_get_balance_display(self, ledger: WalletLedger) -> None:
        await _fund(ledger, "u1", 150_000)
        resp = await ledger.get_balance(FakeSession(), "u1")
        assert resp.balance_kobo == 150_000
        assert resp.balance_display == "₦1,500.00"


class TestDebit:
    async def test_debit_5000_by_3000(self, ledger: WalletLedger, store: InMemoryStore) -> None:
        await _fund(ledger, "u1", 5000)

        posting = await ledger.debit(FakeSession(), "u1", 3000, order_id=42)

        assert posting.new_balance == 2000
        debits = [t for t in store.transactions_for("u1") if t.type == "debit"]
        assert len(debits) == 1
        assert debits[0].balance_before == 5000
        assert debits[0].balance_after == 2000
        assert debits[0].order_id == 42
        assert debits[0].reference
        assert debits[0].description == "Payment for Order #42"
        _assert_invariant(store, "u1")

    async def test_insufficient_funds_leaves_balance(
        self, ledger: WalletLedger, store: InMemoryStore
    ) -> None:
        await _fund(ledger, "u1", 500)
        db = FakeSession()

        with pytest.raises(InsufficientFundsError) as exc_info:
            await ledger.debit(db, "u1", 800)

        assert exc_info.value.balance == 500
        assert exc_info.value.shortfall == 300
        assert store.wallets["u1"].balance == 500
        assert len(store.transactions_for("u1")) == 1
        assert db.rollbacks == 1

    async def test_debit_without_wallet_creates_it_then_fails(
        self, ledger: WalletLedger, store: InMemoryStore
    ) -> None:
        with pytest.raises(InsufficientFundsError):
            await ledger.debit(FakeSession(), "new-user", 100)
        # the creation was part of the rolled-back unit of work
        assert "new-user" not in store.wallets

    @pytest.mark.parametrize("amount", [0, -5, 1.5])
    async def test_invalid_amount(self, ledger: WalletLedger, amount: object) -> None:
        with pytest.raises(ValidationError):
            await ledger.debit(FakeSession(), "u1", amount)  # type: ignore[arg-type]

    async def test_suspended_wallet_rejected(
        self, ledger: WalletLedger, store: InMemoryStore
    ) -> None:
        await _fund(ledger, "u1", 1000)
        store.wallets["u1"].status = "suspended"
        with pytest.raises(WalletNotActiveError):
            await ledger.debit(FakeSession(), "u1", 100)
        with pytest.raises(WalletNotActiveError):
            await ledger.credit(FakeSession(), "u1", 100, "x")
        assert store.wallets["u1"].balance == 1000

    async def test_emits_payment_notification_and_event(
        self, ledger: WalletLedger, notifier: RecordingNotifier
    ) -> None:
        await _fund(ledger, "u1", 5000)
        await ledger.debit(FakeSession(), "u1", 1500, order_id=9)

        payment = [n for n in notifier.notifications if n["title"] == "Payment Successful"]
        assert payment[0]["message"] == "₦15.00 deducted from your wallet for Order #9"
        assert payment[0]["order_id"] == 9
        event = [e for e in notifier.events if e["event"] == "wallet_debited"][0]
        assert event["payload"]["amount"] == 1500
        assert event["payload"]["newBalance"] == 3500
        assert event["payload"]["orderId"] == 9


class TestCredit:
    async def test_credit_then_debit_round_trip(
        self, ledger: WalletLedger, store: InMemoryStore
    ) -> None:
        await _fund(ledger, "u1", 2500)
        before = store.wallets["u1"].balance
        rows_before = len(store.transactions_for("u1"))

        await ledger.credit(FakeSession(), "u1", 1000, "refund")
        await ledger.debit(FakeSession(), "u1", 1000)

        assert store.wallets["u1"].balance == before
        assert len(store.transactions_for("u1")) == rows_before + 2
        _assert_invariant(store, "u1")

    async def test_credit_creates_wallet(
        self, ledger: WalletLedger, store: InMemoryStore, notifier: RecordingNotifier
    ) -> None:
        posting = await ledger.credit(FakeSession(), "u2", 10_000, "Wallet topup via stripe")

        assert posting.new_balance == 10_000
        assert posting.wallet_created is True
        assert notifier.titles_for("u2") == ["Wallet Created", "Wallet Credited"]
        assert "wallet_credited" in notifier.events_for("u2")

    async def test_references_are_unique(self, ledger: WalletLedger, store: InMemoryStore) -> None:
        for _ in range(20):
            await ledger.credit(FakeSession(), "u1", 1, "tick")
        refs = [t.reference for t in store.transactions]
        assert len(set(refs)) == len(refs)


class TestConcurrency:
    async def test_two_debits_of_100_on_150(self, ledger: WalletLedger, store: InMemoryStore) -> None:
        await _fund(ledger, "u1", 150)

        results = await asyncio.gather(
            ledger.debit(FakeSession(), "u1", 100),
            ledger.debit(FakeSession(), "u1", 100),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientFundsError)
        assert store.wallets["u1"].balance == 50
        _assert_invariant(store, "u1")

    async def test_many_concurrent_credits_are_not_lost(
        self, ledger: WalletLedger, store: InMemoryStore
    ) -> None:
        await asyncio.gather(*(ledger.credit(FakeSession(), "u1", 10, "c") for _ in range(25)))
        assert store.wallets["u1"].balance == 250
        _assert_invariant(store, "u1")

    async def test_locks_are_per_wallet(self, store: InMemoryStore) -> None:
        locks = KeyedLocks()
        ledger = WalletLedger(repo=FakeWalletRepo(store), locks=locks)
        async with ledger.wallet_lock("a"):
            assert locks.is_locked("a")
            assert not locks.is_locked("b")

    async def test_lock_map_drains_after_postings(self, store: InMemoryStore) -> None:
        locks = KeyedLocks()
        ledger = WalletLedger(repo=FakeWalletRepo(store), locks=locks)

        for i in range(1000):
            await ledger.credit(FakeSession(), f"u{i}", 10, "c")
        await asyncio.gather(*(ledger.credit(FakeSession(), "u0", 10, "c") for _ in range(10)))

        assert len(locks) == 0
        assert store.wallets["u0"].balance == 110


class TestNotificationFailure:
    async def test_notifier_errors_do_not_fail_posting(
        self, store: InMemoryStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        ledger = WalletLedger(repo=FakeWalletRepo(store), notifier=FailingNotifier())
        with caplog.at_level(logging.ERROR):
            posting = await ledger.credit(FakeSession(), "u1", 700, "seed")
        assert posting.new_balance == 700
        assert store.wallets["u1"].balance == 700
        assert "failed" in caplog.text


class TestQueries:
    async def test_check_sufficient_balance(self, ledger: WalletLedger) -> None:
        await _fund(ledger, "u1", 1000)
        ok = await ledger.check_sufficient_balance(FakeSession(), "u1", 800)
        short = await ledger.check_sufficient_balance(FakeSession(), "u1", 1500)
        assert ok.sufficient and ok.shortfall_kobo is None
        assert not short.sufficient and short.shortfall_kobo == 500

    async def test_check_without_wallet_reports_zero(self, ledger: WalletLedger) -> None:
        resp = await ledger.check_sufficient_balance(FakeSession(), "ghost", 100)
        assert resp.current_balance_kobo == 0
        assert resp.shortfall_kobo == 100

    async def test_list_transactions_pages(self, ledger: WalletLedger) -> None:
        for i in range(5):
            await ledger.credit(FakeSession(), "u1", 100 + i, f"c{i}")

        first = await ledger.list_transactions(FakeSession(), "u1", None, 3, None)
        assert len(first.items) == 3
        assert first.has_more is True
        assert first.items[0].amount_kobo == 104  # newest first

        second = await ledger.list_transactions(FakeSession(), "u1", first.next_cursor, 3, None)
        assert len(second.items) == 2
        assert second.has_more is False
        assert second.next_cursor is None

    async def test_list_transactions_type_filter(self, ledger: WalletLedger) -> None:
        await _fund(ledger, "u1", 1000)
        await ledger.debit(FakeSession(), "u1", 300)
        page = await ledger.list_transactions(FakeSession(), "u1", None, 10, "debit")
        assert [i.type for i in page.items] == ["debit"]
        assert page.items[0].amount_display == "-₦3.00"


class TestVerifyInvariants:
    async def test_clean_ledger(self, ledger: WalletLedger) -> None:
        await _fund(ledger, "u1", 1000)
        await ledger.debit(FakeSession(), "u1", 400)
        assert await ledger.verify_invariants(FakeSession()) == []

    async def test_detects_drift(
        self, ledger: WalletLedger, store: InMemoryStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        await _fund(ledger, "u1", 1000)
        store.wallets["u1"].balance = 999

        with caplog.at_level(logging.ERROR):
            found = await ledger.verify_invariants(FakeSession())

        assert len(found) == 1
        assert found[0].balance == 999
        assert found[0].ledger_balance == 1000
        assert "invariant violated" in caplog.text
