"""WalletLedger — the only writer of wallets and wallet_transactions.

Every balance change is one unit of work:

    per-wallet asyncio lock          (single writer per wallet in this process)
      SELECT ... FOR UPDATE           (row lock across processes)
      check status / sufficiency
      UPDATE wallets ... WHERE version = :read_version
      INSERT INTO wallet_transactions (append-only)
    COMMIT                            (or ROLLBACK on any error)
    notifications                     (best effort, after commit)

`debit` / `credit` / `get_or_create` own their transaction. The `apply_*`
variants run inside a caller's transaction (order confirmation, topup
completion); the caller must hold `wallet_lock(user_id)`, commit, and then call
`announce_*` to emit the events.
"""

import logging
from contextlib import AbstractAsyncContextManager

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fd_common.enums import NotificationType, TransactionStatus, TransactionType
from src.fd_common.errors import (
    InsufficientFundsError,
    InternalError,
    ValidationError,
    WalletNotActiveError,
)
from src.fd_common.locks import KeyedLocks
from src.fd_common.money import kobo_to_display, validate_amount
from src.fd_common.references import new_transaction_reference
from src.fd_notification.domain.gateway import NotificationGatewayProtocol
from src.fd_notification.service import BestEffortNotifier, NullNotificationGateway
from src.fd_wallet.application.schemas import (
    BalanceCheckResponse,
    TransactionItem,
    TransactionListResponse,
    WalletResponse,
    cursor_decode,
    cursor_encode,
)
from src.fd_wallet.domain.models import (
    LedgerPosting,
    Wallet,
    WalletDiscrepancy,
    WalletTransaction,
)
from src.fd_wallet.domain.repository import WalletRepositoryProtocol
from src.fd_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


class WalletLedger:
    def __init__(
        self,
        repo: WalletRepositoryProtocol | None = None,
        notifier: NotificationGatewayProtocol | None = None,
        currency: str | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo: WalletRepositoryProtocol = repo or WalletRepository()
        self._notifier = BestEffortNotifier(notifier or NullNotificationGateway())
        self._currency = currency or settings.WALLET_CURRENCY
        self._locks = locks or KeyedLocks()

    @property
    def currency(self) -> str:
        return self._currency

    def wallet_lock(self, user_id: str) -> AbstractAsyncContextManager[None]:
        return self._locks.hold(user_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_or_create(self, db: AsyncSession, user_id: str) -> Wallet:
        wallet = await self._repo.get_wallet(db, user_id)
        if wallet is not None:
            return wallet
        try:
            wallet, created = await self._repo.create_wallet(db, user_id, self._currency)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if created:
            await self._announce_wallet_created(user_id)
        return wallet

    async def get_balance(self, db: AsyncSession, user_id: str) -> WalletResponse:
        wallet = await self.get_or_create(db, user_id)
        return WalletResponse.from_wallet(wallet)

    async def check_sufficient_balance(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> BalanceCheckResponse:
        self._check_amount(amount)
        wallet = await self._repo.get_wallet(db, user_id)
        balance = wallet.balance if wallet else 0
        return BalanceCheckResponse.from_check(balance, amount)

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        txn_type: str | None,
    ) -> TransactionListResponse:
        wallet = await self.get_or_create(db, user_id)
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        txns = await self._repo.list_transactions(db, wallet.id, cursor_id, limit + 1, txn_type)
        has_more = len(txns) > limit
        page = txns[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page and page[-1].id else None
        return TransactionListResponse(
            items=[TransactionItem.from_txn(t, wallet.currency) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def verify_invariants(self, db: AsyncSession) -> list[WalletDiscrepancy]:
        """Every wallet whose balance != Σcredit − Σdebit or whose chain is broken."""
        discrepancies = await self._repo.find_discrepancies(db)
        for d in discrepancies:
            logger.error("Wallet ledger invariant violated: %s", d.describe())
        return discrepancies

    # ------------------------------------------------------------------
    # Self-contained postings (own the transaction)
    # ------------------------------------------------------------------

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        order_id: int | None = None,
        description: str | None = None,
    ) -> LedgerPosting:
        async with self.wallet_lock(user_id):
            try:
                posting = await self.apply_debit(db, user_id, amount, order_id, description)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        await self.announce_debit(user_id, posting)
        return posting

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        description: str,
        topup_id: int | None = None,
        order_id: int | None = None,
    ) -> LedgerPosting:
        async with self.wallet_lock(user_id):
            try:
                posting = await self.apply_credit(
                    db, user_id, amount, description, topup_id=topup_id, order_id=order_id
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        await self.announce_credit(user_id, posting)
        return posting

    # ------------------------------------------------------------------
    # In-transaction postings (caller holds wallet_lock and commits)
    # ------------------------------------------------------------------

    async def apply_debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        order_id: int | None = None,
        description: str | None = None,
    ) -> LedgerPosting:
        self._check_amount(amount)
        wallet, created = await self._lock_or_create(db, user_id)
        self._check_active(wallet)
        if wallet.balance < amount:
            raise InsufficientFundsError(required=amount, balance=wallet.balance)
        if description is None:
            description = f"Payment for Order #{order_id}" if order_id else "Wallet debit"
        return await self._post(
            db, wallet, TransactionType.DEBIT, amount, description,
            order_id=order_id, created=created,
        )

    async def apply_credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        description: str,
        topup_id: int | None = None,
        order_id: int | None = None,
    ) -> LedgerPosting:
        self._check_amount(amount)
        wallet, created = await self._lock_or_create(db, user_id)
        self._check_active(wallet)
        return await self._post(
            db, wallet, TransactionType.CREDIT, amount, description,
            order_id=order_id, topup_id=topup_id, created=created,
        )

    async def announce_debit(self, user_id: str, posting: LedgerPosting) -> None:
        txn = posting.transaction
        if posting.wallet_created:
            await self._announce_wallet_created(user_id)
        amount = kobo_to_display(txn.amount, posting.wallet.currency)
        where = f" for Order #{txn.order_id}" if txn.order_id else ""
        await self._notifier.notify(
            user_id,
            NotificationType.PAYMENT,
            "Payment Successful",
            f"{amount} deducted from your wallet{where}",
            order_id=txn.order_id,
        )
        await self._notifier.push_realtime(
            user_id,
            "wallet_debited",
            {
                "amount": txn.amount,
                "newBalance": posting.new_balance,
                "orderId": txn.order_id,
                "transactionId": txn.id,
            },
        )

    async def announce_credit(self, user_id: str, posting: LedgerPosting) -> None:
        txn = posting.transaction
        if posting.wallet_created:
            await self._announce_wallet_created(user_id)
        amount = kobo_to_display(txn.amount, posting.wallet.currency)
        await self._notifier.notify(
            user_id,
            NotificationType.PAYMENT,
            "Wallet Credited",
            f"{amount} added to your wallet. {txn.description}",
            order_id=txn.order_id,
        )
        await self._notifier.push_realtime(
            user_id,
            "wallet_credited",
            {
                "amount": txn.amount,
                "newBalance": posting.new_balance,
                "transactionId": txn.id,
            },
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_amount(amount: int) -> None:
        try:
            validate_amount(amount)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None

    @staticmethod
    def _check_active(wallet: Wallet) -> None:
        if not wallet.is_active:
            raise WalletNotActiveError(wallet.user_id, wallet.status)

    async def _lock_or_create(self, db: AsyncSession, user_id: str) -> tuple[Wallet, bool]:
        wallet = await self._repo.lock_wallet(db, user_id)
        if wallet is not None:
            return wallet, False
        _, created = await self._repo.create_wallet(db, user_id, self._currency)
        wallet = await self._repo.lock_wallet(db, user_id)
        if wallet is None:
            raise InternalError(f"Wallet for user {user_id} vanished after creation")
        return wallet, created

    async def _post(
        self,
        db: AsyncSession,
        wallet: Wallet,
        txn_type: TransactionType,
        amount: int,
        description: str,
        order_id: int | None = None,
        topup_id: int | None = None,
        created: bool = False,
    ) -> LedgerPosting:
        balance_before = wallet.balance
        if txn_type is TransactionType.DEBIT:
            balance_after = balance_before - amount
        else:
            balance_after = balance_before + amount

        updated = await self._repo.update_balance(db, wallet, balance_after)
        txn = await self._repo.insert_transaction(
            db,
            WalletTransaction(
                id=None,
                wallet_id=wallet.id,
                type=txn_type.value,
                amount=amount,
                balance_before=balance_before,
                balance_after=balance_after,
                reference=new_transaction_reference(),
                description=description,
                order_id=order_id,
                topup_id=topup_id,
                status=TransactionStatus.COMPLETED.value,
            ),
        )
        logger.info(
            "Wallet %s %s %d kobo: %d -> %d (%s)",
            wallet.id, txn_type.value, amount, balance_before, balance_after, txn.reference,
        )
        return LedgerPosting(wallet=updated, transaction=txn, wallet_created=created)

    async def _announce_wallet_created(self, user_id: str) -> None:
        await self._notifier.notify(
            user_id,
            NotificationType.SYSTEM,
            "Wallet Created",
            "Your wallet has been created successfully. "
            "Start by adding funds to place orders.",
        )
