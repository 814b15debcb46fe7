"""WalletRepository / TopupRepository — PostgreSQL implementations.

Balance writes are guarded twice: the ledger reads the row with
SELECT ... FOR UPDATE, and the UPDATE only applies when `version` is still the
one that was read. A result of 0 rows from a guarded UPDATE means the
precondition did not hold.

Transaction ownership: The CALLER (application service) is responsible for
committing or rolling back the session.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.errors import InternalError
from src.fd_wallet.domain.models import (
    Wallet,
    WalletDiscrepancy,
    WalletTopup,
    WalletTransaction,
)

# ---------------------------------------------------------------------------
# SQL: wallets
# ---------------------------------------------------------------------------

_WALLET_COLUMNS = "id, user_id, balance, currency, status, version, created_at, updated_at"

_GET_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE user_id = :user_id
""")

_LOCK_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE user_id = :user_id
    FOR UPDATE
""")

_CREATE_WALLET_SQL = text(f"""
    INSERT INTO wallets (user_id, balance, currency, status, version)
    VALUES (:user_id, 0, :currency, 'active', 0)
    ON CONFLICT (user_id) DO NOTHING
    RETURNING {_WALLET_COLUMNS}
""")

_UPDATE_BALANCE_SQL = text(f"""
    UPDATE wallets
    SET balance = :balance,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND version = :version
    RETURNING {_WALLET_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: wallet_transactions (append-only)
# ---------------------------------------------------------------------------

_TXN_COLUMNS = """
    id, wallet_id, type, amount, balance_before, balance_after, reference,
    description, order_id, topup_id, status, created_at
"""

_INSERT_TXN_SQL = text(f"""
    INSERT INTO wallet_transactions
        (wallet_id, type, amount, balance_before, balance_after, reference,
         description, order_id, topup_id, status)
    VALUES
        (:wallet_id, :type, :amount, :balance_before, :balance_after, :reference,
         :description, :order_id, :topup_id, :status)
    RETURNING {_TXN_COLUMNS}
""")

_LIST_TXN_SQL = text(f"""
    SELECT {_TXN_COLUMNS}
    FROM wallet_transactions
    WHERE wallet_id = :wallet_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:type AS TEXT) IS NULL OR type = :type)
    ORDER BY id DESC
    LIMIT :limit
""")

# balance must equal Σcredit − Σdebit, and every row must satisfy
# balance_after = balance_before ± amount.
_DISCREPANCIES_SQL = text("""
    SELECT w.id AS wallet_id, w.user_id, w.balance,
           COALESCE(SUM(CASE WHEN t.type = 'credit' THEN t.amount
                             ELSE -t.amount END), 0) AS ledger_balance,
           COUNT(*) FILTER (
               WHERE t.id IS NOT NULL AND t.balance_after <> t.balance_before
                   + CASE WHEN t.type = 'credit' THEN t.amount ELSE -t.amount END
           ) AS broken_rows
    FROM wallets w
    LEFT JOIN wallet_transactions t ON t.wallet_id = w.id AND t.status = 'completed'
    GROUP BY w.id, w.user_id, w.balance
    HAVING w.balance <> COALESCE(SUM(CASE WHEN t.type = 'credit' THEN t.amount
                                          ELSE -t.amount END), 0)
        OR COUNT(*) FILTER (
               WHERE t.id IS NOT NULL AND t.balance_after <> t.balance_before
                   + CASE WHEN t.type = 'credit' THEN t.amount ELSE -t.amount END
           ) > 0
    ORDER BY w.id
""")

# ---------------------------------------------------------------------------
# SQL: wallet_topups
# ---------------------------------------------------------------------------

_TOPUP_COLUMNS = """
    id, user_id, wallet_id, amount, payment_reference, payment_gateway,
    gateway_response, status, completed_at, created_at
"""

_INSERT_TOPUP_SQL = text(f"""
    INSERT INTO wallet_topups
        (user_id, wallet_id, amount, payment_reference, payment_gateway, status)
    VALUES
        (:user_id, :wallet_id, :amount, :payment_reference, :gateway, 'pending')
    RETURNING {_TOPUP_COLUMNS}
""")

_GET_TOPUP_SQL = text(f"""
    SELECT {_TOPUP_COLUMNS}
    FROM wallet_topups
    WHERE payment_reference = :payment_reference
""")

_COMPLETE_TOPUP_SQL = text(f"""
    UPDATE wallet_topups
    SET status = 'completed',
        completed_at = NOW(),
        gateway_response = :gateway_response
    WHERE payment_reference = :payment_reference AND status = 'pending'
    RETURNING {_TOPUP_COLUMNS}
""")

_FAIL_TOPUP_SQL = text(f"""
    UPDATE wallet_topups
    SET status = 'failed',
        gateway_response = :gateway_response
    WHERE payment_reference = :payment_reference AND status = 'pending'
    RETURNING {_TOPUP_COLUMNS}
""")

_LIST_TOPUPS_SQL = text(f"""
    SELECT {_TOPUP_COLUMNS}
    FROM wallet_topups
    WHERE user_id = :user_id
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_wallet(row: Any) -> Wallet:
    return Wallet(
        id=row.id,
        user_id=row.user_id,
        balance=row.balance,
        currency=row.currency,
        status=row.status,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_txn(row: Any) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,
        wallet_id=row.wallet_id,
        type=row.type,
        amount=row.amount,
        balance_before=row.balance_before,
        balance_after=row.balance_after,
        reference=row.reference,
        description=row.description,
        order_id=row.order_id,
        topup_id=row.topup_id,
        status=row.status,
        created_at=row.created_at,
    )


def _row_to_topup(row: Any) -> WalletTopup:
    return WalletTopup(
        id=row.id,
        user_id=row.user_id,
        wallet_id=row.wallet_id,
        amount=row.amount,
        payment_reference=row.payment_reference,
        gateway=row.payment_gateway,
        status=row.status,
        gateway_response=row.gateway_response,
        completed_at=row.completed_at,
        created_at=row.created_at,
    )


class WalletRepository:
    """Concrete wallet + ledger repository."""

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        row = (await db.execute(_GET_WALLET_SQL, {"user_id": user_id})).fetchone()
        return _row_to_wallet(row) if row else None

    async def create_wallet(
        self, db: AsyncSession, user_id: str, currency: str
    ) -> tuple[Wallet, bool]:
        row = (
            await db.execute(_CREATE_WALLET_SQL, {"user_id": user_id, "currency": currency})
        ).fetchone()
        if row is not None:
            return _row_to_wallet(row), True
        # Lost the creation race to a concurrent request; the row exists now.
        existing = await self.get_wallet(db, user_id)
        if existing is None:
            raise InternalError(f"Wallet insert for user {user_id} returned no row")
        return existing, False

    async def lock_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        row = (await db.execute(_LOCK_WALLET_SQL, {"user_id": user_id})).fetchone()
        return _row_to_wallet(row) if row else None

    async def update_balance(
        self, db: AsyncSession, wallet: Wallet, new_balance: int
    ) -> Wallet:
        row = (
            await db.execute(
                _UPDATE_BALANCE_SQL,
                {"id": wallet.id, "version": wallet.version, "balance": new_balance},
            )
        ).fetchone()
        if row is None:
            raise InternalError(
                f"Wallet {wallet.id} changed concurrently (expected version {wallet.version})"
            )
        return _row_to_wallet(row)

    async def insert_transaction(
        self, db: AsyncSession, txn: WalletTransaction
    ) -> WalletTransaction:
        row = (
            await db.execute(
                _INSERT_TXN_SQL,
                {
                    "wallet_id": txn.wallet_id,
                    "type": txn.type,
                    "amount": txn.amount,
                    "balance_before": txn.balance_before,
                    "balance_after": txn.balance_after,
                    "reference": txn.reference,
                    "description": txn.description,
                    "order_id": txn.order_id,
                    "topup_id": txn.topup_id,
                    "status": txn.status,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows")
        return _row_to_txn(row)

    async def list_transactions(
        self,
        db: AsyncSession,
        wallet_id: int,
        cursor_id: int | None,
        limit: int,
        txn_type: str | None,
    ) -> list[WalletTransaction]:
        result = await db.execute(
            _LIST_TXN_SQL,
            {
                "wallet_id": wallet_id,
                "cursor_id": cursor_id,
                "type": txn_type,
                "limit": limit,
            },
        )
        return [_row_to_txn(row) for row in result.fetchall()]

    async def find_discrepancies(self, db: AsyncSession) -> list[WalletDiscrepancy]:
        rows = (await db.execute(_DISCREPANCIES_SQL)).fetchall()
        return [
            WalletDiscrepancy(
                wallet_id=row.wallet_id,
                user_id=row.user_id,
                balance=row.balance,
                ledger_balance=int(row.ledger_balance),
                broken_rows=int(row.broken_rows),
            )
            for row in rows
        ]


class TopupRepository:
    """Concrete topup repository. Status changes are conditional on 'pending'."""

    async def create_topup(
        self,
        db: AsyncSession,
        user_id: str,
        wallet_id: int,
        amount: int,
        payment_reference: str,
        gateway: str,
    ) -> WalletTopup:
        row = (
            await db.execute(
                _INSERT_TOPUP_SQL,
                {
                    "user_id": user_id,
                    "wallet_id": wallet_id,
                    "amount": amount,
                    "payment_reference": payment_reference,
                    "gateway": gateway,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Topup insert returned no rows")
        return _row_to_topup(row)

    async def get_by_reference(
        self, db: AsyncSession, payment_reference: str
    ) -> WalletTopup | None:
        row = (
            await db.execute(_GET_TOPUP_SQL, {"payment_reference": payment_reference})
        ).fetchone()
        return _row_to_topup(row) if row else None

    async def mark_completed(
        self, db: AsyncSession, payment_reference: str, gateway_response: str
    ) -> WalletTopup | None:
        row = (
            await db.execute(
                _COMPLETE_TOPUP_SQL,
                {"payment_reference": payment_reference, "gateway_response": gateway_response},
            )
        ).fetchone()
        return _row_to_topup(row) if row else None

    async def mark_failed(
        self, db: AsyncSession, payment_reference: str, gateway_response: str
    ) -> WalletTopup | None:
        row = (
            await db.execute(
                _FAIL_TOPUP_SQL,
                {"payment_reference": payment_reference, "gateway_response": gateway_response},
            )
        ).fetchone()
        return _row_to_topup(row) if row else None

    async def list_by_user(self, db: AsyncSession, user_id: str, limit: int) -> list[WalletTopup]:
        result = await db.execute(_LIST_TOPUPS_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_topup(row) for row in result.fetchall()]
