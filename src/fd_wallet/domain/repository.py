"""Repository Protocols — dependency inversion for testability.

Unit tests inject mocks or in-memory fakes that conform to these Protocols.
Infrastructure provides the real PostgreSQL implementation.

Transaction ownership: implementations never commit. The application
service that opened the unit of work commits or rolls back the session.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_wallet.domain.models import (
    Wallet,
    WalletDiscrepancy,
    WalletTopup,
    WalletTransaction,
)


class WalletRepositoryProtocol(Protocol):
    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None: ...

    async def create_wallet(
        self, db: AsyncSession, user_id: str, currency: str
    ) -> tuple[Wallet, bool]:
        """Insert if absent. Returns (wallet, created)."""
        ...

    async def lock_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        """Read the wallet row holding a row lock until the transaction ends."""
        ...

    async def update_balance(
        self, db: AsyncSession, wallet: Wallet, new_balance: int
    ) -> Wallet:
        """Write new_balance iff the row still has wallet.version; bumps version."""
        ...

    async def insert_transaction(
        self, db: AsyncSession, txn: WalletTransaction
    ) -> WalletTransaction: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        wallet_id: int,
        cursor_id: int | None,
        limit: int,
        txn_type: str | None,
    ) -> list[WalletTransaction]: ...

    async def find_discrepancies(self, db: AsyncSession) -> list[WalletDiscrepancy]: ...


class TopupRepositoryProtocol(Protocol):
    async def create_topup(
        self,
        db: AsyncSession,
        user_id: str,
        wallet_id: int,
        amount: int,
        payment_reference: str,
        gateway: str,
    ) -> WalletTopup: ...

    async def get_by_reference(
        self, db: AsyncSession, payment_reference: str
    ) -> WalletTopup | None: ...

    async def mark_completed(
        self, db: AsyncSession, payment_reference: str, gateway_response: str
    ) -> WalletTopup | None:
        """pending → completed. Returns None when the topup was not pending."""
        ...

    async def mark_failed(
        self, db: AsyncSession, payment_reference: str, gateway_response: str
    ) -> WalletTopup | None:
        """pending → failed. Returns None when the topup was not pending."""
        ...

    async def list_by_user(self, db: AsyncSession, user_id: str, limit: int) -> list[WalletTopup]: ...
