"""Domain models for fd_wallet — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Wallet:
    id: int
    user_id: str
    balance: int             # kobo, >= 0
    currency: str
    status: str              # WalletStatus value
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass
class WalletTransaction:
    id: int | None           # BIGSERIAL, None until inserted
    wallet_id: int
    type: str                # TransactionType value
    amount: int              # kobo, always positive
    balance_before: int
    balance_after: int
    reference: str           # globally unique
    description: str
    order_id: int | None = None
    topup_id: int | None = None
    status: str = "completed"
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> int:
        return self.amount if self.type == "credit" else -self.amount

    @property
    def is_consistent(self) -> bool:
        return self.balance_after == self.balance_before + self.signed_amount


@dataclass
class WalletTopup:
    id: int
    user_id: str
    wallet_id: int
    amount: int              # kobo
    payment_reference: str
    gateway: str             # TopupGateway value
    status: str              # TopupStatus value
    gateway_response: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class LedgerPosting:
    """Result of one balance change: the wallet after it and the row appended."""

    wallet: Wallet
    transaction: WalletTransaction
    wallet_created: bool = False

    @property
    def new_balance(self) -> int:
        return self.wallet.balance


@dataclass
class WalletDiscrepancy:
    wallet_id: int
    user_id: str
    balance: int
    ledger_balance: int
    broken_rows: int = 0

    def describe(self) -> str:
        return (
            f"wallet {self.wallet_id} (user {self.user_id}): balance={self.balance} "
            f"ledger={self.ledger_balance} inconsistent_rows={self.broken_rows}"
        )
