"""Pydantic schemas and cursor utilities for the fd_wallet API.

Amounts travel as int kobo (`*_kobo`) with a display string alongside;
display strings are never parsed back.
"""

import base64
import json
from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.fd_common.enums import TopupGateway, TransactionType
from src.fd_common.money import kobo_to_display
from src.fd_wallet.domain.models import Wallet, WalletTopup, WalletTransaction

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.urlsafe_b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CheckBalanceRequest(BaseModel):
    amount_kobo: int = Field(..., gt=0, description="Amount to check in kobo")


class TopupInitializeRequest(BaseModel):
    amount_kobo: int = Field(..., gt=0, description="Topup amount in kobo")
    gateway: TopupGateway


class TopupCompleteRequest(BaseModel):
    reference: str = Field(..., min_length=1, max_length=128)
    gateway_data: dict[str, Any] = Field(default_factory=dict)


class SimulateCompleteRequest(BaseModel):
    reference: str = Field(..., min_length=1, max_length=128)


class AdminCreditRequest(BaseModel):
    target_user_id: str
    amount_kobo: int = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=400)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("description must not be blank")
        return v


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    id: int
    user_id: str
    balance_kobo: int
    balance_display: str
    currency: str
    status: str

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            id=wallet.id,
            user_id=wallet.user_id,
            balance_kobo=wallet.balance,
            balance_display=kobo_to_display(wallet.balance, wallet.currency),
            currency=wallet.currency,
            status=wallet.status,
        )


class BalanceCheckResponse(BaseModel):
    sufficient: bool
    current_balance_kobo: int
    required_kobo: int
    shortfall_kobo: int | None

    @classmethod
    def from_check(cls, balance: int, required: int) -> "BalanceCheckResponse":
        sufficient = balance >= required
        return cls(
            sufficient=sufficient,
            current_balance_kobo=balance,
            required_kobo=required,
            shortfall_kobo=None if sufficient else required - balance,
        )


class PostingResponse(BaseModel):
    """Outcome of one debit or credit."""

    new_balance_kobo: int
    new_balance_display: str
    amount_kobo: int
    transaction_id: int | None
    reference: str


class TransactionItem(BaseModel):
    id: int
    type: str
    amount_kobo: int
    amount_display: str
    balance_before_kobo: int
    balance_after_kobo: int
    reference: str
    description: str
    order_id: int | None
    topup_id: int | None
    status: str
    created_at: str  # ISO8601 string

    @classmethod
    def from_txn(cls, txn: WalletTransaction, currency: str) -> "TransactionItem":
        sign = -1 if txn.type == TransactionType.DEBIT.value else 1
        return cls(
            id=txn.id or 0,
            type=txn.type,
            amount_kobo=txn.amount,
            amount_display=kobo_to_display(sign * txn.amount, currency),
            balance_before_kobo=txn.balance_before,
            balance_after_kobo=txn.balance_after,
            reference=txn.reference,
            description=txn.description,
            order_id=txn.order_id,
            topup_id=txn.topup_id,
            status=txn.status,
            created_at=txn.created_at.isoformat() if txn.created_at else "",
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class TopupInitializeResponse(BaseModel):
    reference: str
    amount_kobo: int
    gateway: str
    authorization_url: str | None = None  # set only for hosted-checkout gateways


class TopupCompleteResponse(BaseModel):
    reference: str
    new_balance_kobo: int
    new_balance_display: str


class TopupItem(BaseModel):
    id: int
    reference: str
    amount_kobo: int
    amount_display: str
    gateway: str
    status: str
    completed_at: str | None
    created_at: str

    @classmethod
    def from_topup(cls, topup: WalletTopup, currency: str) -> "TopupItem":
        return cls(
            id=topup.id,
            reference=topup.payment_reference,
            amount_kobo=topup.amount,
            amount_display=kobo_to_display(topup.amount, currency),
            gateway=topup.gateway,
            status=topup.status,
            completed_at=topup.completed_at.isoformat() if topup.completed_at else None,
            created_at=topup.created_at.isoformat() if topup.created_at else "",
        )


class InvariantReport(BaseModel):
    ok: bool
    violations: list[str]


class TopupOutcome(BaseModel):
    """Result of a provider callback or webhook delivery."""

    reference: str | None
    status: str  # completed / already_processed / failed / pending / ignored
    new_balance_kobo: int | None = None
    new_balance_display: str | None = None
