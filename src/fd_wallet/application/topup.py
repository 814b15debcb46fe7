"""TopupReconciler — turns externally paid topups into exactly one wallet credit.

The pending → completed step is a conditional UPDATE (WHERE status='pending')
executed in the same transaction as the ledger credit, so a duplicate callback
either finds the topup already completed or loses the UPDATE race; in both
cases no second credit is written.
"""

import json
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fd_common.enums import TopupGateway, TopupStatus, UserRole
from src.fd_common.errors import (
    ForbiddenError,
    InvalidWebhookSignatureError,
    PaymentGatewayError,
    TopupAlreadyCompletedError,
    TopupNotFoundError,
    TopupNotPendingError,
    UserNotFoundError,
    ValidationError,
)
from src.fd_common.money import kobo_to_display
from src.fd_common.references import new_topup_reference
from src.fd_gateway.user.directory import User, UserDirectory, UserDirectoryProtocol
from src.fd_wallet.application.ledger import WalletLedger
from src.fd_wallet.application.schemas import (
    PostingResponse,
    TopupCompleteResponse,
    TopupInitializeResponse,
    TopupItem,
    TopupOutcome,
)
from src.fd_wallet.domain.models import WalletTopup
from src.fd_wallet.domain.repository import TopupRepositoryProtocol
from src.fd_wallet.infrastructure.paystack_client import (
    PaymentGatewayClientProtocol,
    PaymentVerification,
    PaystackClient,
    verify_webhook_signature,
)
from src.fd_wallet.infrastructure.persistence import TopupRepository

logger = logging.getLogger(__name__)


def _dump(payload: dict[str, Any]) -> str:
    return json.dumps(payload, default=str, sort_keys=True)


class TopupReconciler:
    def __init__(
        self,
        ledger: WalletLedger,
        repo: TopupRepositoryProtocol | None = None,
        gateway_client: PaymentGatewayClientProtocol | None = None,
        directory: UserDirectoryProtocol | None = None,
        min_amount: int | None = None,
        max_amount: int | None = None,
        simulation_enabled: bool | None = None,
        webhook_secret: str | None = None,
    ) -> None:
        self._ledger = ledger
        self._repo: TopupRepositoryProtocol = repo or TopupRepository()
        self._client: PaymentGatewayClientProtocol = gateway_client or PaystackClient()
        self._directory: UserDirectoryProtocol = directory or UserDirectory()
        self._min_amount = settings.TOPUP_MIN_AMOUNT if min_amount is None else min_amount
        self._max_amount = settings.TOPUP_MAX_AMOUNT if max_amount is None else max_amount
        self._simulation_enabled = (
            settings.TOPUP_SIMULATION_ENABLED if simulation_enabled is None else simulation_enabled
        )
        self._webhook_secret = webhook_secret or settings.PAYSTACK_SECRET_KEY

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize_topup(
        self, db: AsyncSession, user_id: str, amount: int, gateway: str
    ) -> TopupInitializeResponse:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Amount must be an integer number of kobo")
        if amount < self._min_amount:
            raise ValidationError(
                f"Minimum topup amount is {kobo_to_display(self._min_amount, self._ledger.currency)}"
            )
        if amount > self._max_amount:
            raise ValidationError(
                f"Maximum topup amount is {kobo_to_display(self._max_amount, self._ledger.currency)}"
            )
        try:
            gw = TopupGateway(gateway)
        except ValueError:
            raise ValidationError(f"Unsupported payment gateway: {gateway}") from None

        wallet = await self._ledger.get_or_create(db, user_id)
        reference = new_topup_reference()
        # The pending row is committed before any outbound call so a crash or
        # gateway timeout leaves a reconcilable record behind.
        try:
            await self._repo.create_topup(db, user_id, wallet.id, amount, reference, gw.value)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        authorization_url: str | None = None
        if gw.has_hosted_checkout:
            user = await self._directory.get_user(db, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            try:
                authorization_url = await self._client.initialize_payment(
                    user.email, amount, reference, user_id
                )
            except PaymentGatewayError:
                logger.warning("Topup %s left pending: gateway initialization failed", reference)
                raise

        logger.info("Topup %s initialized: user=%s amount=%d via %s", reference, user_id, amount, gw.value)
        return TopupInitializeResponse(
            reference=reference,
            amount_kobo=amount,
            gateway=gw.value,
            authorization_url=authorization_url,
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def complete_topup(
        self, db: AsyncSession, reference: str, gateway_payload: dict[str, Any]
    ) -> TopupCompleteResponse:
        topup = await self._get_topup(db, reference)
        self._ensure_pending(topup)

        async with self._ledger.wallet_lock(topup.user_id):
            try:
                completed = await self._repo.mark_completed(db, reference, _dump(gateway_payload))
                if completed is None:
                    # Another request moved it out of pending after our read.
                    current = await self._get_topup(db, reference)
                    self._ensure_pending(current)
                    raise TopupNotPendingError(reference, current.status)
                posting = await self._ledger.apply_credit(
                    db,
                    completed.user_id,
                    completed.amount,
                    f"Wallet topup via {completed.gateway}",
                    topup_id=completed.id,
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._ledger.announce_credit(completed.user_id, posting)
        logger.info("Topup %s completed: +%d kobo", reference, completed.amount)
        return TopupCompleteResponse(
            reference=reference,
            new_balance_kobo=posting.new_balance,
            new_balance_display=kobo_to_display(posting.new_balance, posting.wallet.currency),
        )

    async def fail_topup(
        self, db: AsyncSession, reference: str, gateway_payload: dict[str, Any]
    ) -> WalletTopup:
        topup = await self._get_topup(db, reference)
        self._ensure_pending(topup)
        try:
            failed = await self._repo.mark_failed(db, reference, _dump(gateway_payload))
            if failed is None:
                current = await self._get_topup(db, reference)
                self._ensure_pending(current)
                raise TopupNotPendingError(reference, current.status)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Topup %s marked failed", reference)
        return failed

    async def verify_external_payment(self, reference: str) -> PaymentVerification:
        """Ask the provider about a payment. No local state changes."""
        return await self._client.verify_payment(reference)

    async def handle_paystack_callback(self, db: AsyncSession, reference: str) -> TopupOutcome:
        topup = await self._get_topup(db, reference)
        if topup.status == TopupStatus.COMPLETED.value:
            return TopupOutcome(reference=reference, status="already_processed")

        verification = await self.verify_external_payment(reference)
        if verification.success:
            paid = verification.raw.get("amount")
            if paid is not None and int(paid) != topup.amount:
                logger.error(
                    "Topup %s amount mismatch: expected %d, provider reported %s",
                    reference, topup.amount, paid,
                )
                raise PaymentGatewayError("Verified amount does not match topup amount")
            return await self._complete_once(db, reference, verification.raw)

        if verification.is_definitive_failure:
            try:
                await self.fail_topup(db, reference, verification.raw)
            except (TopupAlreadyCompletedError, TopupNotPendingError):
                return TopupOutcome(reference=reference, status="already_processed")
            return TopupOutcome(reference=reference, status=TopupStatus.FAILED.value)

        return TopupOutcome(reference=reference, status=TopupStatus.PENDING.value)

    async def handle_paystack_webhook(
        self, db: AsyncSession, raw_body: bytes, signature: str | None
    ) -> TopupOutcome:
        if not verify_webhook_signature(raw_body, signature, self._webhook_secret):
            raise InvalidWebhookSignatureError()
        try:
            event = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Webhook body is not valid JSON") from None

        data = event.get("data") or {}
        reference = data.get("reference")
        if event.get("event") != "charge.success" or not reference:
            return TopupOutcome(reference=reference, status="ignored")

        topup = await self._repo.get_by_reference(db, reference)
        if topup is None:
            # Charges not started through the wallet are none of our business.
            logger.info("Webhook for unknown reference %s ignored", reference)
            return TopupOutcome(reference=reference, status="ignored")
        if data.get("amount") is not None and int(data["amount"]) != topup.amount:
            logger.error("Webhook amount mismatch for topup %s", reference)
            raise ValidationError("Webhook amount does not match topup amount")
        return await self._complete_once(db, reference, data)

    async def simulate_complete(
        self, db: AsyncSession, reference: str, actor: User
    ) -> TopupCompleteResponse:
        """Complete a simulated-gateway topup. Only its owner (or an admin) may do so."""
        if not self._simulation_enabled:
            raise ValidationError("Topup simulation is disabled")
        topup = await self._get_topup(db, reference)
        if topup.user_id != actor.id and actor.role != UserRole.ADMIN:
            raise ForbiddenError("Topup belongs to another user")
        if TopupGateway(topup.gateway).has_hosted_checkout:
            raise ValidationError("Hosted-checkout topups must be verified with the gateway")
        return await self.complete_topup(db, reference, {"status": "success", "gateway": "simulation"})

    # ------------------------------------------------------------------
    # Queries / support
    # ------------------------------------------------------------------

    async def list_topups(self, db: AsyncSession, user_id: str, limit: int = 50) -> list[TopupItem]:
        topups = await self._repo.list_by_user(db, user_id, limit)
        return [TopupItem.from_topup(t, self._ledger.currency) for t in topups]

    async def admin_credit(
        self, db: AsyncSession, target_user_id: str, amount: int, description: str
    ) -> PostingResponse:
        user = await self._directory.get_user(db, target_user_id)
        if user is None:
            raise UserNotFoundError(target_user_id)
        posting = await self._ledger.credit(
            db, target_user_id, amount, f"Admin credit: {description}"
        )
        return PostingResponse(
            new_balance_kobo=posting.new_balance,
            new_balance_display=kobo_to_display(posting.new_balance, posting.wallet.currency),
            amount_kobo=amount,
            transaction_id=posting.transaction.id,
            reference=posting.transaction.reference,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_topup(self, db: AsyncSession, reference: str) -> WalletTopup:
        topup = await self._repo.get_by_reference(db, reference)
        if topup is None:
            raise TopupNotFoundError(reference)
        return topup

    @staticmethod
    def _ensure_pending(topup: WalletTopup) -> None:
        if topup.status == TopupStatus.COMPLETED.value:
            raise TopupAlreadyCompletedError(topup.payment_reference)
        if topup.status != TopupStatus.PENDING.value:
            raise TopupNotPendingError(topup.payment_reference, topup.status)

    async def _complete_once(
        self, db: AsyncSession, reference: str, payload: dict[str, Any]
    ) -> TopupOutcome:
        try:
            result = await self.complete_topup(db, reference, payload)
        except TopupAlreadyCompletedError:
            return TopupOutcome(reference=reference, status="already_processed")
        return TopupOutcome(
            reference=reference,
            status=TopupStatus.COMPLETED.value,
            new_balance_kobo=result.new_balance_kobo,
            new_balance_display=result.new_balance_display,
        )
