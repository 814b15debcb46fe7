"""fd_wallet REST API — wallet, transactions and topups.

All endpoints require JWT authentication except the two Paystack entry points:
the browser callback (verified against the provider) and the server webhook
(verified by HMAC signature).
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Services, get_services
from src.fd_common.database import get_db_session
from src.fd_common.enums import UserRole
from src.fd_common.errors import AppError
from src.fd_common.response import ApiResponse, success_response
from src.fd_gateway.auth.dependencies import get_current_user, require_role
from src.fd_gateway.user.directory import User
from src.fd_wallet.application.schemas import (
    AdminCreditRequest,
    CheckBalanceRequest,
    SimulateCompleteRequest,
    TopupCompleteRequest,
    TopupInitializeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["wallet"])

CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]
Db = Annotated[AsyncSession, Depends(get_db_session)]
Svc = Annotated[Services, Depends(get_services)]


@router.get("")
async def get_wallet(current_user: CurrentUser, db: Db, svc: Svc, request: Request) -> ApiResponse:
    data = await svc.ledger.get_balance(db, current_user.id)
    return success_response(data.model_dump(), request)


@router.get("/transactions")
async def list_transactions(
    current_user: CurrentUser,
    db: Db,
    svc: Svc,
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    type: str | None = Query(None, pattern="^(credit|debit)$", description="credit or debit"),
) -> ApiResponse:
    data = await svc.ledger.list_transactions(db, current_user.id, cursor, limit, type)
    return success_response(data.model_dump(), request)


@router.post("/check-balance")
async def check_balance(
    body: CheckBalanceRequest, current_user: CurrentUser, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    data = await svc.ledger.check_sufficient_balance(db, current_user.id, body.amount_kobo)
    return success_response(data.model_dump(), request)


@router.post("/topup/initialize")
async def initialize_topup(
    body: TopupInitializeRequest, current_user: CurrentUser, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    data = await svc.topups.initialize_topup(
        db, current_user.id, body.amount_kobo, body.gateway.value
    )
    return success_response(data.model_dump(), request)


@router.post("/topup/complete")
async def complete_topup(
    body: TopupCompleteRequest, admin: AdminUser, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    data = await svc.topups.complete_topup(db, body.reference, body.gateway_data)
    return success_response(data.model_dump(), request)


@router.get("/topup/paystack/callback")
async def paystack_callback(
    db: Db,
    svc: Svc,
    reference: str | None = Query(None),
    trxref: str | None = Query(None),
) -> RedirectResponse:
    payment_reference = reference or trxref
    if not payment_reference:
        return RedirectResponse("/wallet?error=missing_reference", status_code=302)
    try:
        outcome = await svc.topups.handle_paystack_callback(db, payment_reference)
    except AppError as exc:
        logger.warning("Paystack callback for %s failed: %s", payment_reference, exc.message)
        return RedirectResponse("/wallet?error=verification_failed", status_code=302)
    if outcome.status in ("completed", "already_processed"):
        return RedirectResponse("/wallet?success=payment_completed", status_code=302)
    return RedirectResponse(f"/wallet?error=payment_{outcome.status}", status_code=302)


@router.post("/topup/paystack/webhook")
async def paystack_webhook(
    request: Request,
    db: Db,
    svc: Svc,
    x_paystack_signature: Annotated[str | None, Header()] = None,
) -> ApiResponse:
    raw_body = await request.body()
    data = await svc.topups.handle_paystack_webhook(db, raw_body, x_paystack_signature)
    return success_response(data.model_dump(), request)


@router.post("/topup/simulate-complete")
async def simulate_complete(
    body: SimulateCompleteRequest, current_user: CurrentUser, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    data = await svc.topups.simulate_complete(db, body.reference, current_user)
    return success_response(data.model_dump(), request)


@router.get("/topups")
async def list_topups(
    current_user: CurrentUser,
    db: Db,
    svc: Svc,
    request: Request,
    limit: int = Query(50, ge=1, le=100),
) -> ApiResponse:
    items = await svc.topups.list_topups(db, current_user.id, limit)
    return success_response([i.model_dump() for i in items], request)


@router.post("/admin/credit")
async def admin_credit(
    body: AdminCreditRequest, admin: AdminUser, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    data = await svc.topups.admin_credit(
        db, body.target_user_id, body.amount_kobo, body.description
    )
    logger.info(
        "Admin %s credited %d kobo to user %s", admin.id, body.amount_kobo, body.target_user_id
    )
    return success_response(data.model_dump(), request)
