"""Admin endpoints: order lifecycle, rider assignment and ledger audit."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Services, get_services
from src.fd_common.database import get_db_session
from src.fd_common.enums import UserRole
from src.fd_common.response import ApiResponse, success_response
from src.fd_gateway.auth.dependencies import require_role
from src.fd_gateway.user.directory import User
from src.fd_order.application.schemas import (
    AssignRiderRequest,
    ChangeStatusRequest,
    OrderResponse,
)
from src.fd_wallet.application.schemas import InvariantReport

router = APIRouter(prefix="/admin", tags=["admin"])

Db = Annotated[AsyncSession, Depends(get_db_session)]
Svc = Annotated[Services, Depends(get_services)]
Admin = Annotated[User, Depends(require_role(UserRole.ADMIN))]


@router.get("/orders")
async def list_orders(
    admin: Admin,
    db: Db,
    svc: Svc,
    request: Request,
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    status: str | None = Query(None),
) -> ApiResponse:
    data = await svc.orders.list_orders(db, admin, cursor, limit, status)
    return success_response(data.model_dump(), request)


@router.post("/orders/{order_id}/status")
async def change_status(
    order_id: int, body: ChangeStatusRequest, admin: Admin, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    order = await svc.orders.change_status(db, order_id, body.status, admin)
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.post("/orders/{order_id}/assign")
async def assign_rider(
    order_id: int, body: AssignRiderRequest, admin: Admin, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    order = await svc.orders.assign_rider(db, order_id, body.rider_id)
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.get("/wallets/invariants")
async def wallet_invariants(admin: Admin, db: Db, svc: Svc, request: Request) -> ApiResponse:
    discrepancies = await svc.ledger.verify_invariants(db)
    report = InvariantReport(
        ok=not discrepancies, violations=[d.describe() for d in discrepancies]
    )
    return success_response(report.model_dump(), request)
