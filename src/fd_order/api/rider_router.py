"""Rider endpoints: assigned orders, delivery progress and code verification."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Services, get_services
from src.fd_common.database import get_db_session
from src.fd_common.enums import OrderStatus, UserRole
from src.fd_common.errors import ValidationError
from src.fd_common.response import ApiResponse, success_response
from src.fd_gateway.auth.dependencies import require_role
from src.fd_gateway.user.directory import User
from src.fd_order.application.schemas import (
    ChangeStatusRequest,
    OrderResponse,
    VerifyDeliveryRequest,
    VerifyDeliveryResponse,
)
from src.fd_order.domain.state_machine import parse_status

router = APIRouter(prefix="/rider", tags=["rider"])

Db = Annotated[AsyncSession, Depends(get_db_session)]
Svc = Annotated[Services, Depends(get_services)]
Rider = Annotated[User, Depends(require_role(UserRole.RIDER))]


@router.get("/orders")
async def list_orders(
    rider: Rider,
    db: Db,
    svc: Svc,
    request: Request,
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    status: str | None = Query(None),
) -> ApiResponse:
    data = await svc.orders.list_orders(db, rider, cursor, limit, status)
    return success_response(data.model_dump(), request)


@router.post("/orders/{order_id}/status")
async def update_status(
    order_id: int, body: ChangeStatusRequest, rider: Rider, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    # Delivery is only reachable through /verify with the customer's code.
    if parse_status(body.status) is OrderStatus.DELIVERED:
        raise ValidationError("Use POST /rider/orders/{id}/verify with the delivery code")
    order = await svc.orders.change_status(db, order_id, body.status, rider)
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.post("/orders/{order_id}/verify")
async def verify_delivery(
    order_id: int, body: VerifyDeliveryRequest, rider: Rider, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    verified = await svc.delivery.verify_delivery(db, order_id, body.code, rider)
    data = VerifyDeliveryResponse(order_id=order_id, verified=verified)
    return success_response(data.model_dump(), request)
