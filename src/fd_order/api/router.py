"""Customer order endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Services, get_services
from src.fd_common.database import get_db_session
from src.fd_common.enums import OrderStatus, UserRole
from src.fd_common.response import ApiResponse, success_response
from src.fd_gateway.auth.dependencies import get_current_user, require_role
from src.fd_gateway.user.directory import User
from src.fd_order.application.schemas import CreateOrderRequest, OrderResponse

router = APIRouter(prefix="/orders", tags=["orders"])

Db = Annotated[AsyncSession, Depends(get_db_session)]
Svc = Annotated[Services, Depends(get_services)]
Customer = Annotated[User, Depends(require_role(UserRole.CUSTOMER))]


@router.post("", status_code=201)
async def create_order(
    body: CreateOrderRequest, current_user: Customer, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    order = await svc.orders.create_order(
        db,
        current_user.id,
        body.address_id,
        [(item.food_id, item.quantity) for item in body.items],
        body.payment_method.value,
    )
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.get("")
async def list_orders(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Db,
    svc: Svc,
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
    status: str | None = Query(None, description="Filter by order status"),
) -> ApiResponse:
    data = await svc.orders.list_orders(db, current_user, cursor, limit, status)
    return success_response(data.model_dump(), request)


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Db,
    svc: Svc,
    request: Request,
) -> ApiResponse:
    order = await svc.orders.get_order(db, order_id, current_user)
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.get("/{order_id}/code")
async def get_delivery_code(
    order_id: int, current_user: Customer, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    data = await svc.orders.get_delivery_code(db, order_id, current_user.id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int, current_user: Customer, db: Db, svc: Svc, request: Request
) -> ApiResponse:
    order = await svc.orders.change_status(
        db, order_id, OrderStatus.CANCELLED.value, current_user
    )
    return success_response(OrderResponse.from_order(order).model_dump(), request)
