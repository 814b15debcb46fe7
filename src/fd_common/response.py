"""Unified API response wrapper.

All API endpoints return this format:
{
    "code": 0,           // 0=success, non-0=AppError code
    "message": "success",
    "data": { ... },     // null on error unless the error carries context
    "timestamp": "...",
    "request_id": "..."
}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field

from src.fd_common.errors import AppError, InsufficientFundsError, InvalidTransitionError


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    resp = ApiResponse(code=0, message="success", data=data)
    if request is not None:
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


def error_response(code: int, message: str, data: Any = None) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=data)


def error_context(exc: AppError) -> dict[str, Any] | None:
    """Machine-readable context for errors the caller can act on."""
    if isinstance(exc, InsufficientFundsError):
        return {
            "current_balance": exc.balance,
            "required_amount": exc.required,
            "shortfall": exc.shortfall,
        }
    if isinstance(exc, InvalidTransitionError):
        return {"current_status": exc.current, "requested_status": exc.requested}
    if exc.retryable:
        return {"retryable": True}
    return None
