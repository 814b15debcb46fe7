"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.container import build_services
from src.fd_common.database import check_database, engine
from src.fd_common.errors import AppError
from src.fd_common.redis_client import close_redis, ping_redis
from src.fd_common.response import error_context, error_response
from src.fd_gateway.middleware.request_log import RequestLogMiddleware
from src.fd_notification.infrastructure.registry import ConnectionRegistry
from src.fd_notification.service import NotificationService
from src.fd_order.api.admin_router import router as admin_router
from src.fd_order.api.rider_router import router as rider_router
from src.fd_order.api.router import router as order_router
from src.fd_wallet.api.router import router as wallet_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    # Startup
    await check_database()
    await ping_redis()
    logger.info("%s started", settings.APP_NAME)
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# The realtime transport registers its connections here; the core only ever
# sees the notification service built on top of it.
app.state.connections = ConnectionRegistry()
app.state.services = build_services(NotificationService(app.state.connections))

app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: [%d] %s", request.method, request.url.path, exc.code, exc.message)
    resp = error_response(exc.code, exc.message, error_context(exc))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(order_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(rider_router, prefix="/api/v1")
app.include_router(wallet_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
