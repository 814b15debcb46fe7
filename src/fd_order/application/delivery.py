"""Delivery verification — the rider proves hand-over with the customer's code.

Failed attempts are counted per order in Redis with a fixed window
(INCR + EXPIRE on first failure). Once the limit is reached, every further
attempt is refused until the window expires, even with the right code.
"""

import hmac
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fd_common.enums import OrderStatus
from src.fd_common.errors import DeliveryCodeLockedError, ForbiddenError
from src.fd_common.redis_client import get_redis, redis_key
from src.fd_gateway.user.directory import User
from src.fd_order.application.service import OrderService

logger = logging.getLogger(__name__)

RedisFactory = Callable[[], Awaitable[aioredis.Redis]]


class DeliveryAttemptLimiter:
    def __init__(
        self,
        redis_factory: RedisFactory = get_redis,
        max_attempts: int | None = None,
        window_seconds: int | None = None,
    ) -> None:
        self._redis_factory = redis_factory
        self._max_attempts = (
            settings.DELIVERY_CODE_MAX_ATTEMPTS if max_attempts is None else max_attempts
        )
        self._window = (
            settings.DELIVERY_CODE_ATTEMPT_WINDOW_SECONDS
            if window_seconds is None
            else window_seconds
        )

    @staticmethod
    def _key(order_id: int) -> str:
        return redis_key("delivery_code_attempts", order_id)

    async def ensure_not_locked(self, order_id: int) -> None:
        redis = await self._redis_factory()
        count = await redis.get(self._key(order_id))
        if count is not None and int(count) >= self._max_attempts:
            raise DeliveryCodeLockedError(order_id)

    async def record_failure(self, order_id: int) -> int:
        redis = await self._redis_factory()
        key = self._key(order_id)
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, self._window)
        return int(count)

    async def reset(self, order_id: int) -> None:
        redis = await self._redis_factory()
        await redis.delete(self._key(order_id))


class DeliveryVerifier:
    def __init__(self, orders: OrderService, limiter: DeliveryAttemptLimiter) -> None:
        self._orders = orders
        self._limiter = limiter

    async def verify_delivery(
        self, db: AsyncSession, order_id: int, submitted_code: str, rider: User
    ) -> bool:
        """True and the order is delivered, or False and nothing changed."""
        order = await self._orders.find_order(db, order_id)
        if order.rider_id != rider.id:
            raise ForbiddenError("This order is not assigned to you")
        await self._limiter.ensure_not_locked(order_id)

        expected = order.delivery_code or ""
        submitted = submitted_code.strip()
        if not expected or not hmac.compare_digest(expected.encode(), submitted.encode()):
            attempts = await self._limiter.record_failure(order_id)
            logger.info(
                "Wrong delivery code for order %s by rider %s (attempt %d)",
                order_id, rider.id, attempts,
            )
            return False

        await self._orders.change_status(db, order_id, OrderStatus.DELIVERED.value, rider)
        await self._limiter.reset(order_id)
        return True
