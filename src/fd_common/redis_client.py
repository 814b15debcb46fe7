"""Redis client for short-lived counters (delivery-code attempts).

Balances and order state never live here; PostgreSQL is the only source of
truth for money. Keys are namespaced with REDIS_KEY_PREFIX so several
deployments can share one Redis.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


def redis_key(*parts: object) -> str:
    """redis_key("delivery_code_attempts", 42) -> "foodies:delivery_code_attempts:42"."""
    return ":".join([settings.REDIS_KEY_PREFIX, *(str(p) for p in parts)])


async def get_redis() -> aioredis.Redis:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            health_check_interval=30,
        )
    return _redis_pool


async def ping_redis() -> None:
    redis = await get_redis()
    await redis.ping()


async def close_redis() -> None:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
