# file: app/core/redis.py

import redis.asyncio as aioredis
import logging
from app.core.settings import settings

logger = logging.getLogger("redis")

# ============================================================
# 🔌 Redis connection (singleton)
# ============================================================

redis_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """
    Returns a reusable Redis client (singleton).
    """
    global redis_client

    if redis_client is None:
        try:
            redis_client = aioredis.Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                password=settings.REDIS_PASSWORD or None,
                db=0,
                decode_responses=True,
            )

            pong = await redis_client.ping()
            if pong:
                logger.info("⚡ Redis connected")

        except Exception as e:
            logger.error(f"❌ Error connecting to Redis: {e}")
            redis_client = None
            raise

    return redis_client


async def close_redis():
    global redis_client

    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


# ============================================================
# 🧩 Cache helpers
# Cache faults are logged and never propagate: callers always
# have the database as the source of truth.
# ============================================================

async def cache_set(key: str, value: str, ttl_seconds: int | None = None):
    """
    Stores a value with optional TTL.
    """
    try:
        redis = await get_redis()
        await redis.set(key, value, ex=ttl_seconds)
        logger.debug(f"[redis] SET {key} = {value} (ttl={ttl_seconds})")

    except Exception as e:
        logger.error(f"❌ Error in cache_set({key}): {e}")


async def cache_get(key: str) -> str | None:
    try:
        redis = await get_redis()
        value = await redis.get(key)
        logger.debug(f"[redis] GET {key} -> {value}")
        return value
    except Exception as e:
        logger.error(f"❌ Error in cache_get({key}): {e}")
        return None


async def cache_delete(key: str):
    try:
        redis = await get_redis()
        await redis.delete(key)
        logger.debug(f"[redis] DEL {key}")
    except Exception as e:
        logger.error(f"❌ Error in cache_delete({key}): {e}")
