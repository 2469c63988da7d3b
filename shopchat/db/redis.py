# shopchat/db/redis.py
import logging
import redis.asyncio as redis
from redis.exceptions import RedisError
from shopchat.core.config import get_settings

logger = logging.getLogger(__name__)

redis_client: redis.Redis | None = None


async def connect():
    """
    Connect Redis when REDIS_URL is set. Missing or unreachable Redis only
    disables the embedding cache and cross-process session locks.
    """
    global redis_client
    settings = get_settings()
    if not settings.REDIS_URL:
        logger.warning("No REDIS_URL configured, skipping Redis connection.")
        redis_client = None
        return

    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await client.ping()
        redis_client = client
        logger.info("Redis connection successful")
    except (RedisError, OSError) as e:
        logger.warning(f"Failed to connect to Redis, continuing without it: {e}")
        await client.aclose()
        redis_client = None


async def disconnect():
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis disconnected")


def get_redis() -> redis.Redis | None:
    """None when Redis is not configured or unavailable; callers must handle it."""
    return redis_client
