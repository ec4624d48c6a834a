"""Redis async client, built once per process by the app lifespan."""

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.config import Settings


def create_redis(settings: Settings) -> aioredis.Redis:
    """Return a Redis client backed by its own connection pool."""
    pool = aioredis.ConnectionPool.from_url(settings.redis_url, decode_responses=True)
    return aioredis.Redis(connection_pool=pool)


async def redis_healthy(client: aioredis.Redis) -> bool:
    try:
        return bool(await client.ping())
    except (RedisError, OSError):
        return False
