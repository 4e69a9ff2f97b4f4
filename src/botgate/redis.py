import redis
import redis.asyncio as aioredis


async def init_redis(redis_url: str) -> aioredis.Redis:
    """Create and return an async Redis client, verifying connectivity with a ping."""
    client = aioredis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    # Verify connection
    await client.ping()
    return client


async def close_redis(client: aioredis.Redis) -> None:
    """Close the async Redis client connection."""
    await client.aclose()


def init_sync_redis(redis_url: str) -> redis.Redis:
    """Create a blocking Redis client for use inside Celery workers.

    No ping here: workers create the client lazily on first failure and a
    dead broker surfaces on the first command instead.
    """
    return redis.Redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
