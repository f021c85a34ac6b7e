from __future__ import annotations

from redis.asyncio import Redis

from ..core.config import get_settings

settings = get_settings()

# Shared pool, closed by the app lifespan.
redis = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)


def get_redis() -> Redis:
    return redis


async def acquire_lock(client: Redis, key: str, *, ttl: int = 30) -> bool:
    """Take ``key`` for ``ttl`` seconds unless another holder has it."""
    return bool(await client.set(name=key, value="1", nx=True, ex=ttl))


async def release_lock(client: Redis, key: str) -> None:
    await client.delete(key)
