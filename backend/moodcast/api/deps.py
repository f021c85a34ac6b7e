from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..cache.redis import get_redis
from ..core.clock import Clock, utcnow
from ..core.config import Settings, get_settings
from ..db.session import AsyncSessionFactory
from ..services.cache import RecommendationCache
from ..services.catalog import TrackCatalog
from ..services.recommendations import RecommendationService
from ..services.users import UserStore
from ..weather.client import OpenWeatherClient


async def get_settings_dep() -> Settings:
    return get_settings()


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return AsyncSessionFactory


async def get_redis_dep() -> Redis:
    return get_redis()


async def get_clock() -> Clock:
    return utcnow


async def get_recommendation_service(
    settings: Settings = Depends(get_settings_dep),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    redis: Redis = Depends(get_redis_dep),
    clock: Clock = Depends(get_clock),
) -> RecommendationService:
    timeout = settings.storage_timeout_seconds
    return RecommendationService(
        catalog=TrackCatalog(session_factory, timeout=timeout),
        users=UserStore(session_factory, timeout=timeout),
        cache=RecommendationCache(
            session_factory,
            redis=redis,
            clock=clock,
            timeout=timeout,
            lock_ttl=settings.cache_lock_ttl_seconds,
        ),
        settings=settings,
        clock=clock,
    )


async def get_weather_client(
    settings: Settings = Depends(get_settings_dep),
) -> AsyncIterator[OpenWeatherClient | None]:
    if not settings.openweather_api_key:
        yield None
        return
    client = OpenWeatherClient(
        api_key=settings.openweather_api_key,
        base_url=settings.openweather_base_url,
        timeout=settings.http_timeout_seconds,
        retries=settings.http_retries,
    )
    try:
        yield client
    finally:
        await client.close()
