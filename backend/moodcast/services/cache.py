from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..cache.redis import acquire_lock, release_lock
from ..core.clock import Clock, ensure_utc, utcnow
from ..core.errors import CacheWriteConflict, StorageUnavailable
from ..db import models
from ..db.storage import storage_call
from .context import Mood, TimeOfDay, Weather
from .entities import Recommendation

logger = logging.getLogger("recommendation.cache")


def _context_filter(user_id: str, mood: Mood, weather: Weather, time_of_day: TimeOfDay) -> Any:
    return and_(
        models.Recommendation.user_id == user_id,
        models.Recommendation.mood == mood.value,
        models.Recommendation.weather == weather.value,
        models.Recommendation.time_of_day == time_of_day.value,
    )


def _to_entity(row: models.Recommendation) -> Recommendation:
    return Recommendation(
        id=row.id,
        user_id=row.user_id,
        mood=Mood(row.mood),
        weather=Weather(row.weather),
        time_of_day=TimeOfDay(row.time_of_day),
        track_ids=list(row.track_ids or []),
        created_at=ensure_utc(row.created_at),
        expires_at=ensure_utc(row.expires_at),
    )


class RecommendationCache:
    """Time-bounded store of computed recommendations.

    One live row per (user, mood, weather, time_of_day). ``upsert`` runs its
    read-then-write inside one transaction, serialized per context key by a
    Redis lock when Redis is reachable; the unique constraint on the context
    columns catches whatever slips past the lock, and a lost race is retried
    once before surfacing as ``CacheWriteConflict``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        redis: Redis | None = None,
        clock: Clock = utcnow,
        timeout: float | None = None,
        lock_ttl: int = 30,
    ) -> None:
        self._session_factory = session_factory
        self._redis = redis
        self._clock = clock
        self._timeout = timeout
        self._lock_ttl = lock_ttl

    async def find_live(
        self,
        user_id: str,
        mood: Mood,
        weather: Weather,
        time_of_day: TimeOfDay,
    ) -> Optional[Recommendation]:
        now = self._clock()
        stmt = (
            select(models.Recommendation)
            .where(_context_filter(user_id, mood, weather, time_of_day), models.Recommendation.expires_at > now)
            .order_by(models.Recommendation.created_at.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            async with storage_call("find recommendation", self._timeout):
                row = (await session.execute(stmt)).scalars().first()
            return _to_entity(row) if row is not None else None

    async def get_for_user(self, user_id: str) -> List[Recommendation]:
        now = self._clock()
        stmt = (
            select(models.Recommendation)
            .where(models.Recommendation.user_id == user_id, models.Recommendation.expires_at > now)
            .order_by(models.Recommendation.created_at.desc())
        )
        async with self._session_factory() as session:
            async with storage_call("list recommendations", self._timeout):
                rows = (await session.execute(stmt)).scalars().all()
            return [_to_entity(row) for row in rows]

    async def upsert(self, recommendation: Recommendation) -> Recommendation:
        lock_key = self._lock_key(recommendation)
        lock_acquired = await self._acquire(lock_key)
        try:
            try:
                return await self._write(recommendation)
            except IntegrityError:
                logger.info("Recommendation write for %s lost a race, retrying", lock_key)
            try:
                return await self._write(recommendation)
            except IntegrityError as exc:
                raise CacheWriteConflict(f"concurrent write for {lock_key}") from exc
        finally:
            if lock_acquired:
                await self._release(lock_key)

    async def delete_expired(self) -> int:
        now = self._clock()
        async with self._session_factory() as session:
            async with storage_call("delete expired recommendations", self._timeout):
                async with session.begin():
                    result = await session.execute(
                        delete(models.Recommendation).where(models.Recommendation.expires_at <= now)
                    )
        removed = result.rowcount or 0
        if removed:
            logger.info("Removed %s expired recommendations", removed)
        return removed

    async def _write(self, recommendation: Recommendation) -> Recommendation:
        now = self._clock()
        key_filter = _context_filter(
            recommendation.user_id,
            recommendation.mood,
            recommendation.weather,
            recommendation.time_of_day,
        )
        async with self._session_factory() as session:
            async with storage_call("upsert recommendation", self._timeout):
                async with session.begin():
                    stmt = (
                        select(models.Recommendation)
                        .where(key_filter, models.Recommendation.expires_at > now)
                        .with_for_update()
                    )
                    row = (await session.execute(stmt)).scalars().first()
                    if row is not None:
                        row.track_ids = list(recommendation.track_ids)
                        row.created_at = recommendation.created_at
                        row.expires_at = recommendation.expires_at
                    else:
                        # an unswept expired row would trip the unique constraint
                        await session.execute(
                            delete(models.Recommendation).where(key_filter, models.Recommendation.expires_at <= now)
                        )
                        row = models.Recommendation(
                            id=str(uuid.uuid4()),
                            user_id=recommendation.user_id,
                            mood=recommendation.mood.value,
                            weather=recommendation.weather.value,
                            time_of_day=recommendation.time_of_day.value,
                            track_ids=list(recommendation.track_ids),
                            created_at=recommendation.created_at,
                            expires_at=recommendation.expires_at,
                        )
                        session.add(row)
                    await session.flush()
                    saved = _to_entity(row)
        logger.debug("Stored recommendation %s for %s", saved.id, self._lock_key(saved))
        return saved

    @staticmethod
    def _lock_key(recommendation: Recommendation) -> str:
        return (
            f"recommendation:{recommendation.user_id}:{recommendation.mood.value}:"
            f"{recommendation.weather.value}:{recommendation.time_of_day.value}:lock"
        )

    async def _acquire(self, key: str) -> bool:
        if self._redis is None:
            return False
        try:
            acquired = await acquire_lock(self._redis, key, ttl=self._lock_ttl)
        except RedisError as exc:
            logger.warning("Redis lock unavailable for %s: %s", key, exc)
            return False
        if not acquired:
            logger.debug("Lock %s held elsewhere, relying on unique constraint", key)
        return acquired

    async def _release(self, key: str) -> None:
        try:
            await release_lock(self._redis, key)
        except RedisError as exc:
            logger.warning("Failed to release lock %s: %s", key, exc)


async def run_expiry_sweeper(cache: RecommendationCache, interval_seconds: float) -> None:
    """Periodically drop expired recommendations until cancelled."""
    while True:
        try:
            await cache.delete_expired()
        except StorageUnavailable as exc:
            logger.warning("Expiry sweep failed: %s", exc)
        await asyncio.sleep(interval_seconds)
