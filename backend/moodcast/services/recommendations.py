from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Optional

import numpy as np

from ..core.clock import Clock, utcnow
from ..core.config import Settings
from ..core.errors import CacheWriteConflict, NoRecommendationsAvailable, StorageUnavailable
from .cache import RecommendationCache
from .catalog import TrackCatalog
from .context import ContextKey, SignalKind, Weather, time_of_day_at
from .entities import Recommendation, Track, TrackInteraction
from .fusion import fuse_candidates
from .sampling import filter_by_tempo, sample_tracks
from .users import UserStore

logger = logging.getLogger("recommendations")


class RecommendationService:
    """Entry point for contextual recommendations.

    A live cached entry for the (user, mood, weather, time_of_day) key is
    returned as is. Otherwise candidates are retrieved per signal, fused,
    narrowed to the user's tempo band, sampled and written back to the
    cache. A failed cache write does not fail the request.
    """

    def __init__(
        self,
        *,
        catalog: TrackCatalog,
        users: UserStore,
        cache: RecommendationCache,
        settings: Settings,
        clock: Clock = utcnow,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.catalog = catalog
        self.users = users
        self.cache = cache
        self.settings = settings
        self.clock = clock
        self._rng = rng

    async def get_recommendation(
        self,
        user_id: str,
        mood: object,
        weather: object,
        time_of_day: object,
    ) -> Recommendation:
        context = ContextKey.parse(mood, weather, time_of_day)

        cached = await self._find_cached(user_id, context)
        if cached is not None:
            logger.info(
                "Cache hit for user %s (%s/%s/%s)",
                user_id,
                context.mood.value,
                context.weather.value,
                context.time_of_day.value,
            )
            return cached

        preferences = await self.users.get_preferences(user_id)

        candidates = await self._retrieve(context)
        if not any(candidates.values()):
            logger.warning("No candidate tracks for user %s in context %s", user_id, context)
            raise NoRecommendationsAvailable()

        fused = fuse_candidates(candidates, self.settings.retrieval_limit)
        filtered = filter_by_tempo([entry.track for entry in fused], preferences)
        selected = sample_tracks(filtered, self.settings.output_count, self._rng_for_call())
        logger.info(
            "Recommending %s of %s fused tracks for user %s",
            len(selected),
            len(fused),
            user_id,
        )

        recommendation = Recommendation.create(
            user_id,
            context,
            [track.id for track in selected],
            now=self.clock(),
            ttl=timedelta(hours=self.settings.recommendation_ttl_hours),
        )
        return await self._persist(recommendation)

    async def get_recommendation_for_mood(self, user_id: str, mood: object) -> Recommendation:
        time_of_day = time_of_day_at(self.clock(), self.settings.tzinfo)
        return await self.get_recommendation(user_id, mood, Weather.SUNNY, time_of_day)

    async def save_track_interaction(self, user_id: str, track_id: str, liked: bool) -> TrackInteraction:
        return await self.users.log_track_interaction(user_id, track_id, liked, now=self.clock())

    async def _find_cached(self, user_id: str, context: ContextKey) -> Optional[Recommendation]:
        try:
            return await self.cache.find_live(user_id, context.mood, context.weather, context.time_of_day)
        except StorageUnavailable as exc:
            logger.warning("Cache lookup failed for user %s, recomputing: %s", user_id, exc)
            return None

    async def _retrieve(self, context: ContextKey) -> Dict[SignalKind, List[Track]]:
        limit = self.settings.retrieval_limit * 2
        candidates: Dict[SignalKind, List[Track]] = {}
        for kind, value in context.signals().items():
            candidates[kind] = await self.catalog.retrieve_by_signal(kind, value, limit)
        logger.debug(
            "Retrieved candidates: %s",
            {kind.value: len(tracks) for kind, tracks in candidates.items()},
        )
        return candidates

    async def _persist(self, recommendation: Recommendation) -> Recommendation:
        try:
            return await self.cache.upsert(recommendation)
        except (StorageUnavailable, CacheWriteConflict) as exc:
            logger.warning("Returning uncached recommendation for user %s: %s", recommendation.user_id, exc)
            return recommendation

    def _rng_for_call(self) -> np.random.Generator:
        if self._rng is not None:
            return self._rng
        return np.random.default_rng(self.settings.sampling_seed)
