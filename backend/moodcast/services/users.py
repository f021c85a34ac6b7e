from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import InvalidPreferences, TrackNotFound, UserNotFound
from ..db import models
from ..db.storage import storage_call
from .entities import DEFAULT_MAX_TEMPO, DEFAULT_MIN_TEMPO, TrackInteraction, UserPreferences

logger = logging.getLogger("users")


def preferences_from_row(row: models.User) -> UserPreferences:
    return UserPreferences(
        min_tempo=DEFAULT_MIN_TEMPO if row.min_tempo is None else float(row.min_tempo),
        max_tempo=DEFAULT_MAX_TEMPO if row.max_tempo is None else float(row.max_tempo),
        favorite_genres=tuple(row.favorite_genres or ()),
        disliked_genres=tuple(row.disliked_genres or ()),
        preferred_moods=tuple(row.preferred_moods or ()),
    )


def _check_tempo_band(preferences: UserPreferences) -> None:
    if preferences.min_tempo < 0 or preferences.max_tempo < 0:
        raise InvalidPreferences("tempo bounds must not be negative")
    if preferences.min_tempo > preferences.max_tempo:
        raise InvalidPreferences(
            f"min_tempo {preferences.min_tempo} is above max_tempo {preferences.max_tempo}"
        )


class UserStore:
    """User profiles: tempo band and declared tastes, plus like/dislike history."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, timeout: float | None = None) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    async def get_preferences(self, user_id: str) -> UserPreferences:
        async with self._session_factory() as session:
            async with storage_call("get user", self._timeout):
                row = await session.get(models.User, user_id)
            if row is None:
                raise UserNotFound(user_id)
            return preferences_from_row(row)

    async def update_preferences(self, user_id: str, preferences: UserPreferences) -> UserPreferences:
        """Replace the stored preferences wholesale and return what was saved."""
        _check_tempo_band(preferences)
        async with self._session_factory() as session:
            async with storage_call("update preferences", self._timeout):
                async with session.begin():
                    row = await session.get(models.User, user_id)
                    if row is None:
                        raise UserNotFound(user_id)
                    row.min_tempo = preferences.min_tempo
                    row.max_tempo = preferences.max_tempo
                    row.favorite_genres = list(preferences.favorite_genres)
                    row.disliked_genres = list(preferences.disliked_genres)
                    row.preferred_moods = list(preferences.preferred_moods)
                    saved = preferences_from_row(row)
        logger.info("Updated preferences for user %s", user_id)
        return saved

    async def log_track_interaction(
        self,
        user_id: str,
        track_id: str,
        liked: bool,
        *,
        now: datetime,
    ) -> TrackInteraction:
        async with self._session_factory() as session:
            async with storage_call("log track interaction", self._timeout):
                async with session.begin():
                    if await session.get(models.User, user_id) is None:
                        raise UserNotFound(user_id)
                    if await session.get(models.Track, track_id) is None:
                        raise TrackNotFound(track_id)
                    row = models.TrackInteraction(user_id=user_id, track_id=track_id, liked=liked, created_at=now)
                    session.add(row)
                    await session.flush()
                    interaction = TrackInteraction(
                        id=row.id,
                        user_id=user_id,
                        track_id=track_id,
                        liked=liked,
                        created_at=now,
                    )
        logger.debug("User %s %s track %s", user_id, "liked" if liked else "disliked", track_id)
        return interaction
