from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Sequence, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from ..core.errors import TrackNotFound
from ..db import models
from ..db.storage import storage_call
from .context import Mood, SignalKind, TimeOfDay, Weather
from .entities import Track
from .features import AudioFeatures, Condition, Rule, SIGNAL_RULES, rule_for

logger = logging.getLogger("catalog")

# Signals the catalog filters on in SQL. Everything else falls back to the
# most popular tracks.
STORAGE_PREDICATES: Dict[SignalKind, FrozenSet[Enum]] = {
    SignalKind.MOOD: frozenset(Mood),
    SignalKind.WEATHER: frozenset({Weather.RAINY}),
    SignalKind.TIME_OF_DAY: frozenset({TimeOfDay.MORNING}),
}


def signals_without_storage_predicate() -> List[Tuple[SignalKind, Enum]]:
    """Signal values that are served by the popularity fallback."""
    missing: List[Tuple[SignalKind, Enum]] = []
    for kind, rules in SIGNAL_RULES.items():
        for value in rules:
            if value not in STORAGE_PREDICATES[kind]:
                missing.append((kind, value))
    return missing


def _condition_clause(condition: Condition) -> ColumnElement[bool]:
    column = getattr(models.TrackFeature, condition.field)
    if condition.op == ">":
        return column > condition.threshold
    return column < condition.threshold


def rule_clause(rule: Rule) -> ColumnElement[bool]:
    return or_(*(and_(*(_condition_clause(c) for c in clause)) for clause in rule))


def _features_from_row(row: models.TrackFeature | None) -> AudioFeatures:
    if row is None:
        return AudioFeatures()
    return AudioFeatures.from_mapping({name: getattr(row, name) for name in AudioFeatures.__slots__})


def track_from_row(row: models.Track) -> Track:
    return Track(
        id=row.id,
        spotify_id=row.spotify_id,
        name=row.name,
        artist=row.artist or "",
        album=row.album or "",
        release_date=row.release_date,
        popularity=row.popularity or 0,
        features=_features_from_row(row.features),
        preview_url=row.preview_url,
        image_url=row.image_url,
    )


def _feature_values(features: AudioFeatures) -> Dict[str, Any]:
    return {name: getattr(features, name) for name in AudioFeatures.__slots__}


class TrackCatalog:
    """Read access to the stored tracks, ranked by popularity."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, timeout: float | None = None) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    async def retrieve_by_signal(self, kind: SignalKind, value: Enum, limit: int) -> List[Track]:
        if limit <= 0:
            return []
        rule = rule_for(kind, value)
        if rule is None or value not in STORAGE_PREDICATES[kind]:
            logger.debug("No storage predicate for %s=%s, using most popular", kind.value, getattr(value, "value", value))
            return await self.get_most_popular(limit)

        stmt = (
            select(models.Track)
            .join(models.TrackFeature, models.TrackFeature.track_id == models.Track.id)
            .where(rule_clause(rule))
            .order_by(models.Track.popularity.desc(), models.Track.id.asc())
            .limit(limit)
        )
        tracks = await self._fetch(stmt, f"retrieve {kind.value}={value.value}")
        logger.debug("Retrieved %s tracks for %s=%s", len(tracks), kind.value, value.value)
        return tracks

    async def get_most_popular(self, limit: int) -> List[Track]:
        if limit <= 0:
            return []
        stmt = select(models.Track).order_by(models.Track.popularity.desc(), models.Track.id.asc()).limit(limit)
        return await self._fetch(stmt, "most popular tracks")

    async def get_track_by_id(self, track_id: str) -> Track:
        async with self._session_factory() as session:
            async with storage_call("get track", self._timeout):
                row = await session.get(models.Track, track_id)
            if row is None:
                raise TrackNotFound(track_id)
            return track_from_row(row)

    async def get_tracks_by_ids(self, track_ids: Sequence[str]) -> List[Track]:
        """Resolve ids to tracks in the given order, skipping unknown ids."""
        ids = list(dict.fromkeys(track_ids))
        if not ids:
            return []
        found = await self._fetch(select(models.Track).where(models.Track.id.in_(ids)), "get tracks")
        by_id = {track.id: track for track in found}
        return [by_id[track_id] for track_id in ids if track_id in by_id]

    async def save_tracks(self, tracks: Iterable[Track]) -> None:
        async with self._session_factory() as session:
            async with storage_call("save tracks", self._timeout):
                async with session.begin():
                    for track in tracks:
                        row = await session.get(models.Track, track.id)
                        if row is None:
                            row = models.Track(id=track.id, spotify_id=track.spotify_id, name=track.name)
                            session.add(row)
                        row.spotify_id = track.spotify_id
                        row.name = track.name
                        row.artist = track.artist
                        row.album = track.album
                        row.release_date = track.release_date
                        row.popularity = track.popularity
                        row.preview_url = track.preview_url
                        row.image_url = track.image_url
                        values = _feature_values(track.features)
                        if row.features is None:
                            row.features = models.TrackFeature(track_id=track.id, **values)
                        else:
                            for name, value in values.items():
                                setattr(row.features, name, value)

    async def _fetch(self, stmt: Any, operation: str) -> List[Track]:
        async with self._session_factory() as session:
            async with storage_call(operation, self._timeout):
                result = await session.execute(stmt)
                rows = result.scalars().all()
            return [track_from_row(row) for row in rows]
