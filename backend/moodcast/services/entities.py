from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from .context import ContextKey, Mood, TimeOfDay, Weather
from .features import AudioFeatures

DEFAULT_MIN_TEMPO = 0.0
DEFAULT_MAX_TEMPO = 250.0


@dataclass(frozen=True, slots=True)
class Track:
    id: str
    spotify_id: str
    name: str
    artist: str = ""
    album: str = ""
    release_date: Optional[date] = None
    popularity: int = 0
    features: AudioFeatures = field(default_factory=AudioFeatures)
    preview_url: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class UserPreferences:
    min_tempo: float = DEFAULT_MIN_TEMPO
    max_tempo: float = DEFAULT_MAX_TEMPO
    # declared on the user profile, not applied when ranking
    favorite_genres: Tuple[str, ...] = ()
    disliked_genres: Tuple[str, ...] = ()
    preferred_moods: Tuple[str, ...] = ()


@dataclass(slots=True)
class Recommendation:
    user_id: str
    mood: Mood
    weather: Weather
    time_of_day: TimeOfDay
    track_ids: List[str]
    created_at: datetime
    expires_at: datetime
    id: Optional[str] = None

    @classmethod
    def create(
        cls,
        user_id: str,
        context: ContextKey,
        track_ids: List[str],
        *,
        now: datetime,
        ttl: timedelta = timedelta(hours=24),
    ) -> "Recommendation":
        return cls(
            user_id=user_id,
            mood=context.mood,
            weather=context.weather,
            time_of_day=context.time_of_day,
            track_ids=list(track_ids),
            created_at=now,
            expires_at=now + ttl,
        )

    @property
    def context(self) -> ContextKey:
        return ContextKey(mood=self.mood, weather=self.weather, time_of_day=self.time_of_day)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True, slots=True)
class TrackInteraction:
    user_id: str
    track_id: str
    liked: bool
    created_at: datetime
    id: Optional[int] = None
