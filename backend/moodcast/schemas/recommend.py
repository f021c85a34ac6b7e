from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..services.entities import Recommendation, Track


class RecommendRequest(BaseModel):
    mood: str = Field(..., description="One of the supported moods, e.g. 'happy'")
    weather: Optional[str] = Field(None, description="Current weather; looked up from coordinates when omitted")
    time_of_day: Optional[str] = Field(None, description="morning/afternoon/evening/night; derived from the clock when omitted")
    latitude: Optional[float] = Field(None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(None, ge=-180.0, le=180.0)


class TrackItem(BaseModel):
    id: str
    spotify_id: str
    name: str
    artist: str
    album: str
    popularity: int
    tempo: float
    preview_url: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_track(cls, track: Track) -> "TrackItem":
        return cls(
            id=track.id,
            spotify_id=track.spotify_id,
            name=track.name,
            artist=track.artist,
            album=track.album,
            popularity=track.popularity,
            tempo=track.features.tempo,
            preview_url=track.preview_url,
            image_url=track.image_url,
        )


class RecommendResponse(BaseModel):
    id: Optional[str] = None
    user_id: str
    mood: str
    weather: str
    time_of_day: str
    track_ids: List[str]
    tracks: List[TrackItem] = []
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_recommendation(cls, recommendation: Recommendation, tracks: List[Track] | None = None) -> "RecommendResponse":
        return cls(
            id=recommendation.id,
            user_id=recommendation.user_id,
            mood=recommendation.mood.value,
            weather=recommendation.weather.value,
            time_of_day=recommendation.time_of_day.value,
            track_ids=list(recommendation.track_ids),
            tracks=[TrackItem.from_track(track) for track in tracks or []],
            created_at=recommendation.created_at,
            expires_at=recommendation.expires_at,
        )


class RecommendationList(BaseModel):
    recommendations: List[RecommendResponse] = []


class HealthResponse(BaseModel):
    ok: bool = True
