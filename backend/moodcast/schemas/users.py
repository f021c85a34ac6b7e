from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..services.entities import DEFAULT_MAX_TEMPO, DEFAULT_MIN_TEMPO, TrackInteraction, UserPreferences


class PreferencesPayload(BaseModel):
    min_tempo: float = Field(DEFAULT_MIN_TEMPO, ge=0.0)
    max_tempo: float = Field(DEFAULT_MAX_TEMPO, ge=0.0)
    favorite_genres: List[str] = []
    disliked_genres: List[str] = []
    preferred_moods: List[str] = []

    @classmethod
    def from_preferences(cls, preferences: UserPreferences) -> "PreferencesPayload":
        return cls(
            min_tempo=preferences.min_tempo,
            max_tempo=preferences.max_tempo,
            favorite_genres=list(preferences.favorite_genres),
            disliked_genres=list(preferences.disliked_genres),
            preferred_moods=list(preferences.preferred_moods),
        )

    def to_preferences(self) -> UserPreferences:
        return UserPreferences(
            min_tempo=self.min_tempo,
            max_tempo=self.max_tempo,
            favorite_genres=tuple(self.favorite_genres),
            disliked_genres=tuple(self.disliked_genres),
            preferred_moods=tuple(self.preferred_moods),
        )


class InteractionRequest(BaseModel):
    liked: bool


class InteractionResponse(BaseModel):
    id: Optional[int] = None
    user_id: str
    track_id: str
    liked: bool
    created_at: datetime

    @classmethod
    def from_interaction(cls, interaction: TrackInteraction) -> "InteractionResponse":
        return cls(
            id=interaction.id,
            user_id=interaction.user_id,
            track_id=interaction.track_id,
            liked=interaction.liked,
            created_at=interaction.created_at,
        )
