from __future__ import annotations


class RecommendationError(Exception):
    pass


class InvalidContext(RecommendationError, ValueError):
    """Raised for a mood, weather or time-of-day outside its closed set."""

    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"invalid {field} value: {value!r}")
        self.field = field
        self.value = value


class UserNotFound(RecommendationError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id


class TrackNotFound(RecommendationError):
    def __init__(self, track_id: str) -> None:
        super().__init__(f"track {track_id} not found")
        self.track_id = track_id


class NoRecommendationsAvailable(RecommendationError):
    def __init__(self) -> None:
        super().__init__("no suitable recommendations found")


class StorageUnavailable(RecommendationError):
    pass


class CacheWriteConflict(RecommendationError):
    pass


class InvalidPreferences(RecommendationError, ValueError):
    pass
