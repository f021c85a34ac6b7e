from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Dict, List

import httpx
import pytest

pytest.importorskip("asyncpg")

from fastapi.testclient import TestClient

from conftest import make_track

from moodcast.api.deps import get_clock, get_recommendation_service, get_weather_client
from moodcast.core.config import Settings, get_settings
from moodcast.core.errors import (
    InvalidContext,
    InvalidPreferences,
    NoRecommendationsAvailable,
    StorageUnavailable,
    TrackNotFound,
    UserNotFound,
)
from moodcast.main import create_app
from moodcast.services.context import ContextKey, Weather, time_of_day_at
from moodcast.services.entities import Recommendation, TrackInteraction, UserPreferences
from moodcast.weather.client import OpenWeatherClient, WeatherClientError


@dataclass
class _StubCatalog:
    async def get_tracks_by_ids(self, track_ids):
        return [make_track(track_id, tempo=110.0) for track_id in track_ids]


@dataclass
class _StubCache:
    items: List[Recommendation] = field(default_factory=list)

    async def get_for_user(self, user_id):
        return [item for item in self.items if item.user_id == user_id]


@dataclass
class _StubUsers:
    preferences: Dict[str, UserPreferences] = field(default_factory=lambda: {"u1": UserPreferences()})

    async def get_preferences(self, user_id):
        if user_id not in self.preferences:
            raise UserNotFound(user_id)
        return self.preferences[user_id]

    async def update_preferences(self, user_id, preferences):
        if preferences.min_tempo > preferences.max_tempo:
            raise InvalidPreferences("min_tempo is above max_tempo")
        if user_id not in self.preferences:
            raise UserNotFound(user_id)
        self.preferences[user_id] = preferences
        return preferences


@dataclass
class _StubService:
    clock: Any
    error: Exception | None = None
    calls: List[tuple] = field(default_factory=list)
    catalog: _StubCatalog = field(default_factory=_StubCatalog)
    cache: _StubCache = field(default_factory=_StubCache)
    users: _StubUsers = field(default_factory=_StubUsers)
    tz: Any = timezone.utc

    async def get_recommendation(self, user_id, mood, weather, time_of_day):
        self.calls.append((user_id, mood, weather, time_of_day))
        if self.error is not None:
            raise self.error
        context = ContextKey.parse(mood, weather, time_of_day)
        recommendation = Recommendation.create(user_id, context, ["t1", "t2"], now=self.clock())
        recommendation.id = "rec-1"
        return recommendation

    async def get_recommendation_for_mood(self, user_id, mood):
        time_of_day = time_of_day_at(self.clock(), self.tz).value
        return await self.get_recommendation(user_id, mood, "sunny", time_of_day)

    async def save_track_interaction(self, user_id, track_id, liked):
        if track_id == "ghost":
            raise TrackNotFound(track_id)
        return TrackInteraction(user_id=user_id, track_id=track_id, liked=liked, created_at=self.clock(), id=7)


class _StubWeather:
    def __init__(self, result):
        self.result = result

    async def get_current_weather(self, latitude, longitude):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def _client(service, clock, *, weather=None, settings=None) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_recommendation_service] = lambda: service
    app.dependency_overrides[get_weather_client] = lambda: weather
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: settings or Settings(service_token="")
    return TestClient(app)


HEADERS = {"X-User-Id": "u1"}


def test_health(clock):
    response = _client(_StubService(clock), clock).get("/v1/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_recommendation_with_full_context(clock):
    service = _StubService(clock)
    response = _client(service, clock).post(
        "/v1/recommendations",
        json={"mood": "happy", "weather": "rainy", "time_of_day": "night"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "rec-1"
    assert body["track_ids"] == ["t1", "t2"]
    assert [track["id"] for track in body["tracks"]] == ["t1", "t2"]
    assert body["weather"] == "rainy"
    assert service.calls == [("u1", "happy", "rainy", "night")]


def test_missing_weather_without_coordinates_defaults_to_sunny(clock):
    service = _StubService(clock)
    response = _client(service, clock, weather=_StubWeather(Weather.SNOWY)).post(
        "/v1/recommendations", json={"mood": "calm", "time_of_day": "morning"}, headers=HEADERS
    )
    assert response.status_code == 200
    assert service.calls[0][2] == "sunny"


def test_weather_is_looked_up_from_coordinates(clock):
    service = _StubService(clock)
    response = _client(service, clock, weather=_StubWeather(Weather.SNOWY)).post(
        "/v1/recommendations",
        json={"mood": "calm", "time_of_day": "morning", "latitude": 60.1, "longitude": 24.9},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert service.calls[0][2] == "snowy"


def test_weather_failure_defaults_to_sunny(clock):
    service = _StubService(clock)
    response = _client(service, clock, weather=_StubWeather(WeatherClientError("boom"))).post(
        "/v1/recommendations",
        json={"mood": "calm", "time_of_day": "morning", "latitude": 60.1, "longitude": 24.9},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert service.calls[0][2] == "sunny"


def test_time_of_day_comes_from_clock(clock):
    service = _StubService(clock)
    _client(service, clock).post("/v1/recommendations", json={"mood": "calm", "weather": "foggy"}, headers=HEADERS)
    assert service.calls[0][3] == "afternoon"


def test_time_of_day_uses_configured_timezone(clock):
    service = _StubService(clock)
    settings = Settings(service_token="", timezone="Asia/Tokyo")
    _client(service, clock, settings=settings).post(
        "/v1/recommendations", json={"mood": "calm", "weather": "foggy"}, headers=HEADERS
    )
    assert service.calls[0][3] == "night"


@pytest.mark.parametrize(
    "error, status_code",
    [
        (InvalidContext("mood", "ecstatic"), 422),
        (UserNotFound("u1"), 404),
        (NoRecommendationsAvailable(), 404),
        (StorageUnavailable("db down"), 503),
    ],
)
def test_errors_map_to_status_codes(clock, error, status_code):
    response = _client(_StubService(clock, error=error), clock).post(
        "/v1/recommendations", json={"mood": "happy", "weather": "sunny", "time_of_day": "night"}, headers=HEADERS
    )
    assert response.status_code == status_code


def test_missing_user_header(clock):
    response = _client(_StubService(clock), clock).post("/v1/recommendations", json={"mood": "happy"})
    assert response.status_code == 401


def test_service_token_is_enforced(clock):
    client = _client(_StubService(clock), clock, settings=Settings(service_token="secret"))
    denied = client.get("/v1/recommendations", headers=HEADERS)
    allowed = client.get("/v1/recommendations", headers={**HEADERS, "X-Service-Token": "secret"})
    assert denied.status_code == 401
    assert allowed.status_code == 200


def test_list_live_recommendations(clock):
    service = _StubService(clock)
    service.cache.items.append(
        Recommendation.create("u1", ContextKey.parse("sad", "cold", "night"), ["x"], now=clock())
    )
    response = _client(service, clock).get("/v1/recommendations", headers=HEADERS)
    assert response.status_code == 200
    assert [item["track_ids"] for item in response.json()["recommendations"]] == [["x"]]


def _openweather(handler) -> OpenWeatherClient:
    return OpenWeatherClient(api_key="k", transport=httpx.MockTransport(handler), retries=1)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(200, json=[{"id": 500}]),
    ],
)
def test_malformed_weather_response_defaults_to_sunny(clock, response):
    service = _StubService(clock)
    weather = _openweather(lambda request: response)
    result = _client(service, clock, weather=weather).post(
        "/v1/recommendations",
        json={"mood": "calm", "time_of_day": "morning", "latitude": 60.1, "longitude": 24.9},
        headers=HEADERS,
    )
    assert result.status_code == 200
    assert service.calls[0][2] == "sunny"


def test_mood_only_recommendation(clock):
    service = _StubService(clock)
    response = _client(service, clock).get("/v1/recommendations/mood/party", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["weather"] == "sunny"
    assert service.calls == [("u1", "party", "sunny", "afternoon")]


def test_mood_only_recommendation_rejects_unknown_mood(clock):
    service = _StubService(clock, error=InvalidContext("mood", "ecstatic"))
    response = _client(service, clock).get("/v1/recommendations/mood/ecstatic", headers=HEADERS)
    assert response.status_code == 422


def test_read_and_update_preferences(clock):
    service = _StubService(clock)
    client = _client(service, clock)
    body = {"min_tempo": 90.0, "max_tempo": 140.0, "favorite_genres": ["jazz"], "disliked_genres": [], "preferred_moods": ["calm"]}

    updated = client.put("/v1/users/me/preferences", json=body, headers=HEADERS)
    read = client.get("/v1/users/me/preferences", headers=HEADERS)

    assert updated.status_code == 200
    assert read.json() == body
    assert service.users.preferences["u1"].min_tempo == 90.0


def test_inverted_tempo_band_is_rejected(clock):
    response = _client(_StubService(clock), clock).put(
        "/v1/users/me/preferences", json={"min_tempo": 150.0, "max_tempo": 100.0}, headers=HEADERS
    )
    assert response.status_code == 422


def test_preferences_of_unknown_user(clock):
    client = _client(_StubService(clock), clock)
    assert client.get("/v1/users/me/preferences", headers={"X-User-Id": "nobody"}).status_code == 404
    assert client.put("/v1/users/me/preferences", json={}, headers={"X-User-Id": "nobody"}).status_code == 404


def test_record_track_interaction(clock):
    client = _client(_StubService(clock), clock)
    created = client.post("/v1/tracks/t1/interactions", json={"liked": True}, headers=HEADERS)
    missing = client.post("/v1/tracks/ghost/interactions", json={"liked": False}, headers=HEADERS)

    assert created.status_code == 201
    assert created.json()["liked"] is True
    assert created.json()["track_id"] == "t1"
    assert missing.status_code == 404


def test_open_access_is_flagged_on_the_app(clock):
    client = _client(_StubService(clock), clock)
    client.get("/v1/recommendations", headers=HEADERS)
    client.get("/v1/recommendations", headers=HEADERS)
    assert client.app.state.service_token_warned is True
