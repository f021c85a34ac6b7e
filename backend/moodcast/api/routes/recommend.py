from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ...core.clock import Clock
from ...core.config import Settings, get_settings
from ...core.errors import InvalidContext, NoRecommendationsAvailable, StorageUnavailable, UserNotFound
from ...core.security import extract_user_id, verify_service_token
from ...schemas.recommend import RecommendationList, RecommendRequest, RecommendResponse
from ...services.context import Weather, time_of_day_at
from ...services.entities import Recommendation
from ...services.recommendations import RecommendationService
from ...weather.client import OpenWeatherClient, WeatherClientError
from ..deps import get_clock, get_recommendation_service, get_weather_client

logger = logging.getLogger("api.recommend")

router = APIRouter(prefix="/v1", tags=["recommendations"], dependencies=[Depends(verify_service_token)])


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except InvalidContext as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except (UserNotFound, NoRecommendationsAvailable) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


async def _resolve_weather(
    client: OpenWeatherClient | None,
    latitude: Optional[float],
    longitude: Optional[float],
) -> str:
    if client is None or latitude is None or longitude is None:
        return Weather.SUNNY.value
    try:
        weather = await client.get_current_weather(latitude, longitude)
    except WeatherClientError as exc:
        logger.warning("Weather lookup failed, defaulting to sunny: %s", exc)
        return Weather.SUNNY.value
    return weather.value


async def _with_tracks(service: RecommendationService, recommendation: Recommendation) -> RecommendResponse:
    tracks = await service.catalog.get_tracks_by_ids(recommendation.track_ids)
    return RecommendResponse.from_recommendation(recommendation, tracks)


@router.post("/recommendations", response_model=RecommendResponse)
async def create_recommendation(
    payload: RecommendRequest,
    *,
    user_id: str = Depends(extract_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
    weather_client: OpenWeatherClient | None = Depends(get_weather_client),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> RecommendResponse:
    weather = payload.weather or await _resolve_weather(weather_client, payload.latitude, payload.longitude)
    time_of_day = payload.time_of_day or time_of_day_at(clock(), settings.tzinfo).value
    with _http_errors():
        recommendation = await service.get_recommendation(user_id, payload.mood, weather, time_of_day)
        return await _with_tracks(service, recommendation)


@router.get("/recommendations/mood/{mood}", response_model=RecommendResponse)
async def recommend_for_mood(
    mood: str,
    *,
    user_id: str = Depends(extract_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendResponse:
    """Mood-only shortcut: sunny weather, time of day from the service clock."""
    with _http_errors():
        recommendation = await service.get_recommendation_for_mood(user_id, mood)
        return await _with_tracks(service, recommendation)


@router.get("/recommendations", response_model=RecommendationList)
async def list_recommendations(
    *,
    user_id: str = Depends(extract_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationList:
    with _http_errors():
        recommendations = await service.cache.get_for_user(user_id)
    return RecommendationList(
        recommendations=[RecommendResponse.from_recommendation(item) for item in recommendations]
    )
