from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...core.errors import InvalidPreferences, StorageUnavailable, TrackNotFound, UserNotFound
from ...core.security import extract_user_id, verify_service_token
from ...schemas.users import InteractionRequest, InteractionResponse, PreferencesPayload
from ...services.recommendations import RecommendationService
from ..deps import get_recommendation_service

router = APIRouter(prefix="/v1", tags=["users"], dependencies=[Depends(verify_service_token)])


@router.get("/users/me/preferences", response_model=PreferencesPayload)
async def read_preferences(
    *,
    user_id: str = Depends(extract_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
) -> PreferencesPayload:
    try:
        preferences = await service.users.get_preferences(user_id)
    except UserNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return PreferencesPayload.from_preferences(preferences)


@router.put("/users/me/preferences", response_model=PreferencesPayload)
async def update_preferences(
    payload: PreferencesPayload,
    *,
    user_id: str = Depends(extract_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
) -> PreferencesPayload:
    try:
        saved = await service.users.update_preferences(user_id, payload.to_preferences())
    except InvalidPreferences as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except UserNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return PreferencesPayload.from_preferences(saved)


@router.post(
    "/tracks/{track_id}/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_interaction(
    track_id: str,
    payload: InteractionRequest,
    *,
    user_id: str = Depends(extract_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
) -> InteractionResponse:
    try:
        interaction = await service.save_track_interaction(user_id, track_id, payload.liked)
    except (UserNotFound, TrackNotFound) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return InteractionResponse.from_interaction(interaction)
