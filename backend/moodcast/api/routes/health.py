from __future__ import annotations

from fastapi import APIRouter

from ...schemas.recommend import HealthResponse

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def get_health() -> HealthResponse:
    return HealthResponse(ok=True)
