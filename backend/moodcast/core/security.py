from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Request, status

from .config import Settings, get_settings

logger = logging.getLogger("security")


def verify_service_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.service_token
    if not expected:
        # open access for local development; warn once per app
        if not getattr(request.app.state, "service_token_warned", False):
            logger.warning("MOODCAST_SERVICE_TOKEN is not set, accepting unauthenticated traffic")
            request.app.state.service_token_warned = True
        return

    provided = request.headers.get("X-Service-Token", "")
    if not provided or not secrets.compare_digest(provided, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid service token")


def extract_user_id(request: Request) -> str:
    user_id = request.headers.get("X-User-Id", "").strip()
    if user_id:
        return user_id
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing user id")
