from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import health, recommend, users
from .cache.redis import redis
from .core.config import get_settings
from .core.logging import setup_logging
from .db.session import AsyncSessionFactory, init_db
from .services.cache import RecommendationCache, run_expiry_sweeper


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    await init_db()
    sweeper: asyncio.Task | None = None
    if settings.expiry_sweep_interval_seconds > 0:
        cache = RecommendationCache(AsyncSessionFactory, redis=redis, timeout=settings.storage_timeout_seconds)
        sweeper = asyncio.create_task(run_expiry_sweeper(cache, settings.expiry_sweep_interval_seconds))
    yield
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    await redis.aclose()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level, environment=settings.environment)
    app = FastAPI(
        title="Moodcast Recommendation Backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )
    app.include_router(health.router)
    app.include_router(recommend.router)
    app.include_router(users.router)
    return app


app = create_app()
