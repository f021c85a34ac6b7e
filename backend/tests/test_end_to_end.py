from __future__ import annotations

import asyncio

import numpy as np
import pytest

pytest.importorskip("aiosqlite")

from sqlalchemy import func, select

from conftest import make_track
from storage_helpers import add_user, create_store

from moodcast.core.config import Settings
from moodcast.core.errors import InvalidContext
from moodcast.db import models
from moodcast.services.cache import RecommendationCache
from moodcast.services.catalog import TrackCatalog
from moodcast.services.recommendations import RecommendationService
from moodcast.services.users import UserStore


def _tracks():
    tracks = [
        # energetic, sunny and afternoon all at once
        make_track("T1", popularity=1, energy=0.9, tempo=130.0, valence=0.8, danceability=0.8),
    ]
    tracks += [
        make_track(f"e{i:02d}", popularity=40 + i, energy=0.85, tempo=100.0 + i, valence=0.2)
        for i in range(12)
    ]
    tracks += [
        make_track(f"p{i:02d}", popularity=60 + i, energy=0.3, tempo=80.0 + 5 * i, acousticness=0.9)
        for i in range(12)
    ]
    return tracks


def test_recommendation_is_computed_then_served_from_cache(clock):
    async def scenario():
        engine, maker = await create_store()
        try:
            await add_user(maker, "u1", min_tempo=90.0, max_tempo=140.0)
            catalog = TrackCatalog(maker)
            await catalog.save_tracks(_tracks())
            service = RecommendationService(
                catalog=catalog,
                users=UserStore(maker),
                cache=RecommendationCache(maker, clock=clock),
                settings=Settings(output_count=50),
                clock=clock,
                rng=np.random.default_rng(0),
            )

            first = await service.get_recommendation("u1", "energetic", "sunny", "afternoon")

            await catalog.save_tracks([make_track("late", popularity=100, energy=0.95, tempo=130.0)])
            clock.advance(hours=2)
            second = await service.get_recommendation("u1", "energetic", "sunny", "afternoon")

            with pytest.raises(InvalidContext):
                await service.get_recommendation("u1", "ecstatic", "sunny", "afternoon")

            async with maker() as session:
                rows = (await session.execute(select(func.count()).select_from(models.Recommendation))).scalar_one()
            return first, second, rows
        finally:
            await engine.dispose()

    first, second, rows = asyncio.run(scenario())

    assert first.id is not None
    assert first.track_ids[0] == "T1"
    # p00 and p01 sit below the 90 BPM floor
    in_band = {"T1"} | {f"e{i:02d}" for i in range(12)} | {f"p{i:02d}" for i in range(2, 12)}
    assert set(first.track_ids) == in_band
    assert len(first.track_ids) == len(in_band)
    assert first.track_ids[1] == "p11"
    assert second.id == first.id
    assert second.track_ids == first.track_ids
    assert "late" not in second.track_ids
    assert rows == 1
