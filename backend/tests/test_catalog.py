from __future__ import annotations

import asyncio

import pytest

pytest.importorskip("aiosqlite")

from conftest import make_track
from storage_helpers import create_store

from moodcast.core.errors import TrackNotFound
from moodcast.services.catalog import TrackCatalog, signals_without_storage_predicate
from moodcast.services.context import Mood, SignalKind, TimeOfDay, Weather


def _run(scenario):
    async def runner():
        engine, maker = await create_store()
        try:
            return await scenario(TrackCatalog(maker))
        finally:
            await engine.dispose()

    return asyncio.run(runner())


CATALOG = [
    make_track("happy-1", popularity=60, valence=0.9, energy=0.7, tempo=120.0),
    make_track("happy-2", popularity=80, valence=0.8, energy=0.6, tempo=100.0),
    make_track("happy-3", popularity=60, valence=0.75, energy=0.9, tempo=130.0),
    make_track("edge", popularity=99, valence=0.7, energy=0.9, tempo=125.0),
    make_track("rainy", popularity=30, valence=0.2, energy=0.3, acousticness=0.8, tempo=70.0),
    make_track("morning", popularity=40, valence=0.6, energy=0.6, tempo=110.0),
]


def test_mood_retrieval_orders_by_popularity_then_id():
    async def scenario(catalog):
        await catalog.save_tracks(CATALOG)
        return await catalog.retrieve_by_signal(SignalKind.MOOD, Mood.HAPPY, 10)

    tracks = _run(scenario)
    assert [track.id for track in tracks] == ["happy-2", "happy-1", "happy-3"]
    assert tracks[0].features.tempo == pytest.approx(100.0)


def test_retrieval_honours_limit():
    async def scenario(catalog):
        await catalog.save_tracks(CATALOG)
        return await catalog.retrieve_by_signal(SignalKind.MOOD, Mood.HAPPY, 2)

    assert [track.id for track in _run(scenario)] == ["happy-2", "happy-1"]


def test_dedicated_weather_and_time_predicates():
    async def scenario(catalog):
        await catalog.save_tracks(CATALOG)
        rainy = await catalog.retrieve_by_signal(SignalKind.WEATHER, Weather.RAINY, 10)
        morning = await catalog.retrieve_by_signal(SignalKind.TIME_OF_DAY, TimeOfDay.MORNING, 10)
        return rainy, morning

    rainy, morning = _run(scenario)
    assert [track.id for track in rainy] == ["rainy"]
    assert [track.id for track in morning] == ["happy-2", "happy-1", "morning"]


def test_signals_without_predicate_fall_back_to_most_popular():
    async def scenario(catalog):
        await catalog.save_tracks(CATALOG)
        sunny = await catalog.retrieve_by_signal(SignalKind.WEATHER, Weather.SUNNY, 3)
        night = await catalog.retrieve_by_signal(SignalKind.TIME_OF_DAY, TimeOfDay.NIGHT, 3)
        popular = await catalog.get_most_popular(3)
        return sunny, night, popular

    sunny, night, popular = _run(scenario)
    assert [track.id for track in popular] == ["edge", "happy-2", "happy-1"]
    assert sunny == popular
    assert night == popular


def test_zero_matches_is_empty():
    async def scenario(catalog):
        await catalog.save_tracks(CATALOG)
        return await catalog.retrieve_by_signal(SignalKind.MOOD, Mood.FOCUSED, 10)

    assert _run(scenario) == []


def test_lookup_by_ids_preserves_order_and_skips_missing():
    async def scenario(catalog):
        await catalog.save_tracks(CATALOG)
        many = await catalog.get_tracks_by_ids(["rainy", "ghost", "edge", "rainy"])
        one = await catalog.get_track_by_id("morning")
        with pytest.raises(TrackNotFound):
            await catalog.get_track_by_id("ghost")
        return many, one

    many, one = _run(scenario)
    assert [track.id for track in many] == ["rainy", "edge"]
    assert one.spotify_id == "sp-morning"


def test_save_tracks_updates_existing_rows():
    async def scenario(catalog):
        await catalog.save_tracks([make_track("t", popularity=10, tempo=90.0)])
        await catalog.save_tracks([make_track("t", popularity=70, tempo=128.0)])
        return await catalog.get_track_by_id("t")

    track = _run(scenario)
    assert track.popularity == 70
    assert track.features.tempo == pytest.approx(128.0)


def test_uncovered_signals_are_listed():
    missing = set(signals_without_storage_predicate())
    assert (SignalKind.WEATHER, Weather.SUNNY) in missing
    assert (SignalKind.TIME_OF_DAY, TimeOfDay.NIGHT) in missing
    assert (SignalKind.WEATHER, Weather.RAINY) not in missing
    assert (SignalKind.TIME_OF_DAY, TimeOfDay.MORNING) not in missing
    assert not any(kind is SignalKind.MOOD for kind, _ in missing)
    assert len(missing) == 8 + 3
