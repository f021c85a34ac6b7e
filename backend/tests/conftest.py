from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from moodcast.services.entities import Track
from moodcast.services.features import AudioFeatures


@compiles(JSONB, "sqlite")
def _compile_jsonb_to_sqlite(element, compiler, **kw):  # pragma: no cover - SQLite shim
    return "JSON"


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


def make_track(track_id: str, *, popularity: int = 50, **features: Any) -> Track:
    return Track(
        id=track_id,
        spotify_id=f"sp-{track_id}",
        name=f"Track {track_id}",
        artist="Some Artist",
        album="Some Album",
        popularity=popularity,
        features=AudioFeatures(**features),
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 18, 14, 30, tzinfo=timezone.utc))
