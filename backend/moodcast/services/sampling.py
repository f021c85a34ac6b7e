from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from .entities import Track, UserPreferences

logger = logging.getLogger("recommendations")


def filter_by_tempo(tracks: Sequence[Track], preferences: UserPreferences) -> List[Track]:
    """Keep tracks inside the user's tempo band.

    When nothing survives, the unfiltered list is returned instead.
    """
    kept = [
        track
        for track in tracks
        if not (track.features.tempo < preferences.min_tempo or track.features.tempo > preferences.max_tempo)
    ]
    if not kept and tracks:
        logger.info(
            "Tempo band [%s, %s] removed all %s candidates, keeping unfiltered list",
            preferences.min_tempo,
            preferences.max_tempo,
            len(tracks),
        )
        return list(tracks)
    return kept


def sample_tracks(tracks: Sequence[Track], count: int, rng: np.random.Generator) -> List[Track]:
    if len(tracks) <= count:
        return list(tracks)
    order = rng.permutation(len(tracks))[:count]
    return [tracks[int(i)] for i in order]
