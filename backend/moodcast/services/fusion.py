from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

from .context import SignalKind
from .entities import Track

# Folded in this order, so a track's record comes from the last list it
# appears in.
SIGNAL_WEIGHTS: Dict[SignalKind, int] = {
    SignalKind.MOOD: 3,
    SignalKind.WEATHER: 2,
    SignalKind.TIME_OF_DAY: 1,
}


@dataclass(slots=True)
class ScoredTrack:
    track_id: str
    score: int
    popularity: int
    track: Track

    def sort_key(self) -> tuple[int, int, str]:
        return (-self.score, -self.popularity, self.track_id)


def fuse_candidates(candidates: Mapping[SignalKind, Sequence[Track]], limit: int) -> List[ScoredTrack]:
    """Merge per-signal candidate lists with a weighted vote.

    Every appearance of a track adds the weight of its list, so agreement
    between signals beats strength on one signal: a track present in all
    three lists scores 6 and outranks any track seen in at most two.
    Ties fall to popularity, then to track id.
    """
    scored: Dict[str, ScoredTrack] = {}
    for kind, weight in SIGNAL_WEIGHTS.items():
        for track in candidates.get(kind, ()):
            entry = scored.get(track.id)
            if entry is None:
                scored[track.id] = ScoredTrack(track.id, weight, track.popularity, track)
                continue
            entry.score += weight
            entry.popularity = track.popularity
            entry.track = track
    ranked = sorted(scored.values(), key=ScoredTrack.sort_key)
    return ranked[: max(limit, 0)]
