from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .context import Mood, SignalKind, TimeOfDay, Weather


@dataclass(frozen=True, slots=True)
class AudioFeatures:
    danceability: float = 0.0
    energy: float = 0.0
    key: int = -1
    loudness: float = -60.0
    mode: int = 0
    speechiness: float = 0.0
    acousticness: float = 0.0
    instrumentalness: float = 0.0
    liveness: float = 0.0
    valence: float = 0.0
    tempo: float = 0.0
    duration_ms: int = 0
    time_signature: int = 4

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "AudioFeatures":
        data = dict(payload or {})
        defaults = cls()
        values: Dict[str, Any] = {}
        for name in cls.__slots__:
            default = getattr(defaults, name)
            raw = data.get(name)
            if raw is None:
                values[name] = default
                continue
            try:
                values[name] = type(default)(raw)
            except (TypeError, ValueError):
                values[name] = default
        return cls(**values)


@dataclass(frozen=True, slots=True)
class Condition:
    field: str
    op: str
    threshold: float

    def test(self, features: AudioFeatures) -> bool:
        return _OPERATORS[self.op](getattr(features, self.field), self.threshold)


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {">": operator.gt, "<": operator.lt}

# A rule matches when every condition of at least one clause holds.
Rule = Tuple[Tuple[Condition, ...], ...]


def _all(*conditions: Condition) -> Rule:
    return (tuple(conditions),)


def _gt(field: str, threshold: float) -> Condition:
    return Condition(field, ">", threshold)


def _lt(field: str, threshold: float) -> Condition:
    return Condition(field, "<", threshold)


MOOD_RULES: Dict[Mood, Rule] = {
    Mood.HAPPY: _all(_gt("valence", 0.7), _gt("energy", 0.5)),
    Mood.SAD: _all(_lt("valence", 0.4), _lt("energy", 0.5)),
    Mood.ENERGETIC: _all(_gt("energy", 0.8), _gt("tempo", 120.0)),
    Mood.CALM: _all(_lt("energy", 0.4), _gt("acousticness", 0.5)),
    Mood.FOCUSED: _all(_gt("instrumentalness", 0.5), _lt("energy", 0.7)),
    Mood.ROMANTIC: _all(_gt("valence", 0.5), _lt("energy", 0.6), _gt("acousticness", 0.4)),
    Mood.NOSTALGIC: _all(_gt("valence", 0.3), _lt("valence", 0.7), _gt("acousticness", 0.4)),
    Mood.PARTY: _all(_gt("danceability", 0.7), _gt("energy", 0.7)),
    Mood.MELANCHOLY: _all(_lt("valence", 0.4), _lt("energy", 0.5), _gt("acousticness", 0.5)),
}

WEATHER_RULES: Dict[Weather, Rule] = {
    Weather.SUNNY: _all(_gt("valence", 0.6), _gt("energy", 0.5)),
    Weather.RAINY: _all(_lt("valence", 0.5), _gt("acousticness", 0.5)),
    Weather.STORMY: _all(_gt("energy", 0.7), _gt("loudness", -8.0)),
    Weather.SNOWY: _all(_gt("acousticness", 0.6), _lt("energy", 0.5)),
    Weather.CLOUDY: _all(_gt("valence", 0.3), _lt("valence", 0.7)),
    Weather.FOGGY: _all(_gt("acousticness", 0.5), _gt("instrumentalness", 0.3)),
    Weather.WINDY: _all(_gt("energy", 0.6), _lt("acousticness", 0.4)),
    Weather.HOT: _all(_gt("energy", 0.5), _gt("danceability", 0.6)),
    Weather.COLD: _all(_lt("energy", 0.6), _gt("acousticness", 0.4)),
}

TIME_OF_DAY_RULES: Dict[TimeOfDay, Rule] = {
    TimeOfDay.MORNING: _all(_gt("valence", 0.5), _gt("energy", 0.5), _lt("energy", 0.8)),
    TimeOfDay.AFTERNOON: _all(_gt("energy", 0.5), _gt("danceability", 0.5)),
    TimeOfDay.EVENING: _all(_gt("energy", 0.3), _lt("energy", 0.8)),
    # calm wind-down or late party
    TimeOfDay.NIGHT: (
        (_lt("energy", 0.5), _gt("acousticness", 0.5)),
        (_gt("energy", 0.8), _gt("danceability", 0.7)),
    ),
}

SIGNAL_RULES: Dict[SignalKind, Mapping[Any, Rule]] = {
    SignalKind.MOOD: MOOD_RULES,
    SignalKind.WEATHER: WEATHER_RULES,
    SignalKind.TIME_OF_DAY: TIME_OF_DAY_RULES,
}


def rule_for(kind: SignalKind, value: Any) -> Optional[Rule]:
    return SIGNAL_RULES[kind].get(value)


def evaluate_rule(rule: Optional[Rule], features: AudioFeatures) -> bool:
    if rule is None:
        return True
    return any(all(condition.test(features) for condition in clause) for clause in rule)


def matches_mood(features: AudioFeatures, mood: Mood) -> bool:
    return evaluate_rule(MOOD_RULES.get(mood), features)


def matches_weather(features: AudioFeatures, weather: Weather) -> bool:
    return evaluate_rule(WEATHER_RULES.get(weather), features)


def matches_time_of_day(features: AudioFeatures, time_of_day: TimeOfDay) -> bool:
    return evaluate_rule(TIME_OF_DAY_RULES.get(time_of_day), features)
