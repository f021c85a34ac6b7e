from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Dict, Type, TypeVar

from ..core.errors import InvalidContext


class Mood(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    ENERGETIC = "energetic"
    CALM = "calm"
    FOCUSED = "focused"
    ROMANTIC = "romantic"
    NOSTALGIC = "nostalgic"
    PARTY = "party"
    MELANCHOLY = "melancholy"


class Weather(str, Enum):
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    SNOWY = "snowy"
    FOGGY = "foggy"
    WINDY = "windy"
    HOT = "hot"
    COLD = "cold"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class SignalKind(str, Enum):
    MOOD = "mood"
    WEATHER = "weather"
    TIME_OF_DAY = "time_of_day"


_E = TypeVar("_E", Mood, Weather, TimeOfDay)

_LOOKUP: Dict[type, Dict[str, Enum]] = {
    enum_cls: {member.value: member for member in enum_cls}
    for enum_cls in (Mood, Weather, TimeOfDay)
}


def _parse(enum_cls: Type[_E], field: str, value: object) -> _E:
    if isinstance(value, enum_cls):
        return value
    member = _LOOKUP[enum_cls].get(value) if isinstance(value, str) else None
    if member is None:
        raise InvalidContext(field, value)
    return member  # type: ignore[return-value]


def parse_mood(value: object) -> Mood:
    return _parse(Mood, "mood", value)


def parse_weather(value: object) -> Weather:
    return _parse(Weather, "weather", value)


def parse_time_of_day(value: object) -> TimeOfDay:
    return _parse(TimeOfDay, "time_of_day", value)


def time_of_day_for_hour(hour: int) -> TimeOfDay:
    if 5 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 22:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def time_of_day_at(moment: datetime, tz: tzinfo) -> TimeOfDay:
    """Bucket an aware instant by its wall-clock hour in ``tz``."""
    return time_of_day_for_hour(moment.astimezone(tz).hour)


def weather_from_openweather_code(code: int) -> Weather:
    """Map an OpenWeatherMap condition id onto the closed weather set."""
    if 200 <= code < 300:
        return Weather.STORMY
    if 300 <= code < 400 or 500 <= code < 600:
        return Weather.RAINY
    if 600 <= code < 700:
        return Weather.SNOWY
    if 700 <= code < 800:
        return Weather.FOGGY
    if code == 800:
        return Weather.SUNNY
    if code > 800:
        return Weather.CLOUDY
    return Weather.SUNNY


@dataclass(frozen=True, slots=True)
class ContextKey:
    mood: Mood
    weather: Weather
    time_of_day: TimeOfDay

    @classmethod
    def parse(cls, mood: object, weather: object, time_of_day: object) -> "ContextKey":
        return cls(
            mood=parse_mood(mood),
            weather=parse_weather(weather),
            time_of_day=parse_time_of_day(time_of_day),
        )

    def signals(self) -> Dict[SignalKind, Enum]:
        return {
            SignalKind.MOOD: self.mood,
            SignalKind.WEATHER: self.weather,
            SignalKind.TIME_OF_DAY: self.time_of_day,
        }
