from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

import httpx

from ..services.context import Weather, weather_from_openweather_code

API_BASE = "https://api.openweathermap.org/data/2.5"

logger = logging.getLogger("weather.client")


class WeatherClientError(Exception):
    pass


def _retry_delay(header: str | None, attempt: int) -> float:
    # Retry-After may also be an HTTP date; fall back to backoff then
    try:
        return max(float(header), 0.0) if header is not None else 1.0
    except ValueError:
        return float(2 ** attempt)


@dataclass(slots=True)
class OpenWeatherClient:
    api_key: str
    base_url: str = API_BASE
    timeout: float = 10.0
    retries: int = 3
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, url: str, *, params: Dict[str, Any]) -> Dict[str, Any]:
        client = self._client
        if client is None:
            raise WeatherClientError("weather client not initialized")
        if not self.api_key:
            raise WeatherClientError("missing openweather api key")

        clean_url = url.lstrip("/")
        query = {**params, "appid": self.api_key}

        for attempt in range(1, self.retries + 1):
            try:
                response = await client.get(clean_url, params=query)
            except httpx.RequestError as exc:  # network issue
                if attempt == self.retries:
                    raise WeatherClientError(f"network error: {exc}") from exc
                await asyncio.sleep(2 ** attempt)
                continue

            if response.status_code == 429 and attempt < self.retries:
                await asyncio.sleep(_retry_delay(response.headers.get("Retry-After"), attempt))
                continue

            if response.status_code >= 400:
                logger.error("OpenWeather %s -> %s %s", url, response.status_code, response.text[:200])
                raise WeatherClientError(f"openweather api error {response.status_code}")

            if not response.content:
                return {}
            try:
                payload = response.json()
            except ValueError as exc:
                raise WeatherClientError("openweather returned a non-JSON body") from exc
            if not isinstance(payload, dict):
                raise WeatherClientError(f"unexpected openweather payload type {type(payload).__name__}")
            return payload

        raise WeatherClientError("max retries exceeded for openweather request")

    async def get_current_weather(self, latitude: float, longitude: float) -> Weather:
        payload = await self._request("/weather", params={"lat": latitude, "lon": longitude})
        conditions = payload.get("weather") or []
        if not isinstance(conditions, list) or not conditions:
            raise WeatherClientError("openweather response has no condition code")
        if not isinstance(conditions[0], dict) or "id" not in conditions[0]:
            raise WeatherClientError("openweather response has no condition code")
        try:
            code = int(conditions[0]["id"])
        except (TypeError, ValueError) as exc:
            raise WeatherClientError(f"invalid condition code {conditions[0]['id']!r}") from exc
        return weather_from_openweather_code(code)
