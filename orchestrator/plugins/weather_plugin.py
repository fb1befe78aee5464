"""
Weather plugin: current conditions from Open-Meteo (free, no API key).

Location is pulled from the message ("weather in Paris", "temperature in Tokyo?"),
geocoded, then looked up in the forecast API.
"""

import logging
import re
from typing import Any

import httpx

from orchestrator.core.config import (
    HEALTH_HTTP_TIMEOUT,
    OPEN_METEO_FORECAST,
    OPEN_METEO_GEOCODE,
    TOOLS_HTTP_TIMEOUT,
)
from orchestrator.plugins.base import Plugin, PluginContext, PluginResult

logger = logging.getLogger(__name__)

WEATHER_KEYWORDS = (
    "weather", "temperature", "climate", "forecast", "rain", "snow",
    "wind", "humidity", "hot", "cold", "sunny", "cloudy", "storm",
)
_KEYWORD_RE = re.compile(r"\b(?:" + "|".join(WEATHER_KEYWORDS) + r")\b", re.IGNORECASE)

_WEATHER_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"weather\s+in\s+",
    r"temperature\s+in\s+",
    r"how\s+is\s+the\s+weather",
    r"what\s+is\s+the\s+weather",
    r"weather\s+today",
    r"current\s+weather",
))

_LOCATION_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"weather\s+in\s+([^?!.]+)",
    r"temperature\s+in\s+([^?!.]+)",
    r"weather\s+for\s+([^?!.]+)",
    r"weather\s+at\s+([^?!.]+)",
    r"forecast\s+(?:in|for)\s+([^?!.]+)",
))

# WMO weather codes for Open-Meteo
_WMO_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather_code(code: int | None) -> str:
    if code is None:
        return "Unknown"
    return _WMO_CODES.get(code, f"Weather code {code}")


def extract_location(query: str) -> str | None:
    """Location named in the query, or None when nothing looks like one."""
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(query)
        if match and match.group(1).strip():
            return match.group(1).strip()
    words = query.strip().rstrip("?!.").split()
    lowered = [w.lower() for w in words]
    for marker in ("in", "for", "at"):
        if marker in lowered:
            idx = lowered.index(marker)
            if idx < len(words) - 1:
                return " ".join(words[idx + 1:])
    return None


class WeatherPlugin(Plugin):
    name = "weather"
    description = "Provides current weather information for any location using Open-Meteo API"
    version = "1.0.0"

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = TOOLS_HTTP_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._timeout = timeout

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self._timeout, transport=self._transport)

    def can_handle(self, context: PluginContext) -> bool:
        query = context.query
        if _KEYWORD_RE.search(query):
            return True
        return any(p.search(query) for p in _WEATHER_PATTERNS)

    async def execute(self, context: PluginContext) -> PluginResult:
        logger.info("[weather:execute] IN  query=%r", context.query[:200])
        location = extract_location(context.query)
        if not location:
            return PluginResult(
                success=False,
                error="Could not extract location from query",
                formatted_response="I need a location to get weather information. Please specify a city.",
            )
        try:
            async with self._client() as client:
                place = await self._geocode(client, location)
                if place is None:
                    return PluginResult(
                        success=False,
                        error=f'Location "{location}" not found',
                        formatted_response=(
                            f'I couldn\'t find the location "{location}". '
                            "Please check the spelling or try a different location."
                        ),
                    )
                forecast = await self._current(client, place["latitude"], place["longitude"])
        except httpx.TimeoutException:
            logger.warning("[weather:execute] request timed out location=%r", location)
            return PluginResult(
                success=False,
                error="Weather API request timed out",
                formatted_response="The weather service took too long to respond. Please try again later.",
            )
        except httpx.HTTPError as e:
            logger.warning("[weather:execute] request failed location=%r: %s", location, e)
            return PluginResult(
                success=False,
                error=f"Weather lookup failed: {e}",
                formatted_response="Sorry, I couldn't fetch weather information right now.",
            )

        current = forecast.get("current") or {}
        units = forecast.get("current_units") or {}
        name = place.get("name") or location
        country = place.get("country") or place.get("country_code") or ""
        label = f"{name}, {country}" if country else name
        data = {
            "location": label,
            "coordinates": {"latitude": place["latitude"], "longitude": place["longitude"]},
            "temperature": current.get("temperature_2m"),
            "humidity": current.get("relative_humidity_2m"),
            "wind_speed": current.get("wind_speed_10m"),
            "wind_direction": current.get("wind_direction_10m"),
            "weather_code": current.get("weather_code"),
            "conditions": describe_weather_code(current.get("weather_code")),
            "time": current.get("time"),
            "units": {
                "temperature": units.get("temperature_2m", "°C"),
                "wind_speed": units.get("wind_speed_10m", "km/h"),
            },
        }
        logger.info("[weather:execute] OUT location=%s conditions=%s", label, data["conditions"])
        return PluginResult(
            success=True,
            data=data,
            formatted_response=self.format_response(data),
            metadata={"location": name, "country": country, "coordinates": data["coordinates"]},
        )

    async def _geocode(self, client: httpx.AsyncClient, location: str) -> dict[str, Any] | None:
        response = await client.get(
            OPEN_METEO_GEOCODE,
            params={"name": location, "count": 1, "language": "en", "format": "json"},
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        if not results:
            return None
        place = results[0]
        if place.get("latitude") is None or place.get("longitude") is None:
            return None
        return place

    async def _current(self, client: httpx.AsyncClient, latitude: float, longitude: float) -> dict[str, Any]:
        response = await client.get(
            OPEN_METEO_FORECAST,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,relative_humidity_2m,wind_speed_10m,wind_direction_10m,weather_code",
                "timezone": "auto",
            },
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def format_response(data: dict[str, Any]) -> str:
        units = data["units"]
        lines = [f"**Current Weather in {data['location']}**", ""]
        if data["temperature"] is not None:
            lines.append(f"Temperature: {data['temperature']}{units['temperature']}")
        if data["humidity"] is not None:
            lines.append(f"Humidity: {data['humidity']}%")
        if data["wind_speed"] is not None:
            wind = f"Wind: {data['wind_speed']} {units['wind_speed']}"
            if data["wind_direction"] is not None:
                wind += f" at {data['wind_direction']}°"
            lines.append(wind)
        lines.append(f"Conditions: {data['conditions']}")
        if data["time"]:
            lines.append(f"Last updated: {data['time']}")
        return "\n".join(lines)

    async def health_check(self) -> bool:
        try:
            async with self._client(HEALTH_HTTP_TIMEOUT) as client:
                response = await client.get(
                    OPEN_METEO_FORECAST,
                    params={"latitude": 51.5074, "longitude": -0.1278, "current": "temperature_2m"},
                )
        except httpx.HTTPError as e:
            logger.warning("[weather:health_check] failed: %s", e)
            return False
        return response.status_code == 200 and bool(response.json().get("current"))
