"""
Unit tests for the weather plugin. Open-Meteo is replaced by httpx.MockTransport.
"""

import asyncio

import httpx
import pytest

from orchestrator.plugins.base import PluginContext
from orchestrator.plugins.weather_plugin import WeatherPlugin, describe_weather_code, extract_location

GEOCODE_PARIS = {
    "results": [
        {"name": "Paris", "latitude": 48.8566, "longitude": 2.3522, "country": "France", "country_code": "FR"}
    ]
}
FORECAST = {
    "current": {
        "time": "2024-05-01T12:00",
        "temperature_2m": 18.4,
        "relative_humidity_2m": 62,
        "wind_speed_10m": 11.2,
        "wind_direction_10m": 240,
        "weather_code": 2,
    },
    "current_units": {"temperature_2m": "°C", "wind_speed_10m": "km/h"},
}


def ctx(query: str) -> PluginContext:
    return PluginContext(query=query, session_id="s1", user_message=query)


def make_plugin(geocode: dict | None = None, forecast: dict | None = None, status: int = 200, requests: list | None = None) -> WeatherPlugin:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if status != 200:
            return httpx.Response(status, json={"error": True})
        if "geocoding" in request.url.host:
            return httpx.Response(200, json=geocode if geocode is not None else GEOCODE_PARIS)
        return httpx.Response(200, json=forecast if forecast is not None else FORECAST)

    return WeatherPlugin(transport=httpx.MockTransport(handler))


class TestCanHandle:
    def test_weather_queries(self) -> None:
        plugin = WeatherPlugin()
        assert plugin.can_handle(ctx("What's the weather in Paris?"))
        assert plugin.can_handle(ctx("Will it rain tomorrow"))
        assert plugin.can_handle(ctx("current weather"))

    def test_other_queries(self) -> None:
        plugin = WeatherPlugin()
        assert not plugin.can_handle(ctx("Calculate 15 + 27"))
        assert not plugin.can_handle(ctx("Show me a photo"))


class TestExtractLocation:
    @pytest.mark.parametrize("query,expected", [
        ("What's the weather in Paris?", "Paris"),
        ("temperature in New York today!", "New York today"),
        ("weather for Berlin", "Berlin"),
        ("Is it cold in Oslo?", "Oslo"),
    ])
    def test_locations(self, query: str, expected: str) -> None:
        assert extract_location(query) == expected

    def test_no_location(self) -> None:
        assert extract_location("is it sunny") is None


class TestExecute:
    def test_success(self) -> None:
        requests: list[httpx.Request] = []
        plugin = make_plugin(requests=requests)
        result = asyncio.run(plugin.execute(ctx("What's the weather in Paris?")))
        assert result.success is True
        assert result.data["location"] == "Paris, France"
        assert result.data["conditions"] == "Partly cloudy"
        assert "Current Weather in Paris, France" in result.formatted_response
        assert "18.4°C" in result.formatted_response
        geocode, forecast = requests
        assert geocode.url.params["name"] == "Paris"
        assert geocode.url.params["count"] == "1"
        assert forecast.url.params["timezone"] == "auto"
        assert "weather_code" in forecast.url.params["current"]

    def test_unknown_location(self) -> None:
        plugin = make_plugin(geocode={"results": []})
        result = asyncio.run(plugin.execute(ctx("weather in Atlantis")))
        assert result.success is False
        assert "not found" in result.error

    def test_missing_location(self) -> None:
        result = asyncio.run(WeatherPlugin().execute(ctx("sunny")))
        assert result.success is False
        assert result.error == "Could not extract location from query"

    def test_upstream_error_is_a_failed_result(self) -> None:
        plugin = make_plugin(status=500)
        result = asyncio.run(plugin.execute(ctx("weather in Paris")))
        assert result.success is False
        assert "Weather lookup failed" in result.error


class TestHealthCheck:
    def test_healthy(self) -> None:
        assert asyncio.run(make_plugin().health_check()) is True

    def test_unhealthy_on_error_status(self) -> None:
        assert asyncio.run(make_plugin(status=503).health_check()) is False


def test_describe_weather_code() -> None:
    assert describe_weather_code(0) == "Clear sky"
    assert describe_weather_code(1234) == "Weather code 1234"
    assert describe_weather_code(None) == "Unknown"
