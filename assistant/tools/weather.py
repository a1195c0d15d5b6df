"""
assistant.tools.weather

Weather lookups against WeatherAPI.com (forecast endpoint, 3 days).

Functions:
- get_weather(location, api_key, base_url, timeout): raw forecast payload for a city name or `Coordinates`; None if the provider
  does not know the place (HTTP 400). Any other failure raises `WeatherUnavailable`.
- structure_weather(raw): reduce the raw payload to the shape returned to clients.
- forecast_day_summary(day): one-line description of a forecast day for prompts.

Configuration (passed in from util/settings.py):
- api_key   WEATHER_API_KEY (required)
- base_url  WEATHER_API_URL (default: http://api.weatherapi.com/v1)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from assistant.errors import WeatherUnavailable
from util.http import get_json, status_of


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://api.weatherapi.com/v1"
FORECAST_DAYS = 3


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    def as_query(self):
        return f"{self.lat},{self.lon}"


def _location_query(location):
    if isinstance(location, Coordinates):
        return location.as_query()
    if isinstance(location, str) and location.strip():
        return location.strip()
    raise ValueError("Location identifier (city or coordinates) is required for weather lookup.")


def get_weather(location, api_key="", base_url=DEFAULT_BASE_URL, timeout=None):
    """Return the raw forecast payload for `location`, or None for an unknown place."""
    query = _location_query(location)
    base = (base_url or DEFAULT_BASE_URL).rstrip("/")
    try:
        return get_json(
            f"{base}/forecast.json",
            params={"key": api_key, "q": query, "days": FORECAST_DAYS, "aqi": "no", "alerts": "no"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        if status_of(exc) == 400:
            logger.warning("Weather provider does not know %r", query)
            return None
        logger.error("Weather lookup failed for %r: %s", query, exc)
        raise WeatherUnavailable("Could not fetch weather data.") from exc
    except ValueError as exc:
        logger.error("Weather provider returned a non-JSON body for %r", query)
        raise WeatherUnavailable("Could not fetch weather data.") from exc


def location_name(raw):
    """Return the place name the provider resolved, if any."""
    if not raw:
        return None
    return (raw.get("location") or {}).get("name") or None


def _day(day):
    if not day:
        return None
    return {
        "maxtemp_c": day.get("maxtemp_c"),
        "mintemp_c": day.get("mintemp_c"),
        "condition_text": (day.get("condition") or {}).get("text"),
        "condition_icon": (day.get("condition") or {}).get("icon"),
        "daily_chance_of_rain": day.get("daily_chance_of_rain"),
    }


def structure_weather(raw):
    """Reduce a raw forecast payload to location, current conditions and today/tomorrow."""
    if not raw:
        return None
    location = raw.get("location") or {}
    current = raw.get("current") or {}
    condition = current.get("condition") or {}
    days = (raw.get("forecast") or {}).get("forecastday") or []
    today = days[0].get("day") if len(days) > 0 else None
    tomorrow = days[1].get("day") if len(days) > 1 else None
    return {
        "location": {
            "name": location.get("name"),
            "region": location.get("region"),
            "country": location.get("country"),
        },
        "current": {
            "temp_c": current.get("temp_c"),
            "condition_text": condition.get("text"),
            "condition_icon": condition.get("icon"),
            "humidity": current.get("humidity"),
            "wind_kph": current.get("wind_kph"),
        },
        "forecast": {
            "today": _day(today),
            "tomorrow": _day(tomorrow),
        },
    }


def forecast_day_summary(forecast_day):
    """Return a compact line like '2024-05-02: Sunny, 14–22°C, rain 10%'."""
    try:
        day = forecast_day["day"]
        return (
            f"{forecast_day.get('date')}: {day['condition']['text']}, "
            f"{round(day['mintemp_c'])}–{round(day['maxtemp_c'])}°C, rain {day.get('daily_chance_of_rain', 0)}%"
        )
    except (KeyError, TypeError):
        return f"{(forecast_day or {}).get('date', '?')}: summary unavailable"
