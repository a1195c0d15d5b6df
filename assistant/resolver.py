"""
assistant/resolver.py

Location resolution for a conversation turn.

Priority chain (first hit wins):
  1. explicit location from the intent, else the regex extractor on the raw text
  2. the session's saved current city
  3. the last location found in conversation history
  4. client-supplied coordinates
  5. IP geolocation of the client address

Coordinates are also resolved to a place name as soon as they arrive and saved as the current city,
whether or not the turn needs weather. After a weather fetch, the place name the provider resolved
replaces the saved city.
"""

from __future__ import annotations

import logging

from fastapi.concurrency import run_in_threadpool

from assistant.errors import WeatherUnavailable
from assistant.location import extract_location, find_last_location
from assistant.session import SessionStore
from assistant.tools.weather import Coordinates, location_name


logger = logging.getLogger(__name__)


class LocationResolver:
    def __init__(self, store: SessionStore, get_weather, city_from_ip):
        self.store = store
        self._get_weather = get_weather
        self._city_from_ip = city_from_ip

    async def remember_coordinates(self, session_id: str, coordinates: Coordinates | None) -> str | None:
        """Resolve `coordinates` to a place name and save it as the session's current city."""
        if coordinates is None:
            return None
        try:
            raw = await run_in_threadpool(self._get_weather, coordinates)
        except (WeatherUnavailable, ValueError) as exc:
            logger.warning("Could not resolve coordinates %s: %s", coordinates.as_query(), exc)
            return None
        city = location_name(raw)
        if city:
            logger.debug("Coordinates %s resolved to %s", coordinates.as_query(), city)
            self.store.set_current_city(session_id, city)
        return city

    async def resolve(
        self,
        user_text: str,
        intent_location: str | None,
        session_id: str,
        coordinates: Coordinates | None,
        history,
        client_ip: str | None,
    ):
        """Return a place name, a `Coordinates`, or None when nothing can be determined."""
        explicit = intent_location or extract_location(user_text)
        if explicit:
            logger.debug("Location from message: %s", explicit)
            return explicit

        saved = self.store.current_city(session_id)
        if saved:
            logger.debug("Location from session memory: %s", saved)
            return saved

        remembered = find_last_location(history)
        if remembered:
            logger.debug("Location from history: %s", remembered)
            return remembered

        if coordinates is not None:
            logger.debug("Location from coordinates: %s", coordinates.as_query())
            return coordinates

        city = await run_in_threadpool(self._city_from_ip, client_ip)
        logger.debug("Location from IP %s: %s", client_ip, city)
        return city or None

    async def fetch_weather(self, session_id: str, location):
        """Fetch weather for `location`; remember the provider's place name as the current city.

        Returns the raw payload, or None when the provider does not know the place.
        """
        raw = await run_in_threadpool(self._get_weather, location)
        resolved = location_name(raw)
        if not resolved:
            logger.warning("Weather data not found for %r; the place may be invalid", location)
            return None
        if self.store.current_city(session_id) != resolved:
            self.store.set_current_city(session_id, resolved)
        return raw
