"""
assistant/providers.py

External service callables, configured once from Settings.
- get_weather(location) -> raw forecast payload or None
- city_from_ip(ip) -> city or None
- speech: object with transcribe / synthesize / synthesize_both
"""

from dataclasses import dataclass
from functools import partial
from typing import Any, Callable

from assistant.tools import geo, weather
from assistant.tools.speech import GoogleSpeech
from util.settings import Settings


@dataclass
class Providers:
    get_weather: Callable
    city_from_ip: Callable
    speech: Any

    @classmethod
    def from_settings(cls, settings: Settings):
        return cls(
            get_weather=partial(
                weather.get_weather,
                api_key=settings.weather_api_key,
                base_url=settings.weather_api_url,
                timeout=settings.http_timeout,
            ),
            city_from_ip=partial(
                geo.city_from_ip,
                api_url=settings.ip_geolocation_api,
                default_city=settings.default_city,
                timeout=settings.http_timeout,
            ),
            speech=GoogleSpeech(
                api_key=settings.google_api_key,
                encoding=settings.stt_encoding,
                sample_rate=settings.stt_sample_rate,
                timeout=settings.http_timeout,
            ),
        )
