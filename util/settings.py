"""
util/settings.py

Runtime configuration read from environment variables.
- Every value has a default so the server starts with only API keys set
- Malformed numeric/boolean values fall back to the default instead of failing
"""

import os
from dataclasses import dataclass, field


def _env_str(name, default=""):
    return os.getenv(name, default).strip()


def _env_int(name, default):
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_float(name, default):
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name, default):
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
)


@dataclass
class Settings:
    weather_api_url: str = "http://api.weatherapi.com/v1"
    weather_api_key: str = ""
    ip_geolocation_api: str = "http://ip-api.com/json/"
    default_city: str = "Tokyo"
    google_api_key: str = ""
    stt_encoding: str = "WEBM_OPUS"
    stt_sample_rate: int = 48000
    http_timeout: float = 8.0
    max_history_length: int = 8
    session_timeout_minutes: int = 30
    session_sweep_minutes: int = 5
    city_detector_enabled: bool = False
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    port: int = 8080

    @property
    def session_timeout_seconds(self) -> float:
        return self.session_timeout_minutes * 60.0

    @property
    def session_sweep_seconds(self) -> float:
        return self.session_sweep_minutes * 60.0

    @classmethod
    def from_env(cls):
        """Build settings from the current process environment."""
        return cls(
            weather_api_url=_env_str("WEATHER_API_URL", cls.weather_api_url).rstrip("/"),
            weather_api_key=_env_str("WEATHER_API_KEY"),
            ip_geolocation_api=_env_str("IP_GEOLOCATION_API", cls.ip_geolocation_api),
            default_city=_env_str("DEFAULT_CITY", cls.default_city),
            google_api_key=_env_str("GOOGLE_API_KEY"),
            stt_encoding=_env_str("STT_ENCODING", cls.stt_encoding),
            stt_sample_rate=_env_int("STT_SAMPLE_RATE", cls.stt_sample_rate),
            http_timeout=_env_float("HTTP_TIMEOUT", cls.http_timeout),
            max_history_length=_env_int("MAX_HISTORY_LENGTH", cls.max_history_length),
            session_timeout_minutes=_env_int("SESSION_TIMEOUT_MINUTES", cls.session_timeout_minutes),
            session_sweep_minutes=_env_int("SESSION_SWEEP_MINUTES", cls.session_sweep_minutes),
            city_detector_enabled=_env_bool("CITY_DETECTOR_ENABLED", cls.city_detector_enabled),
            cors_origins=_env_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
            log_level=_env_str("LOG_LEVEL", cls.log_level).upper(),
            port=_env_int("PORT", cls.port),
        )
