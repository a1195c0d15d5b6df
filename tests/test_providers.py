from assistant.providers import Providers
from assistant.tools import geo, weather
from util.settings import Settings


def test_settings_bound_into_calls(monkeypatch):
    calls = []

    def fake_get_json(url, params=None, timeout=None, **kwargs):
        calls.append((url, params, timeout))
        return {"status": "success", "city": "Kobe"}

    monkeypatch.setattr(weather, "get_json", fake_get_json)
    monkeypatch.setattr(geo, "get_json", fake_get_json)
    providers = Providers.from_settings(
        Settings(
            weather_api_key="w-key",
            weather_api_url="https://weather.test/v1",
            ip_geolocation_api="https://geo.test/",
            default_city="Nara",
            google_api_key="g-key",
            stt_encoding="LINEAR16",
            stt_sample_rate=16000,
            http_timeout=4.0,
        )
    )

    providers.get_weather("Kobe")
    assert calls[-1] == (
        "https://weather.test/v1/forecast.json",
        {"key": "w-key", "q": "Kobe", "days": 3, "aqi": "no", "alerts": "no"},
        4.0,
    )
    assert providers.city_from_ip("198.51.100.7") == "Kobe"
    assert calls[-1] == ("https://geo.test/198.51.100.7", None, 4.0)
    assert providers.city_from_ip("127.0.0.1") == "Nara"

    speech = providers.speech
    assert (speech.api_key, speech.encoding, speech.sample_rate, speech.timeout) == ("g-key", "LINEAR16", 16000, 4.0)
