"""Deterministic stand-ins for the model, weather, geolocation and speech providers."""

from datetime import date, timedelta

from assistant.schemas import Intent, Reply
from assistant.tools.weather import Coordinates, location_name


def raw_weather(name="Tokyo", country="Japan", start=None, days=3):
    start = start or date.today()
    return {
        "location": {"name": name, "region": "", "country": country},
        "current": {
            "temp_c": 18.0,
            "condition": {"text": "Sunny", "icon": "//cdn/sunny.png"},
            "humidity": 60,
            "wind_kph": 9.4,
        },
        "forecast": {
            "forecastday": [
                {
                    "date": (start + timedelta(days=i)).isoformat(),
                    "day": {
                        "maxtemp_c": 22.0 + i,
                        "mintemp_c": 14.0,
                        "condition": {"text": "Partly cloudy", "icon": "//cdn/cloudy.png"},
                        "daily_chance_of_rain": 10 * i,
                    },
                }
                for i in range(days)
            ]
        },
    }


KNOWN_PLACES = {
    "tokyo": ("Tokyo", "Japan"),
    "東京": ("Tokyo", "Japan"),
    "osaka": ("Osaka", "Japan"),
    "大阪": ("Osaka", "Japan"),
    "kyoto": ("Kyoto", "Japan"),
    "paris": ("Paris", "France"),
}


class FakeWeather:
    def __init__(self, coordinates_city="Shibuya", error=None):
        self.coordinates_city = coordinates_city
        self.error = error
        self.calls = []

    def __call__(self, location):
        self.calls.append(location)
        if self.error is not None:
            raise self.error
        if isinstance(location, Coordinates):
            return raw_weather(self.coordinates_city)
        known = KNOWN_PLACES.get(location.strip().lower())
        return raw_weather(*known) if known else None


class FakeIP:
    def __init__(self, city="Nagoya"):
        self.city = city
        self.calls = []

    def __call__(self, ip):
        self.calls.append(ip)
        return self.city


class FakeNLU:
    """Intent lookup by exact message text; replies echo what they were given."""

    def __init__(self, intents=None):
        self.intents = intents or {}
        self.intent_calls = []
        self.final_calls = []
        self.general_calls = []

    def extract_intent(self, text, history):
        self.intent_calls.append((text, list(history)))
        value = self.intents.get(text, {})
        if isinstance(value, Exception):
            raise value
        return Intent.model_validate(value)

    def generate_final_response(self, text, intent, weather, theme, focus_day=None):
        self.final_calls.append(
            {"text": text, "intent": intent, "weather": weather, "theme": theme, "focus_day": focus_day}
        )
        place = location_name(weather) or "your area"
        return Reply(
            japaneseResponse=f"{place}で{theme}を楽しみましょう",
            englishResponse=f"Enjoy {theme} in {place}",
            suggestion=f"Try {theme} today",
        )

    def generate_general_response(self, text, history, theme):
        self.general_calls.append({"text": text, "history": list(history), "theme": theme})
        return Reply(japaneseResponse="どういたしまして！", englishResponse="You're welcome!", suggestion="")


class FakeSpeech:
    def __init__(self, transcript="What's the weather?"):
        self.transcript = transcript
        self.transcribed = []

    def transcribe(self, audio):
        self.transcribed.append(audio)
        return self.transcript

    def synthesize(self, text, language_hint=None):
        return f"mp3:{language_hint}:{text}".encode("utf-8")

    async def synthesize_both(self, japanese, english):
        return {"japanese": self.synthesize(japanese, "ja"), "english": self.synthesize(english, "en")}
