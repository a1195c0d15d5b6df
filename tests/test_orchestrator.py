import asyncio
import json
from datetime import date, timedelta

import pytest

from assistant.errors import InputError, IntentParseError, SpeechError, WeatherUnavailable
from assistant.orchestrator import CHOOSE_THEME, Orchestrator, TurnState, classify_turn
from assistant.prompts import THEME_PROMPT
from assistant.resolver import LocationResolver
from assistant.schemas import Intent
from assistant.tools.weather import Coordinates

from fakes import FakeIP, FakeNLU, FakeSpeech, FakeWeather


WEATHER_Q = {"requires_weather_data": True}


class Harness:
    def __init__(self, store, intents=None, weather=None, ip=None, speech=None, city_detector_enabled=False):
        self.store = store
        self.nlu = FakeNLU(intents)
        self.weather = weather or FakeWeather()
        self.ip = ip or FakeIP()
        self.speech = speech or FakeSpeech()
        resolver = LocationResolver(store, get_weather=self.weather, city_from_ip=self.ip)
        self.orchestrator = Orchestrator(
            store, resolver, nlu=self.nlu, speech=self.speech, city_detector_enabled=city_detector_enabled
        )

    def send(self, text, session_id=None, coordinates=None, client_ip="203.0.113.5"):
        return asyncio.run(self.orchestrator.handle_message(text, session_id, coordinates, client_ip))

    def themed_session(self, theme="photography"):
        sid = self.store.create()
        self.store.set_theme(sid, theme)
        return sid


class TestClassifyTurn:
    def test_chosen_theme_first(self):
        assert classify_turn("food", Intent(chosen_theme="sports", requires_weather_data=True)) is TurnState.THEME_CONFIRMATION

    def test_no_theme(self):
        assert classify_turn(None, Intent(requires_weather_data=True)) is TurnState.THEME_PROMPT

    def test_general(self):
        assert classify_turn("food", Intent(is_general_conversation=True)) is TurnState.GENERAL_CONVERSATION

    def test_task(self):
        assert classify_turn("food", Intent()) is TurnState.TASK_FLOW


class TestThemeFlow:
    def test_new_session_is_asked_for_a_theme(self, store):
        h = Harness(store, {"Tokyo no tenki wa?": {"location": "Tokyo", **WEATHER_Q}})
        result = h.send("Tokyo no tenki wa?")

        assert result.action_required == CHOOSE_THEME
        assert result.englishResponse == THEME_PROMPT["englishResponse"]
        assert result.weather is None
        assert h.weather.calls == []
        # the prompt itself is not recorded
        assert store.get(result.sessionId).history == []

    def test_theme_choice_is_saved_and_confirmed(self, store):
        h = Harness(store, {"I choose Photography": {"chosen_theme": "Photography"}})
        result = h.send("I choose Photography")

        session = store.get(result.sessionId)
        assert session.theme == "photography"
        assert result.action_required is None
        assert "photography" in result.englishResponse
        assert [m["role"] for m in session.history] == ["user", "model"]

    def test_theme_choice_wins_over_weather(self, store):
        h = Harness(store, {"Sports! weather in Paris?": {"chosen_theme": "Sports", "location": "Paris", **WEATHER_Q}})
        sid = h.themed_session("food")
        result = h.send("Sports! weather in Paris?", sid)

        assert store.get(sid).theme == "sports"
        assert result.weather is None
        assert h.weather.calls == []

    def test_implied_theme_is_adopted(self, store):
        text = "Good photo spots in Kyoto?"
        h = Harness(store, {text: {"implied_theme": "Photography", "location": "Kyoto", **WEATHER_Q}})
        result = h.send(text)

        assert store.get(result.sessionId).theme == "photography"
        assert result.action_required is None
        assert result.weather["location"]["name"] == "Kyoto"
        assert h.nlu.final_calls[0]["theme"] == "photography"


class TestTaskFlow:
    def test_weather_for_named_city(self, store):
        text = "What's the weather in Paris tomorrow?"
        h = Harness(store, {text: {"location": "Paris", "date": "tomorrow", **WEATHER_Q}})
        sid = h.themed_session()
        result = h.send(text, sid)

        assert result.sessionId == sid
        assert result.weather["location"]["name"] == "Paris"
        assert result.weather["forecast"]["tomorrow"] is not None
        assert store.current_city(sid) == "Paris"
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        assert h.nlu.final_calls[0]["focus_day"].startswith(tomorrow)

        history = store.get(sid).history
        assert history[0] == {"role": "user", "content": text}
        stored = json.loads(history[1]["content"])
        assert "sessionId" not in stored
        assert stored["weather"]["location"]["name"] == "Paris"

    def test_follow_up_uses_remembered_city(self, store):
        h = Harness(store, {"大阪の天気は？": WEATHER_Q, "What should I do tomorrow?": {"date": "tomorrow", **WEATHER_Q}})
        sid = h.themed_session()
        first = h.send("大阪の天気は？", sid)
        second = h.send("What should I do tomorrow?", sid)

        assert first.weather["location"]["name"] == "Osaka"
        assert second.weather["location"]["name"] == "Osaka"
        assert h.weather.calls == ["大阪", "Osaka"]
        assert h.ip.calls == []

    def test_unknown_place_still_answers(self, store):
        text = "Weather in Atlantis?"
        h = Harness(store, {text: {"location": "Atlantis", **WEATHER_Q}})
        sid = h.themed_session()
        store.set_current_city(sid, "Kyoto")
        result = h.send(text, sid)

        assert result.weather is None
        assert result.englishResponse == "Enjoy photography in your area"
        assert store.current_city(sid) == "Kyoto"
        assert len(store.get(sid).history) == 2

    def test_no_weather_needed(self, store):
        h = Harness(store, {"Any indoor ideas?": {}})
        sid = h.themed_session()
        result = h.send("Any indoor ideas?", sid)

        assert result.weather is None
        assert h.weather.calls == []
        assert h.ip.calls == []
        assert len(h.nlu.final_calls) == 1

    def test_ip_fallback_when_nothing_else(self, store):
        h = Harness(store, {"What to do today?": WEATHER_Q}, ip=FakeIP("Kyoto"))
        sid = h.themed_session()
        result = h.send("What to do today?", sid, client_ip="198.51.100.1")

        assert result.weather["location"]["name"] == "Kyoto"
        assert h.ip.calls == ["198.51.100.1"]

    def test_provider_failure_propagates_without_recording(self, store):
        text = "weather in Paris"
        h = Harness(store, {text: WEATHER_Q}, weather=FakeWeather(error=WeatherUnavailable("down")))
        sid = h.themed_session()
        with pytest.raises(WeatherUnavailable):
            h.send(text, sid)
        assert store.get(sid).history == []


class TestGeneralConversation:
    def test_casual_reply_without_weather(self, store):
        h = Harness(store, {"Thanks!": {"is_general_conversation": True, "location": "Paris"}})
        sid = h.themed_session("food")
        result = h.send("Thanks!", sid)

        assert result.englishResponse == "You're welcome!"
        assert result.weather is None
        assert result.action_required is None
        assert h.weather.calls == []
        assert h.nlu.general_calls[0]["theme"] == "food"
        assert len(store.get(sid).history) == 2


class TestSessionsAndInput:
    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_input_creates_nothing(self, store, text):
        h = Harness(store)
        with pytest.raises(InputError):
            h.send(text)
        assert len(store) == 0

    def test_unknown_session_gets_a_new_id(self, store):
        h = Harness(store)
        result = h.send("hello", "expired-id")
        assert result.sessionId != "expired-id"
        assert result.sessionId in store

    def test_coordinates_are_saved_on_any_turn(self, store):
        h = Harness(store, weather=FakeWeather(coordinates_city="Shibuya"))
        result = h.send("hello", coordinates=Coordinates(35.66, 139.7))

        assert result.action_required == CHOOSE_THEME
        assert store.current_city(result.sessionId) == "Shibuya"

    def test_intent_failure_propagates_without_recording(self, store):
        h = Harness(store, {"???": IntentParseError("bad", raw="nope")})
        sid = h.themed_session()
        with pytest.raises(IntentParseError):
            h.send("???", sid)
        assert store.get(sid).history == []

    def test_history_is_bounded(self, clock):
        from assistant.session import InMemorySessionStore

        store = InMemorySessionStore(max_history_length=4, clock=clock)
        h = Harness(store, {f"idea {i}": {} for i in range(5)})
        sid = h.themed_session()
        for i in range(5):
            h.send(f"idea {i}", sid)

        history = store.get(sid).history
        assert len(history) == 4
        assert history[0]["content"] == "idea 3"
        # the model saw the history as it was before the turn
        assert [m["content"] for m in h.nlu.intent_calls[-1][1] if m["role"] == "user"] == ["idea 2", "idea 3"]

    def test_concurrent_turns_on_one_session_are_serialized(self, store):
        h = Harness(store, {f"idea {i}": {} for i in range(4)})
        sid = h.themed_session()

        async def burst():
            await asyncio.gather(*(h.orchestrator.handle_message(f"idea {i}", sid) for i in range(4)))

        asyncio.run(burst())
        history = store.get(sid).history
        assert len(history) == 8
        assert [m["role"] for m in history] == ["user", "model"] * 4


class TestCityDetector:
    def test_travel_statement_updates_city_memory(self, store):
        h = Harness(store, {"I'm going to Kyoto tomorrow": {}}, city_detector_enabled=True)
        sid = h.themed_session()
        h.send("I'm going to Kyoto tomorrow", sid)
        assert store.current_city(sid) == "Kyoto"

    def test_disabled_by_default(self, store):
        h = Harness(store, {"I'm going to Kyoto tomorrow": {}})
        sid = h.themed_session()
        h.send("I'm going to Kyoto tomorrow", sid)
        assert store.current_city(sid) is None


class TestAudio:
    def test_transcript_gets_location_context(self, store):
        h = Harness(store, speech=FakeSpeech("What's the weather?"))
        sid = h.themed_session()
        asyncio.run(h.orchestrator.handle_audio(b"webm", sid, location_context="I am in Kyoto"))

        assert h.speech.transcribed == [b"webm"]
        assert h.nlu.intent_calls[0][0] == "What's the weather?. I am in Kyoto"

    def test_location_context_ignored_when_city_known(self, store):
        h = Harness(store, speech=FakeSpeech("What's the weather?"))
        sid = h.themed_session()
        store.set_current_city(sid, "Osaka")
        asyncio.run(h.orchestrator.handle_audio(b"webm", sid, location_context="I am in Kyoto"))
        assert h.nlu.intent_calls[0][0] == "What's the weather?"

    def test_silence_is_an_input_error(self, store):
        h = Harness(store, speech=FakeSpeech(""))
        with pytest.raises(InputError):
            asyncio.run(h.orchestrator.handle_audio(b"webm"))
        assert len(store) == 0

    def test_without_speech_provider(self, store):
        orchestrator = Orchestrator(store, LocationResolver(store, get_weather=FakeWeather(), city_from_ip=FakeIP()))
        with pytest.raises(SpeechError):
            asyncio.run(orchestrator.handle_audio(b"webm"))
