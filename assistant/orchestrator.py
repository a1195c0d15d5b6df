"""
assistant/orchestrator.py

Per-message conversation state machine.

Each turn derives a TurnState from the session theme and the extracted intent, then dispatches:
- THEME_CONFIRMATION: the user chose a theme; save it and confirm.
- THEME_PROMPT: no theme yet; ask for one (action_required='choose_theme'), nothing recorded.
- GENERAL_CONVERSATION: casual reply, no weather.
- TASK_FLOW: resolve a location only if the intent needs weather, fetch it, reply in theme.
An implied theme is adopted before classification when no theme exists yet.

Turns on one session are serialized with the store's per-session lock. The exchange is written to
history once, after the reply exists, so a failed turn leaves no partial record.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from fastapi.concurrency import run_in_threadpool

from assistant import nlu as default_nlu
from assistant.city_detector import detect_city, should_save_as_current_city
from assistant.errors import InputError, SpeechError
from assistant.prompts import THEME_PROMPT, theme_confirmation
from assistant.resolver import LocationResolver
from assistant.schemas import ChatResult, Intent
from assistant.session import SessionStore
from assistant.tools.weather import Coordinates, forecast_day_summary, structure_weather
from util.dates import pick_forecast_day


logger = logging.getLogger(__name__)

CHOOSE_THEME = "choose_theme"


@dataclass
class _Turn:
    text: str
    session_id: str
    intent: Intent
    theme: str | None
    history: list
    coordinates: Coordinates | None
    client_ip: str | None


class TurnState(str, enum.Enum):
    THEME_CONFIRMATION = "theme_confirmation"
    THEME_PROMPT = "theme_prompt"
    GENERAL_CONVERSATION = "general_conversation"
    TASK_FLOW = "task_flow"


def classify_turn(theme: str | None, intent: Intent) -> TurnState:
    """Derive the turn state. A theme choice always wins over the weather flow."""
    if intent.chosen_theme:
        return TurnState.THEME_CONFIRMATION
    if not theme:
        return TurnState.THEME_PROMPT
    if intent.is_general_conversation:
        return TurnState.GENERAL_CONVERSATION
    return TurnState.TASK_FLOW


class Orchestrator:
    def __init__(
        self,
        store: SessionStore,
        resolver: LocationResolver,
        nlu=default_nlu,
        speech=None,
        city_detector_enabled: bool = False,
    ):
        self.store = store
        self.resolver = resolver
        self.nlu = nlu
        self.speech = speech
        self.city_detector_enabled = city_detector_enabled
        self._handlers = {
            TurnState.THEME_CONFIRMATION: self._confirm_theme,
            TurnState.THEME_PROMPT: self._prompt_for_theme,
            TurnState.GENERAL_CONVERSATION: self._general_conversation,
            TurnState.TASK_FLOW: self._task_flow,
        }

    def _open_session(self, session_id: str | None) -> str:
        if session_id and self.store.get(session_id) is not None:
            return session_id
        if session_id:
            logger.info("Unknown session %s, starting a new one", session_id)
        return self.store.create()

    async def handle_message(
        self,
        text: str | None,
        session_id: str | None = None,
        coordinates: Coordinates | None = None,
        client_ip: str | None = None,
    ) -> ChatResult:
        text = (text or "").strip()
        if not text:
            raise InputError("No input provided.")

        session_id = self._open_session(session_id)
        async with self.store.lock(session_id):
            return await self._run_turn(text, session_id, coordinates, client_ip)

    async def handle_audio(
        self,
        audio: bytes,
        session_id: str | None = None,
        coordinates: Coordinates | None = None,
        client_ip: str | None = None,
        location_context: str | None = None,
    ) -> ChatResult:
        """Transcribe `audio` and handle it as a text message.

        `location_context` (e.g. "I am in Kyoto") is appended only while the session has no saved city.
        """
        if not audio:
            raise InputError("No input provided.")
        if self.speech is None:
            raise SpeechError("Speech recognition is not configured.")
        text = (await run_in_threadpool(self.speech.transcribe, audio) or "").strip()
        if not text:
            raise InputError("Could not understand audio.")
        if location_context and not self.store.current_city(session_id):
            logger.debug("Appending location context to transcribed message")
            text = f"{text}. {location_context}"
        return await self.handle_message(text, session_id, coordinates, client_ip)

    async def _run_turn(self, text, session_id, coordinates, client_ip) -> ChatResult:
        session = self.store.get(session_id)
        history = list(session.history) if session else []

        intent = await run_in_threadpool(self.nlu.extract_intent, text, history)

        if coordinates is not None:
            await self.resolver.remember_coordinates(session_id, coordinates)

        if self.city_detector_enabled:
            self._update_city_memory(session_id, text, intent)

        session = self.store.get(session_id)
        theme = session.theme if session else None
        if not theme and intent.implied_theme and not intent.chosen_theme:
            theme = intent.implied_theme.lower()
            logger.debug("Adopting implied theme %r for session %s", theme, session_id)
            self.store.set_theme(session_id, theme)

        state = classify_turn(theme, intent)
        logger.debug("Session %s turn state: %s", session_id, state.value)
        ctx = _Turn(text, session_id, intent, theme, history, coordinates, client_ip)
        return await self._handlers[state](ctx)

    def _update_city_memory(self, session_id, text, intent):
        detected = detect_city(text, intent)
        if not detected:
            return
        if should_save_as_current_city(detected, self.store.current_city(session_id), text):
            self.store.set_current_city(session_id, detected)

    async def _confirm_theme(self, turn: _Turn) -> ChatResult:
        theme = turn.intent.chosen_theme.lower()
        self.store.set_theme(turn.session_id, theme)
        result = ChatResult(sessionId=turn.session_id, **theme_confirmation(theme))
        self._record(turn, result)
        return result

    async def _prompt_for_theme(self, turn: _Turn) -> ChatResult:
        return ChatResult(sessionId=turn.session_id, action_required=CHOOSE_THEME, **THEME_PROMPT)

    async def _general_conversation(self, turn: _Turn) -> ChatResult:
        reply = await run_in_threadpool(self.nlu.generate_general_response, turn.text, turn.history, turn.theme)
        result = ChatResult(sessionId=turn.session_id, weather=None, action_required=None, **reply.model_dump())
        self._record(turn, result)
        return result

    async def _task_flow(self, turn: _Turn) -> ChatResult:
        raw_weather = None
        if turn.intent.requires_weather_data:
            location = await self.resolver.resolve(
                turn.text,
                turn.intent.location,
                turn.session_id,
                turn.coordinates,
                turn.history,
                turn.client_ip,
            )
            if location:
                raw_weather = await self.resolver.fetch_weather(turn.session_id, location)
            else:
                logger.info("No location could be determined; answering without weather")

        focus = pick_forecast_day(raw_weather, turn.intent.date)
        reply = await run_in_threadpool(
            self.nlu.generate_final_response,
            turn.text,
            turn.intent,
            raw_weather,
            turn.theme,
            forecast_day_summary(focus) if focus else None,
        )
        result = ChatResult(sessionId=turn.session_id, weather=structure_weather(raw_weather), **reply.model_dump())
        self._record(turn, result)
        return result

    def _record(self, turn: _Turn, result: ChatResult) -> None:
        self.store.append_exchange(turn.session_id, turn.text, result.history_payload())
