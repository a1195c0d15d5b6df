"""
assistant/nlu.py

The three NLU calls behind a conversation turn.

- extract_intent(text, history): structured intent; malformed model output raises IntentParseError.
- generate_final_response(text, intent, weather, theme, focus_day=None): themed, weather-aware reply.
- generate_general_response(text, history, theme): casual reply without weather.
Both generators fall back to a fixed bilingual apology when the model output is unusable.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from assistant.errors import IntentParseError
from assistant.prompts import (
    GENERAL_SYSTEM_PROMPT,
    INTENT_SYSTEM_PROMPT,
    final_response_prompt,
    general_response_prompt,
    intent_prompt,
    persona_system_prompt,
)
from assistant.schemas import FALLBACK_REPLY, Intent, Reply
from llm.client import call_llm


logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


def parse_json_object(text):
    """Decode a JSON object, tolerating a surrounding markdown code fence."""
    if not isinstance(text, str):
        raise ValueError("model output is not text")
    m = _FENCE.match(text)
    if m:
        text = m.group(1)
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("model output is not a JSON object")
    return data


def extract_intent(user_text, history) -> Intent:
    raw = call_llm(INTENT_SYSTEM_PROMPT, intent_prompt(user_text, history), json_mode=True)
    try:
        return Intent.model_validate(parse_json_object(raw))
    except (ValueError, ValidationError) as exc:
        logger.error("Intent extraction returned unusable output: %.200r", raw)
        raise IntentParseError("Failed to parse intent response.", raw=raw) from exc


def _reply_or_fallback(raw, label) -> Reply:
    try:
        return Reply.model_validate(parse_json_object(raw))
    except (ValueError, ValidationError):
        logger.warning("%s response was malformed (%d chars), using fallback: %.200r", label, len(raw or ""), raw)
        return FALLBACK_REPLY.model_copy()


def generate_final_response(user_text, intent, weather, theme, focus_day=None) -> Reply:
    prompt = final_response_prompt(user_text, intent, weather, theme, focus_day=focus_day)
    raw = call_llm(persona_system_prompt(theme), prompt, json_mode=True)
    return _reply_or_fallback(raw, "Final")


def generate_general_response(user_text, history, theme) -> Reply:
    prompt = general_response_prompt(user_text, history, theme)
    raw = call_llm(GENERAL_SYSTEM_PROMPT, prompt, json_mode=True)
    return _reply_or_fallback(raw, "General")
