"""
assistant/city_detector.py

Secondary city detector for the session's city memory.

- detect_city(text, intent): intent location, then the regex extractor, then a wider set of
  English/Japanese travel and weather phrasings filtered by `is_likely_city`.
- should_save_as_current_city(detected, current, text): only replace a saved city on a clear
  travel statement or a weather question about a different place.

Off by default (CITY_DETECTOR_ENABLED); the location resolver's priority chain is the primary path.
"""

from __future__ import annotations

import re

from assistant.location import JA_CHARS, extract_location, is_likely_city


_JA = f"[{JA_CHARS}A-Za-z\\s]+?"

CITY_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(
        r"(?:going to|traveling to|visiting|will be in|am in|i'll be in|heading to|flying to)\s+"
        r"([A-Za-z\s]+?)(?:\s+(?:tomorrow|today|yesterday|next|last|this|for|on)\b|[.,]|$)",
        re.IGNORECASE,
    ),
    re.compile(rf"({_JA})(?:に行きます|に行く|へ行きます|へ行く|に向かいます|に向かう)"),
    re.compile(
        r"\b(?:in|at|from)\s+([A-Za-z\s]+?)(?:\s+(?:tomorrow|today|yesterday|weather|forecast|climate|city|place)\b|[.,]|$)",
        re.IGNORECASE,
    ),
    re.compile(r"([A-Za-z\s]+?)\s+(?:weather|forecast|climate|temperature)", re.IGNORECASE),
    re.compile(r"(?:city of|town of|place called)\s+([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(rf"({_JA})(?:の天気|はどんな天気|で天気|にいます|にいる)"),
    re.compile(rf"私は({_JA})(?:にいます|にいる|です)"),
    re.compile(r"^([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\s*(?:please|weather|\?|$)", re.IGNORECASE),
)

TRAVEL_KEYWORDS = ("going to", "traveling to", "will be in", "heading to", "flying to", "visiting")
JA_TRAVEL_KEYWORDS = ("に行きます", "に行く", "へ行きます", "へ行く", "に向かいます", "に向かう")
WEATHER_KEYWORDS = ("weather", "forecast", "climate", "temperature")


def detect_city(text, intent=None):
    """Return a city mentioned in `text`, or None."""
    location = getattr(intent, "location", None)
    if isinstance(location, str) and location.strip():
        return location.strip()

    found = extract_location(text)
    if found:
        return found
    if not text or not isinstance(text, str):
        return None

    for rx in CITY_PATTERNS:
        m = rx.search(text)
        if m and m.group(1):
            candidate = m.group(1).strip()
            if is_likely_city(candidate):
                return candidate
    return None


def should_save_as_current_city(detected, current, text):
    """Decide whether `detected` should replace the saved city `current`."""
    if not current:
        return True
    if detected.lower() == current.lower():
        return False
    low = (text or "").lower()
    if any(k in low for k in TRAVEL_KEYWORDS) or any(k in (text or "") for k in JA_TRAVEL_KEYWORDS):
        return True
    # a weather question about a different city moves the conversation there
    return any(k in low for k in WEATHER_KEYWORDS)
