"""
assistant/location.py

Regex-based location extraction from free text and conversation history.

Key functions:
- extract_location(text): first match from an ordered table of language-tagged patterns
  (Japanese '〇〇の天気', romanized 'X no tenki', English 'weather in X', English "X's weather").
- find_last_location(history): walk history newest-to-oldest; model turns yield the weather location
  they carried, user turns go through the extractor and then looser travel/weather phrasing.
- is_likely_city(text): cheap plausibility filter for loose pattern captures.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass


logger = logging.getLogger(__name__)

JA_CHARS = "\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF\u3400-\u4DBF\uFF00-\uFFEF"
_EN_STOP = r"(?=\s+(?:today|tomorrow|tonight|this|next|on|please|now)\b|\s*[?.!,]|\s*$)"


@dataclass(frozen=True)
class LocationPattern:
    language: str
    regex: re.Pattern
    group: int = 1

    def match(self, text: str) -> str | None:
        m = self.regex.search(text)
        if not m:
            return None
        value = (m.group(self.group) or "").strip()
        return value or None


LOCATION_PATTERNS: tuple[LocationPattern, ...] = (
    LocationPattern("ja", re.compile(rf"([{JA_CHARS}A-Za-z\s]+?)(?:の天気|はどんな天気)")),
    LocationPattern("ja-romaji", re.compile(r"\b([A-Za-z][A-Za-z\s]*?)\s+no\s+tenki\b", re.IGNORECASE)),
    LocationPattern("en", re.compile(rf"\bweather\s+(?:in|for)\s+([A-Za-z][A-Za-z\s]*?){_EN_STOP}", re.IGNORECASE)),
    LocationPattern("en", re.compile(r"\b((?:[A-Z][a-z]+\s+)*[A-Z][a-z]+)'s\s+weather")),
)

# Looser phrasing only trusted when scanning past user turns.
TRAVEL_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\b(?:in|to|from|at)\s+([A-Za-z\s]+?)\s+(?:tomorrow|today|yesterday|next|last|this)\b", re.IGNORECASE),
    re.compile(r"\b(?:going to|visiting|traveling to|travelling to|will be in)\s+([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"([A-Za-z\s]+)\s+(?:weather|forecast|climate)\b", re.IGNORECASE),
)

LEADING_FILLER = {
    "the", "s", "a", "an", "what", "whats", "how", "hows", "where", "when", "is", "about", "and", "so", "then",
}
TRAILING_FILLER = {
    "tomorrow", "today", "tonight", "yesterday", "next", "last", "this", "week", "weekend", "month",
    "please", "for", "on", "the", "and", "now",
}
NOT_A_CITY = {
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "weather", "today", "tomorrow", "tonight", "yesterday", "now", "there", "here", "this", "that",
    "how", "what", "where", "when", "why", "who",
    "good", "bad", "nice", "great", "okay", "fine", "well", "very", "really",
    "going", "coming", "will", "can", "could", "would", "should", "must",
    "please", "thank", "thanks", "sorry", "hello", "hi", "hey",
}


def extract_location(text) -> str | None:
    """Return the first plausible location matched by LOCATION_PATTERNS, or None.

    Captures are trimmed of question and time words; a capture that is not a place
    ("tomorrow", "How") lets the next pattern try. Safe on any input: non-strings
    and empty strings return None.
    """
    if not text or not isinstance(text, str):
        return None
    for pattern in LOCATION_PATTERNS:
        found = pattern.match(text)
        if not found:
            continue
        cleaned = _clean_capture(found)
        if cleaned:
            logger.debug("Location pattern %s matched %r", pattern.language, cleaned)
            return cleaned
        logger.debug("Location pattern %s captured %r, not a place", pattern.language, found)
    return None


def is_likely_city(text) -> bool:
    """Reject captures that are obviously not place names."""
    if not text or len(text) < 2 or len(text) > 50:
        return False
    if text.lower() in NOT_A_CITY:
        return False
    if not re.search(rf"[A-Za-z{JA_CHARS}]", text):
        return False
    # long all-caps runs are shouting, not acronyms
    if text.isascii() and text == text.upper() and len(text) > 4:
        return False
    return True


def _clean_capture(candidate: str) -> str | None:
    words = candidate.split()
    while words and words[0].lower() in LEADING_FILLER:
        words.pop(0)
    while words and words[-1].lower() in TRAILING_FILLER:
        words.pop()
    cleaned = " ".join(words)
    return cleaned if is_likely_city(cleaned) else None


def _tidy(candidate: str) -> str | None:
    # loose travel phrasing needs more than two letters to count
    cleaned = _clean_capture(candidate)
    if cleaned and len(cleaned) > 2:
        return cleaned
    return None


def _location_from_model_turn(content) -> str | None:
    payload = json.loads(content)
    weather = payload.get("weather") or {}
    name = (weather.get("location") or {}).get("name")
    return name or None


def _location_from_user_turn(content, extractor) -> str | None:
    found = extractor(content)
    if found:
        return found
    for rx in TRAVEL_PATTERNS:
        m = rx.search(content)
        if m and m.group(1):
            cleaned = _tidy(m.group(1))
            if cleaned:
                return cleaned
    return None


def find_last_location(history, extractor=extract_location) -> str | None:
    """Return the most recent location mentioned or resolved in `history`, or None.

    A malformed entry is logged and skipped; it never aborts the scan.
    """
    if not history:
        return None
    for entry in reversed(history):
        try:
            role = entry.get("role")
            content = entry.get("content")
            if role == "model":
                found = _location_from_model_turn(content)
            elif role == "user":
                found = _location_from_user_turn(content, extractor)
            else:
                continue
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping unreadable history entry: %s", exc)
            continue
        if found:
            logger.debug("Location %r recovered from %s turn", found, role)
            return found
    return None
