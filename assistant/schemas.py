"""
assistant/schemas.py

Structured payloads exchanged with the NLU model and returned to clients.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Intent(BaseModel):
    """What the intent-extraction call understood about one user message."""

    model_config = ConfigDict(extra="ignore")

    location: Optional[str] = None
    date: str = "today"
    mood: Optional[str] = None
    requires_weather_data: bool = False
    is_greeting_or_smalltalk: bool = False
    is_general_conversation: bool = False
    chosen_theme: Optional[str] = None
    implied_theme: Optional[str] = None

    @field_validator("location", "mood", "chosen_theme", "implied_theme", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("date", mode="before")
    @classmethod
    def _default_date(cls, value):
        if not isinstance(value, str) or not value.strip():
            return "today"
        return value.strip()

    @field_validator("requires_weather_data", "is_greeting_or_smalltalk", "is_general_conversation", mode="before")
    @classmethod
    def _null_is_false(cls, value):
        return False if value is None else value


class Reply(BaseModel):
    """Bilingual answer produced by the response-generation call."""

    model_config = ConfigDict(extra="ignore")

    japaneseResponse: str
    englishResponse: str
    suggestion: str = ""


FALLBACK_REPLY = Reply(
    japaneseResponse="申し訳ございませんが、応答の生成中にエラーが発生しました。もう一度お試しください。",
    englishResponse="Sorry, there was an error generating the response. Please try again.",
    suggestion="Please try your request again.",
)


class ChatResult(BaseModel):
    """Response body for one chat turn."""

    sessionId: str
    japaneseResponse: str
    englishResponse: str
    suggestion: str = ""
    weather: Optional[dict[str, Any]] = None
    action_required: Optional[str] = None

    def history_payload(self) -> dict[str, Any]:
        """The model turn as stored in session history (everything but the session id)."""
        return self.model_dump(exclude={"sessionId"})


class ChatRequest(BaseModel):
    text: Optional[str] = None
    sessionId: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    locationContext: Optional[str] = None
