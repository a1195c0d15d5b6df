"""
assistant/errors.py

Exceptions raised across the assistant.
- InputError: the request itself is unusable (maps to HTTP 400, message shown to the user)
- everything else is an internal failure (HTTP 500, message kept in logs only)
"""


class AssistantError(Exception):
    """Base class for assistant failures."""


class InputError(AssistantError):
    """Missing or unusable user input."""


class IntentParseError(AssistantError):
    """The NLU intent call returned something that is not a valid intent object."""

    def __init__(self, message, raw=None):
        super().__init__(message)
        self.raw = raw


class WeatherUnavailable(AssistantError):
    """The weather provider failed for a reason other than an unknown place."""


class SpeechError(AssistantError):
    """Speech-to-text or text-to-speech conversion failed."""
