"""
assistant.tools.speech

Speech-to-text and text-to-speech through the Google Cloud REST APIs.

GoogleSpeech(api_key, encoding, sample_rate, timeout):
- transcribe(audio): bytes -> transcript (Japanese primary, English alternative). Empty string if nothing was heard.
- synthesize(text, language_hint=None): text -> MP3 bytes.
- synthesize_both(japanese, english): both languages concurrently.

select_voice(text, language_hint=None) picks the voice from a hint or by script detection.

Audio is forwarded as uploaded; its encoding is declared through STT_ENCODING / STT_SAMPLE_RATE
(see util/settings.py).
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re

import requests
from fastapi.concurrency import run_in_threadpool

from assistant.errors import SpeechError
from util.http import post_json


logger = logging.getLogger(__name__)

STT_URL = "https://speech.googleapis.com/v1p1beta1/speech:recognize"
TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"

JAPANESE_VOICE = {"languageCode": "ja-JP", "name": "ja-JP-Neural2-B", "ssmlGender": "FEMALE"}
ENGLISH_VOICE = {"languageCode": "en-US", "name": "en-US-Neural2-F", "ssmlGender": "FEMALE"}

_HAS_JAPANESE = re.compile("[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")


def select_voice(text, language_hint=None):
    """Pick a voice from a language hint, else from the scripts present in `text`.

    Mixed Japanese/English text uses the Japanese voice; text with neither falls back to English.
    """
    if language_hint:
        hint = language_hint.lower()
        if hint.startswith("ja") or hint == "japanese":
            return dict(JAPANESE_VOICE)
        if hint.startswith("en") or hint == "english":
            return dict(ENGLISH_VOICE)
    if _HAS_JAPANESE.search(text or ""):
        return dict(JAPANESE_VOICE)
    return dict(ENGLISH_VOICE)


class GoogleSpeech:
    def __init__(self, api_key="", encoding="WEBM_OPUS", sample_rate=48000, timeout=None):
        self.api_key = api_key
        self.encoding = encoding
        self.sample_rate = sample_rate
        self.timeout = timeout

    def _post(self, url, payload):
        return post_json(url, payload, params={"key": self.api_key}, timeout=self.timeout)

    def transcribe(self, audio: bytes) -> str:
        """Return the transcript of `audio`."""
        if not audio:
            return ""
        payload = {
            "config": {
                "encoding": self.encoding,
                "sampleRateHertz": self.sample_rate,
                "languageCode": "ja-JP",
                "alternativeLanguageCodes": ["en-US"],
                "enableAutomaticPunctuation": True,
            },
            "audio": {"content": base64.b64encode(audio).decode("ascii")},
        }
        try:
            data = self._post(STT_URL, payload)
        except (requests.RequestException, ValueError) as exc:
            logger.error("Speech recognition failed: %s", exc)
            raise SpeechError("Speech recognition failed.") from exc
        parts = []
        for result in data.get("results") or []:
            alternatives = result.get("alternatives") or []
            if alternatives and alternatives[0].get("transcript"):
                parts.append(alternatives[0]["transcript"].strip())
        return " ".join(p for p in parts if p)

    def synthesize(self, text, language_hint=None) -> bytes:
        """Return MP3 audio for `text`."""
        if not text:
            raise SpeechError("Text is required for speech synthesis.")
        payload = {
            "input": {"text": text},
            "voice": select_voice(text, language_hint),
            "audioConfig": {"audioEncoding": "MP3", "speakingRate": 1.0, "pitch": 0.0, "volumeGainDb": 0.0},
        }
        try:
            data = self._post(TTS_URL, payload)
            return base64.b64decode(data["audioContent"])
        except (requests.RequestException, ValueError, KeyError) as exc:
            logger.error("Speech synthesis failed: %s", exc)
            raise SpeechError("Failed to convert text to speech.") from exc

    async def synthesize_both(self, japanese, english):
        """Return {'japanese': bytes, 'english': bytes}, synthesized concurrently."""
        ja_audio, en_audio = await asyncio.gather(
            run_in_threadpool(self.synthesize, japanese, "ja"),
            run_in_threadpool(self.synthesize, english, "en"),
        )
        return {"japanese": ja_audio, "english": en_audio}
