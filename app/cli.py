"""
app/cli.py

Command-line chat interface over the conversation orchestrator.
- Reads user input, runs one turn per line against a single session
- Prints the Japanese and English replies plus the suggestion
- Appends each exchange to a transcript file under transcripts/

Environment: the same variables as the API (see util/settings.py).
"""

import asyncio
import logging
import os
from datetime import datetime, timezone

from assistant.errors import AssistantError, InputError
from assistant.orchestrator import Orchestrator
from assistant.providers import Providers
from assistant.resolver import LocationResolver
from assistant.session import InMemorySessionStore
from util.settings import Settings


logger = logging.getLogger(__name__)


def _transcript_path():
    root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    transcripts_dir = os.path.join(root_dir, "transcripts")
    try:
        os.makedirs(transcripts_dir, exist_ok=True)
    except OSError:
        logger.warning("Transcripts disabled: cannot create %s", transcripts_dir)
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return os.path.join(transcripts_dir, f"session-{stamp}.txt")


def format_result(result) -> str:
    lines = [f"Assistant (ja): {result.japaneseResponse}", f"Assistant (en): {result.englishResponse}"]
    if result.suggestion:
        lines.append(f"Suggestion: {result.suggestion}")
    if result.weather:
        loc = result.weather["location"]
        cur = result.weather["current"]
        lines.append(f"Weather: {loc['name']}, {loc['country']}: {cur['temp_c']}°C, {cur['condition_text']}")
    return "\n".join(lines)


async def run(settings: Settings, read=input, write=print, transcript_path=None, providers=None):
    """Run the interactive loop until EOF or 'exit'."""
    store = InMemorySessionStore(
        max_history_length=settings.max_history_length,
        inactivity_timeout=settings.session_timeout_seconds,
    )
    providers = providers or Providers.from_settings(settings)
    resolver = LocationResolver(store, get_weather=providers.get_weather, city_from_ip=providers.city_from_ip)
    orchestrator = Orchestrator(
        store, resolver, speech=providers.speech, city_detector_enabled=settings.city_detector_enabled
    )
    session_id = None
    write("Themed Weather Assistant (type 'exit' to quit)\n")
    while True:
        try:
            user = read("You: ").strip()
        except EOFError:
            break
        if not user:
            continue
        if user.lower() in {"exit", "quit"}:
            write("Bye!")
            break
        try:
            result = await orchestrator.handle_message(user, session_id)
        except InputError as exc:
            write(f"! {exc}\n")
            continue
        except AssistantError:
            logger.exception("Turn failed")
            write("! Something went wrong, please try again.\n")
            continue
        session_id = result.sessionId
        reply = format_result(result)
        write(f"{reply}\n")
        if transcript_path:
            with open(transcript_path, "a", encoding="utf-8") as f:
                f.write(f"You: {user}\n{reply}\n")


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.WARNING))
    asyncio.run(run(settings, transcript_path=_transcript_path()))


if __name__ == "__main__":
    main()
