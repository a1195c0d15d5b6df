from __future__ import annotations

import base64
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from assistant import nlu as default_nlu
from assistant.errors import AssistantError, InputError, WeatherUnavailable
from assistant.orchestrator import Orchestrator
from assistant.providers import Providers
from assistant.resolver import LocationResolver
from assistant.schemas import ChatRequest
from assistant.session import InMemorySessionStore, SessionStore
from assistant.sweeper import SessionSweeper
from assistant.tools.weather import Coordinates, location_name
from util.http import client_ip
from util.settings import Settings


logger = logging.getLogger(__name__)

INTERNAL_ERROR = "An internal server error occurred."


class TTSRequest(BaseModel):
    text: str | None = None
    language: str | None = None
    japaneseText: str | None = None
    englishText: str | None = None
    mode: str | None = None


def _error(status, message):
    return JSONResponse({"error": message}, status_code=status)


def _peer(request: Request):
    return request.client.host if request.client else None


async def _read_chat_request(request: Request):
    """Return (ChatRequest, audio bytes or None) from a JSON or multipart body."""
    content_type = request.headers.get("content-type", "")
    audio = None
    if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        fields = {k: v for k, v in form.items() if isinstance(v, str) and v != ""}
        upload = form.get("audio")
        if isinstance(upload, UploadFile):
            audio = await upload.read()
    else:
        try:
            fields = await request.json()
        except ValueError:
            raise InputError("Request body must be JSON or form data.")
        if not isinstance(fields, dict):
            raise InputError("Request body must be a JSON object.")
    try:
        return ChatRequest.model_validate(fields), audio
    except ValidationError:
        raise InputError("Invalid chat request.")


def create_app(
    settings: Settings | None = None,
    store: SessionStore | None = None,
    get_weather=None,
    city_from_ip=None,
    nlu=default_nlu,
    speech=None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    providers = Providers.from_settings(settings)
    get_weather = get_weather or providers.get_weather
    city_from_ip = city_from_ip or providers.city_from_ip
    speech = speech or providers.speech
    _configure_logging(settings.log_level)
    store = store or InMemorySessionStore(
        max_history_length=settings.max_history_length,
        inactivity_timeout=settings.session_timeout_seconds,
    )
    resolver = LocationResolver(store, get_weather=get_weather, city_from_ip=city_from_ip)
    orchestrator = Orchestrator(
        store,
        resolver,
        nlu=nlu,
        speech=speech,
        city_detector_enabled=settings.city_detector_enabled,
    )
    sweeper = SessionSweeper(store, interval=settings.session_sweep_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper.start()
        logger.info("Sessions expire after %d minutes of inactivity", settings.session_timeout_minutes)
        try:
            yield
        finally:
            await sweeper.stop()

    app = FastAPI(title="Themed Weather Assistant API", lifespan=lifespan)
    app.state.store = store
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization", "Cache-Control"],
    )

    @app.get("/")
    def health():
        return PlainTextResponse("Themed weather assistant backend is running!")

    @app.exception_handler(InputError)
    async def input_error(request: Request, exc: InputError):
        return _error(400, str(exc))

    @app.exception_handler(AssistantError)
    async def assistant_error(request: Request, exc: AssistantError):
        logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
        return _error(500, INTERNAL_ERROR)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error(500, INTERNAL_ERROR)

    @app.post("/api/chat")
    async def chat(request: Request):
        req, audio = await _read_chat_request(request)
        coords = None
        if req.latitude is not None and req.longitude is not None:
            coords = Coordinates(req.latitude, req.longitude)
        ip = client_ip(request.headers, _peer(request))
        if audio:
            result = await orchestrator.handle_audio(audio, req.sessionId, coords, ip, location_context=req.locationContext)
        else:
            result = await orchestrator.handle_message(req.text, req.sessionId, coords, ip)
        return result.model_dump()

    @app.get("/api/weather")
    async def raw_weather(city: str | None = None):
        if not city:
            return _error(400, "City query parameter is required.")
        try:
            data = await run_in_threadpool(get_weather, city)
        except WeatherUnavailable:
            logger.exception("Raw weather lookup failed for %r", city)
            return _error(500, "Failed to fetch weather data.")
        if not data:
            return _error(404, f"Weather data for city '{city}' not found.")
        return data

    @app.get("/api/location")
    async def detect_location(request: Request, lat: float | None = None, lon: float | None = None):
        try:
            if lat is not None and lon is not None:
                data = await run_in_threadpool(get_weather, Coordinates(lat, lon))
                city = location_name(data)
                if not city:
                    return _error(404, "Could not find a city for the provided coordinates.")
                return {"city": city}
            city = await run_in_threadpool(city_from_ip, client_ip(request.headers, _peer(request)))
        except Exception:
            logger.exception("Location detection failed")
            return _error(500, INTERNAL_ERROR)
        if not city:
            return _error(404, "Could not determine location from IP address.")
        return {"city": city}

    @app.post("/api/tts")
    async def tts(body: TTSRequest):
        try:
            if body.mode == "both" and body.japaneseText and body.englishText:
                both = await speech.synthesize_both(body.japaneseText, body.englishText)
                return {
                    "success": True,
                    "audio": {
                        "japanese": base64.b64encode(both["japanese"]).decode("ascii"),
                        "english": base64.b64encode(both["english"]).decode("ascii"),
                    },
                    "contentType": "audio/mpeg",
                }
            if not body.text:
                return _error(400, "Missing required parameters. Provide 'text' or both 'japaneseText' and 'englishText'")
            hint = None
            filename = "speech.mp3"
            if body.language:
                hint = "ja" if body.language.lower() == "japanese" else "en"
                filename = f"speech_{body.language}.mp3"
            audio = await run_in_threadpool(speech.synthesize, body.text, hint)
        except Exception:
            logger.exception("Text-to-speech failed")
            return _error(500, "Failed to convert text to speech.")
        return Response(
            content=audio,
            media_type="audio/mpeg",
            headers={"Content-Disposition": f'attachment; filename="{filename}"', "Cache-Control": "no-cache"},
        )

    @app.get("/api/debug/session/{session_id}")
    def debug_session(session_id: str):
        session = store.get(session_id)
        last = None
        if session:
            last = datetime.fromtimestamp(session.last_accessed, tz=timezone.utc).isoformat()
        return {
            "sessionId": session_id,
            "exists": session is not None,
            "currentCity": session.current_city if session else None,
            "historyLength": len(session.history) if session else 0,
            "theme": session.theme if session else None,
            "lastAccessed": last,
        }

    return app


def _configure_logging(level):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=Settings.from_env().port)
