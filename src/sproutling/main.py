"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sproutling.api.routes import router
from sproutling.api.websocket import handle_browser_websocket
from sproutling.config import Settings, get_settings
from sproutling.speech.client import SpeechClient
from sproutling.storage.credentials import FileCredentialStore
from sproutling.storage.key_value import JsonKeyValueStore
from sproutling.storage.records import JsonRecordStore
from sproutling.tracker.session import SessionTracker
from sproutling.tracker.ticker import AsyncioTicker

logger = structlog.get_logger()

# Configure structlog based on environment
is_production = os.getenv("ENV", "development").lower() == "production"

if is_production:
    # Production: JSON format for machine parsing
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
else:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_tracker(settings: Settings) -> SessionTracker:
    """Wire a tracker to the file-backed stores under the data directory."""
    return SessionTracker(
        records=JsonRecordStore(settings.records_dir),
        usage_store=JsonKeyValueStore(settings.usage_path),
        credentials=FileCredentialStore(settings.credentials_path),
        ticker=AsyncioTicker(),
        credential_service=settings.credential_service,
        tick_interval_seconds=settings.tick_interval_seconds,
        flush_interval_ticks=settings.usage_flush_interval_ticks,
        pin_hash_rounds=settings.pin_hash_rounds,
    )


def build_speech_client(settings: Settings) -> SpeechClient:
    return SpeechClient(
        credentials=FileCredentialStore(settings.credentials_path),
        service=settings.credential_service,
        base_url=settings.elevenlabs_base_url,
        timeout=settings.elevenlabs_timeout_seconds,
        default_voice=settings.default_voice,
        default_model=settings.default_model,
    )


def create_app(
    settings: Settings | None = None,
    tracker: SessionTracker | None = None,
    speech: SpeechClient | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to the cached singleton).
        tracker: Pre-built tracker; built from settings when omitted.
        speech: Pre-built speech client; built from settings when omitted.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.tracker = tracker or build_tracker(settings)
        app.state.speech = speech or build_speech_client(settings)
        app.state.tracker.setup()
        logger.info("app_started", profiles=len(app.state.tracker.profiles))
        yield
        if app.state.tracker.is_tracking:
            app.state.tracker.stop_time_tracking()
        await app.state.speech.aclose()
        logger.info("app_stopped")

    app = FastAPI(title="Sproutling", version="0.1.0", lifespan=lifespan)
    _allowed_origins_env = os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000"
    )
    allowed_origins = [o.strip() for o in _allowed_origins_env.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next):
        """Optional APP_SECRET authentication; the health check stays open."""
        if not settings.app_secret or request.url.path == "/api/health":
            return await call_next(request)
        if request.headers.get("X-App-Secret", "") != settings.app_secret:
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        return await call_next(request)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Browser WebSocket endpoint."""
        if settings.app_secret and websocket.headers.get("X-App-Secret", "") != settings.app_secret:
            await websocket.close(code=1008, reason="Unauthorized")
            return
        await handle_browser_websocket(websocket, websocket.app.state.tracker)

    return app


def main() -> None:
    """Run the application."""
    settings = get_settings()
    uvicorn.run(
        "sproutling.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
