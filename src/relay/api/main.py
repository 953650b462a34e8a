from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..config import Settings, get_settings
from ..infrastructure.session_store import SessionStore, session_store_from_settings
from ..observability.metrics import LIVE_SESSIONS, metrics_middleware_factory
from ..services.model_gateway import LangChainModelGateway, ModelGateway
from .errors import register_exception_handlers
from .routers.generate import router as generate_router

load_dotenv()  # Load environment variables from .env if present (GEMINI_API_KEY, OPENAI_API_KEY, etc.)

APP_NAME = "Artifact Relay API"
APP_VERSION = "0.1.0"


def create_app(
    settings: Optional[Settings] = None,
    session_store: Optional[SessionStore] = None,
    model_gateway: Optional[ModelGateway] = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=APP_NAME, version=APP_VERSION)

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    app.state.settings = settings
    app.state.session_store = session_store or session_store_from_settings(settings)
    app.state.model_gateway = model_gateway or LangChainModelGateway()

    # Observability: request latency histogram
    app.middleware("http")(metrics_middleware_factory())

    register_exception_handlers(app)
    app.include_router(generate_router, prefix="/api")

    # CORS (for the questionnaire front end on localhost:3000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Session-ID"],
    )

    def _health() -> dict:
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "components": {
                "api": "ok",
                "sessions": app.state.session_store.count(),
            },
        }

    def _metrics() -> Response:
        LIVE_SESSIONS.set(app.state.session_store.count())
        data = generate_latest(REGISTRY)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    @app.get("/")
    def root():
        return {"name": APP_NAME, "version": APP_VERSION}

    @app.get("/health")
    def health():
        return _health()

    @app.get("/metrics")
    def metrics() -> Response:
        return _metrics()

    # API-prefixed convenience routes (kept alongside non-prefixed routes)
    @app.get("/api")
    def api_root():
        return {"name": APP_NAME, "version": APP_VERSION}

    @app.get("/api/health")
    def api_health():
        return _health()

    @app.get("/api/metrics")
    def api_metrics() -> Response:
        return _metrics()

    return app


app = create_app()
