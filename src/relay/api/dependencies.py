from __future__ import annotations

from fastapi import Request

from ..config import Settings
from ..infrastructure.session_store import SessionStore
from ..services.model_gateway import ModelGateway


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_model_gateway(request: Request) -> ModelGateway:
    return request.app.state.model_gateway
