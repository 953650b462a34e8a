import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture
def settings():
    from src.relay.config import Settings

    return Settings.from_env(env={})


@pytest.fixture
def store():
    from src.relay.infrastructure.session_store import InMemorySessionStore

    return InMemorySessionStore(max_entries=100, ttl_seconds=3600)


@pytest.fixture
def make_client(settings, store):
    """Build a TestClient around a fresh app wired to the given gateway."""
    from fastapi.testclient import TestClient

    from src.relay.api.main import create_app

    def _make(gateway):
        app = create_app(settings=settings, session_store=store, model_gateway=gateway)
        return TestClient(app)

    return _make


@pytest.fixture
def answers() -> dict:
    return {
        "projectName": "TaskPilot",
        "projectOverview": "A planner for small teams.",
        "coreFeatures": "Boards, reminders, reports",
        "uiUx": "Clean dashboard",
        "techArchitecture": "FastAPI + React",
        "additionalRequirements": "SSO",
    }
