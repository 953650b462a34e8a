"""Runtime settings for the relay service.

Values come from the process environment (a local ``.env`` is loaded by the
API module). Integer knobs that are missing, malformed or non-positive fall
back to their defaults instead of failing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Mapping, Optional, Tuple


DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _env_list(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    session_ttl_seconds: int = 3600
    session_max_entries: int = 1000
    channel_buffer_size: int = 64
    progress_log_seconds: float = 10.0
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            session_ttl_seconds=_env_int(env, "RELAY_SESSION_TTL_SECONDS", 3600),
            session_max_entries=_env_int(env, "RELAY_SESSION_MAX_ENTRIES", 1000),
            channel_buffer_size=_env_int(env, "RELAY_CHANNEL_BUFFER", 64),
            progress_log_seconds=_env_float(env, "RELAY_PROGRESS_LOG_SECONDS", 10.0),
            log_level=(env.get("RELAY_LOG_LEVEL") or "INFO").upper(),
            cors_origins=_env_list(env, "RELAY_CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
