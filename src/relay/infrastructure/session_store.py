from __future__ import annotations

import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, List, Mapping, Optional, Protocol, Tuple

from ..domain.generation_models import Role, Turn


LOG = logging.getLogger("relay.sessions")


class SessionStore(Protocol):
    def get_or_create(self, session_id: Optional[str], answers: Mapping[str, Any]) -> Tuple[str, List[Turn]]: ...

    def append(self, session_id: str, text: str, role: Role = "model") -> None: ...

    def history(self, session_id: str) -> List[Turn]: ...

    def count(self) -> int: ...


def derive_session_id(answers: Mapping[str, Any]) -> str:
    """Stable id for submissions that do not carry one.

    Identical answers always map to the same session so repeated anonymous
    submissions share history instead of piling up new sessions.
    """
    canonical = json.dumps(dict(answers), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"session_{digest[:16]}"


@dataclass
class _Session:
    session_id: str
    last_access: float
    turns: List[Turn] = field(default_factory=list)


class InMemorySessionStore:
    """Process-local history map with LRU and idle-TTL eviction.

    Each call is atomic. A request reads history when it starts and appends
    when its stream ends, and nothing serializes that span: concurrent requests
    on one session id interleave their turns in completion order.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: "OrderedDict[str, _Session]" = OrderedDict()
        self._max_entries = max(1, int(max_entries))
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = RLock()

    def _evict(self, now: float) -> None:
        expired = [sid for sid, sess in self._sessions.items() if now - sess.last_access > self._ttl]
        for sid in expired:
            del self._sessions[sid]
        while len(self._sessions) > self._max_entries:
            sid, _ = self._sessions.popitem(last=False)
            expired.append(sid)
        if expired:
            LOG.info("sessions_evicted", extra={"count": len(expired), "live": len(self._sessions)})

    def _touch(self, session_id: str, now: float) -> _Session:
        sess = self._sessions.get(session_id)
        if sess is None:
            sess = _Session(session_id=session_id, last_access=now)
            self._sessions[session_id] = sess
            LOG.debug("session_created", extra={"session_id": session_id})
        else:
            sess.last_access = now
            self._sessions.move_to_end(session_id)
        return sess

    def get_or_create(self, session_id: Optional[str], answers: Mapping[str, Any]) -> Tuple[str, List[Turn]]:
        sid = (session_id or "").strip() or derive_session_id(answers)
        with self._lock:
            now = self._clock()
            self._evict(now)
            sess = self._touch(sid, now)
            self._evict(now)
            return sid, list(sess.turns)

    def append(self, session_id: str, text: str, role: Role = "model") -> None:
        """Record one turn.

        A ``user`` turn re-creates an evicted session. A ``model`` turn whose
        session was evicted (or emptied) while the answer streamed is dropped,
        so a history never starts with a model turn.
        """
        with self._lock:
            now = self._clock()
            self._evict(now)
            if role == "model":
                sess = self._sessions.get(session_id)
                if sess is None or not sess.turns:
                    LOG.info("session_turn_dropped", extra={"session_id": session_id, "role": role})
                    return
            sess = self._touch(session_id, now)
            sess.turns.append(Turn(role=role, text=text))
            self._evict(now)

    def history(self, session_id: str) -> List[Turn]:
        with self._lock:
            sess = self._sessions.get(session_id)
            return list(sess.turns) if sess else []

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)


def session_store_from_settings(settings: Any) -> InMemorySessionStore:
    return InMemorySessionStore(
        max_entries=settings.session_max_entries,
        ttl_seconds=settings.session_ttl_seconds,
    )
