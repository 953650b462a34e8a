"""Prometheus metrics for the relay FastAPI backend.

Adds an HTTP middleware that records request latency per method/path/status
and the counters the stream relay reports when a stream ends.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Gauge, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds); for streams this is
# time to first byte since the middleware sees the response once headers go out.
REQUEST_LATENCY = Histogram(
    "relay_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

STREAM_CHUNKS = Counter(
    "relay_stream_chunks_total",
    "Upstream chunks relayed to clients",
    labelnames=("artifact",),
)

STREAM_BYTES = Counter(
    "relay_stream_bytes_total",
    "UTF-8 bytes written to client streams",
    labelnames=("artifact",),
)

STREAM_OUTCOMES = Counter(
    "relay_stream_outcomes_total",
    "Finished streams by terminal state",
    labelnames=("artifact", "state"),
)

LIVE_SESSIONS = Gauge(
    "relay_live_sessions",
    "Sessions currently held in the session store",
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths to a coarse label.

    ``/api/generate/blueprint`` keeps its artifact segment since there are only
    four of them; everything else keeps its first two segments.
    """
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    return "/" + "/".join(segs[:3] if segs[:2] == ["api", "generate"] else segs[:2])


def record_stream(artifact: str, state: str, chunks: int, total_bytes: int) -> None:
    try:
        STREAM_CHUNKS.labels(artifact=artifact).inc(chunks)
        STREAM_BYTES.labels(artifact=artifact).inc(total_bytes)
        STREAM_OUTCOMES.labels(artifact=artifact, state=state).inc()
    except Exception:
        # Never let metrics break a stream
        pass


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # Avoid observing the metrics endpoint itself
        if request.url.path.endswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except Exception:
            pass
        return response

    return middleware
