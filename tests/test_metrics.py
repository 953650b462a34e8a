from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from src.relay.observability import metrics

from .utils import ScriptedGateway


def test_metrics_endpoint_exposes_histogram(make_client):
    client = make_client(ScriptedGateway())
    # Trigger a request to ensure histogram has an observation
    r = client.get("/health")
    assert r.status_code == 200

    m = client.get("/metrics")
    assert m.status_code == 200
    body = m.text

    assert "# HELP relay_request_latency_seconds" in body
    assert "# TYPE relay_request_latency_seconds histogram" in body
    assert (
        "relay_request_latency_seconds_count" in body
        or "relay_request_latency_seconds_bucket" in body
        or "relay_request_latency_seconds_sum" in body
    )
    assert "relay_live_sessions" in body

    api = client.get("/api/metrics")
    assert api.status_code == 200
    assert "relay_request_latency_seconds" in api.text


def test_completed_stream_is_counted(make_client, answers):
    labels = {"artifact": "guide", "state": "completed"}
    before = REGISTRY.get_sample_value("relay_stream_outcomes_total", labels) or 0.0
    chunks_before = REGISTRY.get_sample_value("relay_stream_chunks_total", {"artifact": "guide"}) or 0.0

    client = make_client(ScriptedGateway(chunks=["a", "b", "c"]))
    r = client.post("/api/generate/guide", json={"userAnswers": answers})
    assert r.status_code == 200

    assert REGISTRY.get_sample_value("relay_stream_outcomes_total", labels) == before + 1
    assert REGISTRY.get_sample_value("relay_stream_chunks_total", {"artifact": "guide"}) == chunks_before + 3


def test_sanitize_path_cases():
    assert metrics.sanitize_path("") == "/"
    assert metrics.sanitize_path("/") == "/"
    assert metrics.sanitize_path("/health") == "/health"
    assert metrics.sanitize_path("/api/generate/tasks") == "/api/generate/tasks"
    assert metrics.sanitize_path("/api/health?verbose=1") == "/api/health"
    assert metrics.sanitize_path("/docs/oauth2-redirect/extra") == "/docs/oauth2-redirect"


def test_middleware_does_not_break_on_metrics_exception(monkeypatch):
    app = FastAPI()
    app.middleware("http")(metrics.metrics_middleware_factory())

    @app.get("/ok")
    def ok():
        return {"ok": True}

    class Boom:
        def labels(self, *args, **kwargs):
            raise RuntimeError("boom")

    monkeypatch.setattr(metrics, "REQUEST_LATENCY", Boom())

    client = TestClient(app)
    r = client.get("/ok")
    assert r.status_code == 200


def test_record_stream_swallows_label_errors(monkeypatch):
    class Boom:
        def labels(self, *args, **kwargs):
            raise RuntimeError("boom")

    monkeypatch.setattr(metrics, "STREAM_CHUNKS", Boom())
    metrics.record_stream("tasks", "completed", 1, 10)
