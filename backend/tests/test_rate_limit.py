r"""backend/tests/test_rate_limit.py"""

from __future__ import annotations

import sys
import time
from collections import defaultdict, deque
from pathlib import Path

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.spectragrow.main import app  # noqa: E402

_BODY = {
    "productName": "Jagung",
    "historicalDemand": [
        {"period": "Period 1", "demand": 5},
        {"period": "Period 2", "demand": 7},
        {"period": "Period 3", "demand": 9},
    ],
    "method": "sma",
}


def test_rate_limit(monkeypatch):
    from backend.spectragrow.core import observability as obs

    monkeypatch.setattr(obs.RateLimitMiddleware, "_per_minute", 1, raising=False)
    monkeypatch.setattr(
        obs.RateLimitMiddleware,
        "_buckets",
        defaultdict(deque),
        raising=False,
    )

    client = TestClient(app)

    first = client.post("/api/v1/forecasts", json=_BODY)
    assert first.status_code == 200
    assert first.headers.get("x-request-id")

    limited = client.post("/api/v1/forecasts", json=_BODY)
    assert limited.status_code == 429

    health = client.get("/api/v1/health")
    assert health.status_code == 200
    assert health.json() == {"status": "ok"}


def test_request_id_is_propagated():
    client = TestClient(app)

    response = client.get("/api/v1/health", headers={"x-request-id": "abc-123"})

    assert response.headers["x-request-id"] == "abc-123"


def test_metrics_endpoint_exposes_request_counters():
    client = TestClient(app)
    client.get("/api/v1/health")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "http_request_latency_seconds" in response.text


def test_root_redirects_to_docs():
    client = TestClient(app)

    response = client.get("/", follow_redirects=False)

    assert response.status_code in {302, 307}
    assert response.headers["location"] == "/docs"


def test_idle_clients_are_forgotten(monkeypatch):
    from backend.spectragrow.core import observability as obs

    buckets = defaultdict(deque)
    buckets["203.0.113.7"].append(time.time() - 120.0)
    buckets["203.0.113.8"] = deque()
    monkeypatch.setattr(obs.RateLimitMiddleware, "_per_minute", 100, raising=False)
    monkeypatch.setattr(obs.RateLimitMiddleware, "_buckets", buckets, raising=False)

    client = TestClient(app)
    assert client.post("/api/v1/forecasts", json=_BODY).status_code == 200

    assert "203.0.113.7" not in buckets
    assert "203.0.113.8" not in buckets
    assert len(buckets) == 1
