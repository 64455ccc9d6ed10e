r"""backend\spectragrow\core\observability.py

Request metrics, structured access logging and per-client rate limiting."""

from __future__ import annotations

import json
import threading
import time
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Callable

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from .config import get_settings

_REQUEST_COUNTER = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
_LATENCY_HISTOGRAM = Histogram(
    "http_request_latency_seconds", "Request latency", ["method", "path"]
)

_ANALYSIS_PREFIXES: dict[str, str] = {
    "/api/v1/feasibility": "business_feasibility",
    "/api/v1/forecasts": "demand_forecast",
}


def _analysis_type(path: str) -> str | None:
    for prefix, analysis in _ANALYSIS_PREFIXES.items():
        if path.startswith(prefix):
            return analysis
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware enforcing rate limiting, access logging and Prometheus metrics."""

    _lock: threading.Lock = threading.Lock()
    _buckets: dict[str, deque[float]] = defaultdict(deque)
    _per_minute: int = get_settings().rate_limit_per_min
    _exempt_prefixes: tuple[str, ...] = (
        "/api/v1/health",
        "/metrics",
        "/docs",
        "/redoc",
        "/openapi.json",
    )

    def _drop_idle_buckets(self, now: float) -> None:
        """Forget clients with no request inside the window. Caller holds ``_lock``."""

        idle = [ip for ip, window in self._buckets.items() if not window or now - window[-1] > 60.0]
        for ip in idle:
            del self._buckets[ip]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        method = request.method
        client_ip = request.client.host if request.client else "unknown"
        request_id = (
            request.headers.get("x-request-id")
            or request.headers.get("request-id")
            or str(uuid.uuid4())
        )

        start_perf = time.perf_counter()
        start_wall = time.time()

        def _finalize(response: Response) -> Response:
            latency = time.perf_counter() - start_perf
            status_code = getattr(response, "status_code", 500)

            _REQUEST_COUNTER.labels(method, path, str(status_code)).inc()
            _LATENCY_HISTOGRAM.labels(method, path).observe(latency)

            log_payload = {
                "timestamp": datetime.fromtimestamp(
                    start_wall, tz=timezone.utc
                ).isoformat(),
                "path": path,
                "method": method,
                "status": status_code,
                "latency_ms": int(latency * 1000),
                "request_id": request_id,
                "client_ip": client_ip,
                "analysis": _analysis_type(path),
            }
            print(json.dumps(log_payload))
            return response

        # Rate limiting per client IP
        if self._per_minute > 0 and not path.startswith(self._exempt_prefixes):
            now = time.time()
            with self._lock:
                self._drop_idle_buckets(now)
                window = self._buckets[client_ip]
                while window and now - window[0] > 60.0:
                    window.popleft()
                if len(window) >= self._per_minute:
                    error_response = PlainTextResponse("Too Many Requests", status_code=429)
                    return _finalize(error_response)
                window.append(now)

        response: Response
        try:
            response = await call_next(request)
        except Exception:
            # Record the failure, then let the server produce the 500.
            _finalize(PlainTextResponse("Internal Server Error", status_code=500))
            raise

        response.headers["x-request-id"] = request_id
        return _finalize(response)


def metrics_endpoint() -> Response:
    """Return Prometheus metrics payload."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
