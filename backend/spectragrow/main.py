r"""backend\spectragrow\main.py

Main entrypoint for the FastAPI application.

The API exposes the business feasibility calculator and the demand
forecasting engine as JSON endpoints.  A health endpoint is also provided
for readiness/liveness checks and Prometheus metrics are served from
``/metrics``.  Configuration is read from environment variables and YAML
files in `configs/`.
"""


import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

# Load .env from repo root before the services read their configuration
BASE_DIR = Path(__file__).resolve().parents[2]
load_dotenv(BASE_DIR / ".env")

from .api.v1 import feasibility, forecasts, health  # noqa: E402
from .core.config import get_settings  # noqa: E402
from .core.observability import RateLimitMiddleware, metrics_endpoint  # noqa: E402

settings = get_settings()

logging.getLogger(__name__).info(
    "Config directory: %s rate_limit_per_min=%s",
    settings.config_dir,
    settings.rate_limit_per_min,
)

app = FastAPI(title="SpectraGrow Analytics API", version="0.1.0")

origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,  # In production specify your UI domain(s)
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware)

# Include versioned routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(feasibility.router, prefix="/api/v1")
app.include_router(forecasts.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
def _root() -> RedirectResponse:
    """Redirect the root path to the interactive docs."""

    return RedirectResponse(url="/docs")


@app.get("/metrics", include_in_schema=False)
async def _metrics() -> Response:
    """Expose Prometheus metrics."""

    return metrics_endpoint()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
