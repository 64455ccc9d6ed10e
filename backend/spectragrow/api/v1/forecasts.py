"""Routes for demand forecasting."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...models import schemas
from ...services.forecasting_service import ForecastingService

LOGGER = logging.getLogger(__name__)

router = APIRouter()

_forecast_service = ForecastingService()


def _error_payload(code: str, message: str) -> dict[str, str]:
    """Return a standardised error payload."""

    return {"error": code, "message": message}


@router.post("/forecasts", response_model=schemas.ForecastResponse)
def create_forecast(body: schemas.ForecastInput) -> schemas.ForecastResponse:
    """Return the next-period demand forecast for the submitted history."""

    LOGGER.info(
        "Forecast request received for product=%s method=%s points=%s",
        body.product_name,
        body.method,
        len(body.historical_demand),
    )

    try:
        result = _forecast_service.forecast(body)
    except ValueError as exc:
        LOGGER.warning("Forecasting rejected for product=%s: %s", body.product_name, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload("invalid_request", str(exc)),
        ) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        LOGGER.exception("Unexpected error while forecasting product=%s", body.product_name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error_payload("forecast_failed", "An unexpected error occurred while forecasting."),
        ) from exc

    return result
