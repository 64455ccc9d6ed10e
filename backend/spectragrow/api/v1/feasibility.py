r"""backend\spectragrow\api\v1\feasibility.py

Business feasibility analysis routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from .forecasts import _error_payload
from ...models import schemas
from ...services.feasibility_service import FeasibilityService

LOGGER = logging.getLogger(__name__)

router = APIRouter()

_feasibility_service = FeasibilityService()


@router.post("/feasibility", response_model=schemas.BusinessFeasibilityResult)
def analyze_feasibility(body: schemas.BusinessFeasibilityInput) -> schemas.BusinessFeasibilityResult:
    """Return feasibility metrics and a verdict for the submitted business plan."""

    LOGGER.info(
        "Feasibility request received for business=%s investment_items=%s operational_items=%s",
        body.business_name,
        len(body.investment_costs),
        len(body.operational_costs),
    )

    try:
        return _feasibility_service.analyze(body)
    except ValueError as exc:
        LOGGER.warning("Feasibility analysis rejected for business=%s: %s", body.business_name, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload("invalid_request", str(exc)),
        ) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        LOGGER.exception("Unexpected error during feasibility analysis for business=%s", body.business_name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error_payload(
                "feasibility_failed", "An unexpected error occurred while analysing feasibility."
            ),
        ) from exc
