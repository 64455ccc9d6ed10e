r"""backend\spectragrow\models\schemas.py

Pydantic models used throughout the API.

These models serve as both request payload validators and response
serialisation schemas.  JSON payloads use camelCase keys while Python code
works with snake_case attributes; both spellings are accepted on input.
Result models are frozen so a computed analysis cannot be altered after
it has been produced.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False
    )


class _FrozenCamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, allow_inf_nan=False
    )


def _require_finite_total(values: Iterable[float], label: str) -> None:
    # Individually finite amounts can still overflow once summed
    if not math.isfinite(sum(values)):
        raise ValueError(f"{label} is too large to be represented")


# ---------------------------------------------------------------------------
# Business feasibility


class CostItem(_CamelModel):
    """A single cost line item entered by the user."""

    id: str = Field("", description="Opaque row identifier; ignored by the math")
    name: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0, description="Amount in currency units")


class InvestmentCost(CostItem):
    """One-time investment cost."""


class OperationalCost(CostItem):
    """Recurring monthly operational cost."""


class BusinessFeasibilityInput(_CamelModel):
    business_name: str = Field(..., min_length=1)
    investment_costs: List[InvestmentCost] = Field(default_factory=list)
    operational_costs: List[OperationalCost] = Field(default_factory=list)
    production_cost_per_unit: float = Field(..., ge=0)
    monthly_sales_volume: float = Field(..., ge=1, description="Units sold per month")
    markup: float = Field(..., ge=0, description="Markup over unit cost, in percent")
    project_lifespan: int = Field(..., ge=1, description="Project lifespan in years")

    @model_validator(mode="after")
    def check_totals(self) -> "BusinessFeasibilityInput":
        _require_finite_total((c.amount for c in self.investment_costs), "Total investment")
        _require_finite_total(
            (c.amount for c in self.operational_costs), "Total operational cost"
        )
        return self


class BusinessFeasibilityResult(_FrozenCamelModel):
    """Outcome of a feasibility analysis."""

    total_investment: float
    monthly_operational_costs: float
    unit_cost: float
    selling_price: float
    break_even_units: float = Field(..., description="0 when the contribution margin is not positive")
    break_even_amount: float
    monthly_net_profit: float
    profit_margin: float = Field(..., description="Net profit over revenue, in percent")
    payback_period: float = Field(..., description="Months to recoup the investment; 0 means never")
    roi: float = Field(..., description="Annualised return on investment, in percent")
    feasible: bool
    summary: str


# ---------------------------------------------------------------------------
# Demand forecasting


class HistoricalDemand(_CamelModel):
    """A single observed demand value."""

    id: str = ""
    period: str = Field(..., min_length=1, description="Label such as 'Period 3'")
    demand: float = Field(..., ge=0)


class ForecastInput(_CamelModel):
    product_name: str = Field(..., min_length=1)
    historical_demand: List[HistoricalDemand] = Field(
        ..., min_length=3, description="Chronologically ordered observations"
    )
    method: Literal["sma", "exponential"]
    smoothing_factor: Optional[float] = Field(None, ge=0.0, le=1.0)
    period_length: Optional[int] = Field(None, ge=2, le=12)

    @model_validator(mode="after")
    def check_demand_total(self) -> "ForecastInput":
        _require_finite_total((p.demand for p in self.historical_demand), "Total demand")
        return self


class ForecastedPeriod(_FrozenCamelModel):
    period: str
    forecast: float


class ForecastAccuracy(_FrozenCamelModel):
    """Retrospective accuracy of the chosen method.

    ``None`` means there were not enough fitted points to compute the
    metric; it is distinct from a perfect score of ``0.0``.
    """

    mae: Optional[float] = None
    mape: Optional[float] = None


class ChartPoint(_FrozenCamelModel):
    period: str
    value: float


class ForecastChart(_FrozenCamelModel):
    historical: List[ChartPoint]
    forecast: List[ChartPoint]


class ForecastResponse(_FrozenCamelModel):
    """A one-period-ahead forecast for a product."""

    product_name: str
    method: Literal["sma", "exponential"]
    forecasted: List[ForecastedPeriod]
    accuracy: ForecastAccuracy
    fitted: List[Optional[float]] = Field(
        ..., description="In-sample fitted value per historical point (null where undefined)"
    )
    chart: ForecastChart
