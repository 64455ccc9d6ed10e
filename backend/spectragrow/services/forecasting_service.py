r"""backend\spectragrow\services\forecasting_service.py

One-period-ahead demand forecasting for user-entered demand histories.

Two classical methods are supported:

* ``sma`` - a simple moving average over the last ``period_length``
  observations.
* ``exponential`` - single exponential smoothing with factor ``alpha``.

Besides the forecast itself the service replays the chosen method over the
history to obtain an in-sample fitted series, from which the mean absolute
error (MAE) and mean absolute percentage error (MAPE) are derived.  Fitted
positions that cannot be computed (the first ``period_length - 1`` points
of an SMA) are ``NaN`` internally and ``None`` in the returned result.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.config import get_settings, load_section
from ..core.errors import InvalidInputError
from ..models.schemas import (
    ChartPoint,
    ForecastAccuracy,
    ForecastChart,
    ForecastedPeriod,
    ForecastInput,
    ForecastResponse,
)

LOGGER = logging.getLogger(__name__)

MIN_HISTORY_POINTS = 3
DEFAULT_SMOOTHING_FACTOR = 0.3
DEFAULT_PERIOD_LENGTH = 3
MIN_PERIOD_LENGTH = 2
MAX_PERIOD_LENGTH = 12

_TRAILING_NUMBER = re.compile(r"(\d+)\s*$")


# ---------------------------------------------------------------------------
# Helper utilities (kept top-level for straightforward unit testing)


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=float)


def calculate_sma(history: Sequence[float], periods: int) -> float:
    """Return the mean of the last ``periods`` observations."""

    values = _as_array(history)
    if periods < 1:
        raise InvalidInputError("Period length must be a positive integer")
    if periods > values.size:
        raise InvalidInputError("Period length exceeds available historical data")
    return float(values[-periods:].mean())


def generate_sma_forecast(history: Sequence[float], period_length: int) -> List[float]:
    return [calculate_sma(history, period_length)]


def fitted_sma_series(history: Sequence[float], period_length: int) -> np.ndarray:
    """Return the trailing-window mean at each position of ``history``.

    Positions before the first full window are ``NaN``.
    """

    values = _as_array(history)
    if period_length < 1:
        raise InvalidInputError("Period length must be a positive integer")
    if period_length > values.size:
        raise InvalidInputError("Period length exceeds available historical data")
    return pd.Series(values).rolling(window=period_length).mean().to_numpy(dtype=float)


def _check_alpha(alpha: float) -> None:
    if not 0.0 <= alpha <= 1.0:
        raise InvalidInputError("Alpha must be between 0 and 1")


def _check_period_length(period_length: int) -> None:
    if not MIN_PERIOD_LENGTH <= period_length <= MAX_PERIOD_LENGTH:
        raise InvalidInputError(
            f"Period length must be between {MIN_PERIOD_LENGTH} and {MAX_PERIOD_LENGTH}"
        )


def calculate_exponential_smoothing(history: Sequence[float], alpha: float) -> np.ndarray:
    """Return the smoothed series ``S`` for ``history``.

    ``S[0]`` is the first observation and ``S[i] = alpha * D[i-1] +
    (1 - alpha) * S[i-1]``, so every position has a value.
    """

    _check_alpha(alpha)
    values = _as_array(history)
    if values.size == 0:
        raise InvalidInputError("history must contain at least one observation")

    smoothed = np.empty_like(values)
    smoothed[0] = values[0]
    for i in range(1, values.size):
        smoothed[i] = alpha * values[i - 1] + (1 - alpha) * smoothed[i - 1]
    return smoothed


def generate_exponential_forecast(history: Sequence[float], alpha: float) -> List[float]:
    """Return the next-period forecast from the last actual and last smoothed value."""

    smoothed = calculate_exponential_smoothing(history, alpha)
    last_actual = float(_as_array(history)[-1])
    return [alpha * last_actual + (1 - alpha) * float(smoothed[-1])]


def _paired(actual: Sequence[float], fitted: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
    actual_arr = _as_array(actual)
    fitted_arr = _as_array(fitted)
    if actual_arr.size != fitted_arr.size:
        raise InvalidInputError("Actual and forecast arrays must have the same length")
    return actual_arr, fitted_arr


def calculate_mae(actual: Sequence[float], fitted: Sequence[float]) -> Optional[float]:
    """Mean absolute error, or ``None`` when there are no points."""

    actual_arr, fitted_arr = _paired(actual, fitted)
    if actual_arr.size == 0:
        return None
    return float(np.mean(np.abs(actual_arr - fitted_arr)))


def calculate_mape(actual: Sequence[float], fitted: Sequence[float]) -> Optional[float]:
    """Mean absolute percentage error in percent.

    Points whose actual value is zero are skipped entirely.  Returns ``None``
    when no point remains.
    """

    actual_arr, fitted_arr = _paired(actual, fitted)
    mask = actual_arr != 0
    if not mask.any():
        return None
    errors = np.abs((actual_arr[mask] - fitted_arr[mask]) / actual_arr[mask])
    return float(np.mean(errors) * 100)


def accuracy_metrics(actual: Sequence[float], fitted: Sequence[float]) -> ForecastAccuracy:
    """Score ``fitted`` against ``actual`` ignoring undefined fitted positions."""

    actual_arr, fitted_arr = _paired(actual, fitted)
    valid = ~np.isnan(fitted_arr)
    mae = calculate_mae(actual_arr[valid], fitted_arr[valid])
    mape = calculate_mape(actual_arr[valid], fitted_arr[valid])
    if any(value is not None and not np.isfinite(value) for value in (mae, mape)):
        raise InvalidInputError("Forecast errors are too large to be represented")
    return ForecastAccuracy(mae=mae, mape=mape)


def generate_period_labels(count: int, prefix: str = "Period", start_at: int = 1) -> List[str]:
    return [f"{prefix} {i + start_at}" for i in range(count)]


def next_period_label(last_label: str, fallback_index: int) -> str:
    """Return the label following ``last_label``.

    The trailing integer of the label is incremented (``"Period 3"`` gives
    ``"Period 4"``).  Labels without a trailing number continue from
    ``fallback_index`` instead.
    """

    match = _TRAILING_NUMBER.search(last_label)
    last_number = int(match.group(1)) if match else fallback_index
    return generate_period_labels(1, "Period", last_number + 1)[0]


# ---------------------------------------------------------------------------
# Result container


class ForecastResult(ForecastResponse):
    """Forecast response enriched with a pandas ``DataFrame`` view of the chart."""

    @property
    def frame(self) -> pd.DataFrame:
        """Return historical and forecast points with a ``kind`` column."""
        rows = [
            {"period": point.period, "value": float(point.value), "kind": "historical"}
            for point in self.chart.historical
        ]
        rows.extend(
            {"period": point.period, "value": float(point.value), "kind": "forecast"}
            for point in self.chart.forecast
        )
        return pd.DataFrame(rows, columns=["period", "value", "kind"])


# ---------------------------------------------------------------------------
# Core service implementation


class ForecastingService:
    """Produce next-period forecasts and their retrospective accuracy."""

    def __init__(self, config_root: str | None = None) -> None:
        self.config_root = config_root or get_settings().config_dir
        self.default_smoothing_factor: float = DEFAULT_SMOOTHING_FACTOR
        self.default_period_length: int = DEFAULT_PERIOD_LENGTH
        self._load_configuration()

    # ------------------------------------------------------------------
    def _load_configuration(self) -> None:
        settings = load_section(self.config_root, "forecasting")
        alpha = float(settings.get("default_smoothing_factor", self.default_smoothing_factor))
        _check_alpha(alpha)
        self.default_smoothing_factor = alpha
        period_length = int(settings.get("default_period_length", self.default_period_length))
        _check_period_length(period_length)
        self.default_period_length = period_length

    # ------------------------------------------------------------------
    def _fit(self, demand: Sequence[float], forecast_input: ForecastInput) -> tuple[List[float], np.ndarray]:
        if forecast_input.method == "sma":
            period_length = forecast_input.period_length or self.default_period_length
            return (
                generate_sma_forecast(demand, period_length),
                fitted_sma_series(demand, period_length),
            )

        alpha = forecast_input.smoothing_factor
        if alpha is None:
            alpha = self.default_smoothing_factor
        return (
            generate_exponential_forecast(demand, alpha),
            calculate_exponential_smoothing(demand, alpha),
        )

    # ------------------------------------------------------------------
    def forecast(self, forecast_input: ForecastInput) -> ForecastResult:
        """Return the one-period-ahead forecast for ``forecast_input``."""

        history = forecast_input.historical_demand
        if len(history) < MIN_HISTORY_POINTS:
            raise InvalidInputError(
                f"At least {MIN_HISTORY_POINTS} historical demand points are required"
            )

        demand = [float(point.demand) for point in history]
        forecast_values, fitted = self._fit(demand, forecast_input)
        if not np.isfinite(forecast_values[0]):
            raise InvalidInputError("Demand values are too large to forecast")
        accuracy = accuracy_metrics(demand, fitted)

        label = next_period_label(history[-1].period, fallback_index=len(history))
        forecasted = [ForecastedPeriod(period=label, forecast=forecast_values[0])]

        LOGGER.info(
            "Forecast for %s method=%s next=%s value=%.4f mae=%s mape=%s",
            forecast_input.product_name,
            forecast_input.method,
            label,
            forecast_values[0],
            accuracy.mae,
            accuracy.mape,
        )

        return ForecastResult(
            product_name=forecast_input.product_name,
            method=forecast_input.method,
            forecasted=forecasted,
            accuracy=accuracy,
            fitted=[None if np.isnan(value) else float(value) for value in fitted],
            chart=ForecastChart(
                historical=[ChartPoint(period=p.period, value=p.demand) for p in history],
                forecast=[ChartPoint(period=f.period, value=f.forecast) for f in forecasted],
            ),
        )
