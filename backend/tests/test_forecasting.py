from __future__ import annotations

from pathlib import Path
import math
import sys

import numpy as np
import pytest
import yaml
from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.spectragrow.core.errors import InvalidInputError
from backend.spectragrow.models.schemas import ForecastInput
from backend.spectragrow.services.forecasting_service import (
    ForecastingService,
    accuracy_metrics,
    calculate_exponential_smoothing,
    calculate_mae,
    calculate_mape,
    calculate_sma,
    fitted_sma_series,
    generate_exponential_forecast,
    generate_period_labels,
    next_period_label,
)


def _build_input(demand: list[float], method: str = "sma", **params: object) -> ForecastInput:
    return ForecastInput(
        product_name="Tomat",
        historical_demand=[
            {"id": str(i), "period": f"Period {i + 1}", "demand": value}
            for i, value in enumerate(demand)
        ],
        method=method,
        **params,
    )


@pytest.fixture()
def service(tmp_path: Path) -> ForecastingService:
    return ForecastingService(config_root=str(tmp_path))


def test_sma_forecast_over_full_window(service: ForecastingService) -> None:
    result = service.forecast(_build_input([10, 20, 30], "sma", period_length=3))

    assert len(result.forecasted) == 1
    assert result.forecasted[0].period == "Period 4"
    assert result.forecasted[0].forecast == pytest.approx(20)
    assert result.fitted[:2] == [None, None]
    assert result.fitted[2] == pytest.approx(20)
    assert result.accuracy.mae == pytest.approx(10)
    assert result.accuracy.mape == pytest.approx(100 / 3)


def test_sma_accuracy_uses_only_full_windows(service: ForecastingService) -> None:
    result = service.forecast(_build_input([10, 20, 30, 40], "sma", period_length=2))

    assert result.forecasted[0].forecast == pytest.approx(35)
    assert result.fitted[0] is None
    assert result.fitted[1:] == pytest.approx([15, 25, 35])
    assert result.accuracy.mae == pytest.approx(5)
    assert result.accuracy.mape == pytest.approx((5 / 20 + 5 / 30 + 5 / 40) / 3 * 100)


def test_exponential_forecast_on_constant_series(service: ForecastingService) -> None:
    result = service.forecast(_build_input([10, 10, 10], "exponential", smoothing_factor=0.5))

    assert result.fitted == pytest.approx([10, 10, 10])
    assert result.forecasted[0].forecast == pytest.approx(10)
    assert result.accuracy.mae == 0
    assert result.accuracy.mape == 0


def test_exponential_uses_default_smoothing_factor(service: ForecastingService) -> None:
    result = service.forecast(_build_input([10, 20, 30], "exponential"))

    assert result.fitted == pytest.approx([10, 10, 13])
    assert result.forecasted[0].forecast == pytest.approx(18.1)
    assert result.accuracy.mae == pytest.approx(9)
    assert result.accuracy.mape == pytest.approx((0 + 10 / 20 + 17 / 30) / 3 * 100)


def test_defaults_are_read_from_yaml(tmp_path: Path) -> None:
    settings = {"forecasting": {"default_smoothing_factor": 0.5, "default_period_length": 2}}
    (tmp_path / "settings.yaml").write_text(yaml.safe_dump(settings))
    service = ForecastingService(config_root=str(tmp_path))

    sma = service.forecast(_build_input([10, 20, 30], "sma"))
    exponential = service.forecast(_build_input([10, 20, 30], "exponential"))

    assert sma.forecasted[0].forecast == pytest.approx(25)
    # S = [10, 10, 15]; F = 0.5 * 30 + 0.5 * 15
    assert exponential.forecasted[0].forecast == pytest.approx(22.5)


def test_invalid_default_smoothing_factor_in_yaml_is_rejected(tmp_path: Path) -> None:
    settings = {"forecasting": {"default_smoothing_factor": 1.5}}
    (tmp_path / "settings.yaml").write_text(yaml.safe_dump(settings))

    with pytest.raises(InvalidInputError):
        ForecastingService(config_root=str(tmp_path))


def test_period_length_beyond_history_raises(service: ForecastingService) -> None:
    with pytest.raises(InvalidInputError):
        service.forecast(_build_input([10, 20, 30], "sma", period_length=4))


def test_zero_actuals_leave_mape_undefined(service: ForecastingService) -> None:
    result = service.forecast(_build_input([0, 0, 0], "sma", period_length=3))

    assert result.forecasted[0].forecast == 0
    assert result.accuracy.mae == 0
    assert result.accuracy.mape is None


def test_chart_mirrors_history_and_forecast(service: ForecastingService) -> None:
    demand = [12, 15, 11, 18, 20]
    result = service.forecast(_build_input(demand, "sma", period_length=3))

    assert [point.value for point in result.chart.historical] == demand
    assert [point.period for point in result.chart.historical] == [
        f"Period {i}" for i in range(1, 6)
    ]
    assert len(result.chart.forecast) == len(result.forecasted) == 1
    assert result.chart.forecast[0].period == result.forecasted[0].period
    assert result.chart.forecast[0].value == result.forecasted[0].forecast
    assert len(result.fitted) == len(demand)

    frame = result.frame
    assert list(frame.columns) == ["period", "value", "kind"]
    assert len(frame) == len(demand) + 1
    assert frame["kind"].tolist().count("forecast") == 1


def test_forecast_is_deterministic(service: ForecastingService) -> None:
    forecast_input = _build_input([5, 9, 7, 11], "exponential", smoothing_factor=0.4)

    assert service.forecast(forecast_input) == service.forecast(forecast_input)


def test_schema_requires_three_points() -> None:
    with pytest.raises(ValidationError):
        _build_input([10, 20], "sma")


def test_schema_rejects_out_of_range_parameters() -> None:
    with pytest.raises(ValidationError):
        _build_input([10, 20, 30], "exponential", smoothing_factor=1.2)
    with pytest.raises(ValidationError):
        _build_input([10, 20, 30], "sma", period_length=1)
    with pytest.raises(ValidationError):
        _build_input([10, 20, 30], "sma", period_length=13)
    with pytest.raises(ValidationError):
        _build_input([10, -1, 30], "sma")


def test_calculate_sma_validates_window() -> None:
    assert calculate_sma([1, 2, 3, 4], 2) == pytest.approx(3.5)
    with pytest.raises(InvalidInputError):
        calculate_sma([1, 2, 3], 4)
    with pytest.raises(InvalidInputError):
        calculate_sma([1, 2, 3], 0)


def test_fitted_sma_with_window_equal_to_history() -> None:
    fitted = fitted_sma_series([4, 8, 12], 3)

    assert np.isnan(fitted[:2]).all()
    assert fitted[2] == pytest.approx(8)
    accuracy = accuracy_metrics([4, 8, 12], fitted)
    assert accuracy.mae == pytest.approx(4)
    assert accuracy.mape == pytest.approx(4 / 12 * 100)


def test_exponential_smoothing_rejects_invalid_alpha() -> None:
    with pytest.raises(InvalidInputError):
        calculate_exponential_smoothing([1, 2, 3], -0.1)
    with pytest.raises(InvalidInputError):
        generate_exponential_forecast([1, 2, 3], 1.01)


def test_exponential_smoothing_extreme_alphas() -> None:
    assert calculate_exponential_smoothing([3, 6, 9], 0.0).tolist() == [3, 3, 3]
    assert calculate_exponential_smoothing([3, 6, 9], 1.0).tolist() == [3, 3, 6]
    assert generate_exponential_forecast([3, 6, 9], 1.0) == [9]


def test_mape_skips_zero_actuals() -> None:
    assert calculate_mape([0, 10], [5, 8]) == pytest.approx(20)
    assert calculate_mae([0, 10], [5, 8]) == pytest.approx(3.5)
    assert calculate_mape([0, 0], [1, 1]) is None


def test_metrics_without_points_are_undefined() -> None:
    assert calculate_mae([], []) is None
    assert calculate_mape([], []) is None
    accuracy = accuracy_metrics([1, 2], [math.nan, math.nan])
    assert accuracy.mae is None
    assert accuracy.mape is None


def test_metrics_require_matching_lengths() -> None:
    with pytest.raises(InvalidInputError):
        calculate_mae([1, 2, 3], [1, 2])
    with pytest.raises(InvalidInputError):
        calculate_mape([1, 2], [1, 2, 3])


def test_period_labels() -> None:
    assert generate_period_labels(3) == ["Period 1", "Period 2", "Period 3"]
    assert generate_period_labels(2, "Week", start_at=7) == ["Week 7", "Week 8"]
    assert next_period_label("Period 3", fallback_index=3) == "Period 4"
    assert next_period_label("Minggu 12", fallback_index=3) == "Period 13"
    assert next_period_label("Januari", fallback_index=5) == "Period 6"


def test_label_without_number_uses_position(service: ForecastingService) -> None:
    forecast_input = ForecastInput(
        product_name="Bawang",
        historical_demand=[
            {"period": "Jan", "demand": 10},
            {"period": "Feb", "demand": 12},
            {"period": "Mar", "demand": 14},
        ],
        method="sma",
        period_length=2,
    )

    result = service.forecast(forecast_input)

    assert result.forecasted[0].period == "Period 4"
    assert result.forecasted[0].forecast == pytest.approx(13)


@pytest.mark.parametrize("period_length", [1, 13])
def test_invalid_default_period_length_in_yaml_is_rejected(tmp_path: Path, period_length: int) -> None:
    settings = {"forecasting": {"default_period_length": period_length}}
    (tmp_path / "settings.yaml").write_text(yaml.safe_dump(settings))

    with pytest.raises(InvalidInputError):
        ForecastingService(config_root=str(tmp_path))


def test_schema_rejects_non_finite_demand() -> None:
    with pytest.raises(ValidationError):
        _build_input([1, 2, math.inf], "sma", period_length=2)
    with pytest.raises(ValidationError):
        _build_input([1, math.nan, 3], "exponential")


def test_schema_rejects_demand_total_that_overflows() -> None:
    with pytest.raises(ValidationError, match="Total demand"):
        _build_input([1e308, 1e308, 1e308], "sma")


def test_accuracy_overflow_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        accuracy_metrics([1e-300, 1e-300], [1e10, 1e10])
