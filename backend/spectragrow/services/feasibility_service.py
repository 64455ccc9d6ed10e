r"""backend\spectragrow\services\feasibility_service.py

Deterministic business feasibility calculator.

Given one-time investment costs, recurring monthly operational costs and
sales assumptions, the service derives unit cost (HPP), selling price,
break-even point, profit, margin, payback period and ROI, then issues a
feasibility verdict with a short narrative summary.

Every step is a plain top-level function so that each formula can be unit
tested in isolation; :class:`FeasibilityService` only composes them and
applies the configured thresholds.  Degenerate inputs (no sales, a
non-positive contribution margin, no investment) yield ``0`` sentinels and
never raise; only figures too large to represent as finite floats are
rejected with :class:`InvalidInputError`.
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from ..core.config import get_settings, load_section
from ..core.errors import InvalidInputError
from ..models.schemas import (
    BusinessFeasibilityInput,
    BusinessFeasibilityResult,
    CostItem,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_ROI_THRESHOLD: float = 15.0
DEFAULT_LANGUAGE: str = "id"


# ---------------------------------------------------------------------------
# Cost aggregation


def calculate_total_investment(costs: Iterable[CostItem]) -> float:
    """Return the sum of one-time investment amounts."""

    return float(sum(cost.amount for cost in costs))


def calculate_total_operational(costs: Iterable[CostItem]) -> float:
    """Return the sum of recurring monthly operational amounts."""

    return float(sum(cost.amount for cost in costs))


# ---------------------------------------------------------------------------
# Pricing and break-even


def calculate_unit_cost(
    production_cost_per_unit: float,
    monthly_operational_costs: float,
    monthly_sales_volume: float,
) -> float:
    """Return the fully allocated cost of one unit (HPP).

    Monthly operational costs are spread over the monthly sales volume.  With
    no sales volume there is nothing to allocate to, so only the production
    cost is returned.
    """

    if monthly_sales_volume <= 0:
        return float(production_cost_per_unit)
    allocated_operational_cost = monthly_operational_costs / monthly_sales_volume
    return production_cost_per_unit + allocated_operational_cost


def calculate_selling_price(unit_cost: float, markup: float) -> float:
    return unit_cost * (1 + markup / 100)


def calculate_bep_units(
    total_investment: float,
    selling_price: float,
    unit_cost: float,
    monthly_operational_costs: float,
) -> float:
    """Return the break-even volume in units.

    * ``0`` when each unit contributes nothing (or a loss).
    * Operational costs over the contribution when there are recurring costs.
    * Otherwise the one-time investment over the contribution.
    """

    contribution = selling_price - unit_cost
    if contribution <= 0:
        return 0.0
    if monthly_operational_costs > 0:
        return monthly_operational_costs / contribution
    return total_investment / contribution


def calculate_bep_amount(bep_units: float, selling_price: float) -> float:
    return bep_units * selling_price


# ---------------------------------------------------------------------------
# Profitability


def calculate_monthly_net_profit(
    monthly_sales_volume: float,
    selling_price: float,
    unit_cost: float,
    monthly_operational_costs: float,
) -> float:
    revenue = monthly_sales_volume * selling_price
    production_costs = monthly_sales_volume * unit_cost
    return revenue - production_costs - monthly_operational_costs


def calculate_profit_margin(net_profit: float, revenue: float) -> float:
    """Return net profit as a percentage of revenue (0 when there is no revenue)."""

    if revenue == 0:
        return 0.0
    return (net_profit / revenue) * 100


def calculate_payback_period(total_investment: float, monthly_net_profit: float) -> float:
    """Return months needed to recoup the investment.

    ``0`` signals that the business never pays back; it does not mean an
    immediate payback.
    """

    return total_investment / monthly_net_profit if monthly_net_profit > 0 else 0.0


def calculate_roi(monthly_net_profit: float, total_investment: float) -> float:
    """Return the annualised ROI in percent (0 without an investment)."""

    if total_investment <= 0:
        return 0.0
    return (monthly_net_profit * 12 / total_investment) * 100


def is_feasible(
    roi: float,
    payback_period: float,
    project_lifespan: int,
    roi_threshold: float = DEFAULT_ROI_THRESHOLD,
) -> bool:
    return roi > roi_threshold and (payback_period / 12) < project_lifespan


# ---------------------------------------------------------------------------
# Formatting


def _group_thousands(value: int, separator: str) -> str:
    return f"{value:,}".replace(",", separator)


def format_rupiah(value: float) -> str:
    """Format ``value`` as Indonesian Rupiah without decimals, e.g. ``Rp 1.500.000``."""

    # Halves round away from zero
    rounded = int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))
    sign = "-" if rounded < 0 else ""
    return f"{sign}Rp {_group_thousands(abs(rounded), '.')}"


_PAYBACK_UNITS: Mapping[str, tuple[str, str, str, str, str]] = {
    "id": ("tahun", "bulan", "minggu", "hari", "Tidak valid"),
    "en": ("years", "months", "weeks", "days", "Not valid"),
}


def format_payback_period(months: float, language: str = DEFAULT_LANGUAGE) -> str:
    """Render a payback period as years, months, weeks and days.

    A month is counted as 30 days.  Non-positive or non-finite values (no
    payback) render as an explicit "not valid" marker.
    """

    year_unit, month_unit, week_unit, day_unit, invalid = _PAYBACK_UNITS.get(
        language, _PAYBACK_UNITS[DEFAULT_LANGUAGE]
    )
    if not math.isfinite(months) or months <= 0:
        return invalid

    years = math.floor(months / 12)
    remaining_months = math.floor(months % 12)
    weeks = math.floor((months * 30 / 7) % 4)
    days = math.floor((months * 30) % 7)
    return (
        f"{years} {year_unit} {remaining_months} {month_unit} "
        f"{weeks} {week_unit} {days} {day_unit}"
    )


_SUMMARY_TEMPLATES: Mapping[str, Mapping[str, str]] = {
    "id": {
        "intro": "Berdasarkan analisis, usaha {name} ",
        "feasible": (
            '<span class="text-green-600 font-medium">layak</span> dengan ROI sebesar '
            "{roi}% dan periode BEP {payback}. Profit bulanan sebesar {profit} "
            "menunjukkan margin profit yang sehat sebesar {margin}%."
        ),
        "infeasible": (
            '<span class="text-red-600 font-medium">tidak layak</span> dengan parameter '
            "saat ini. Proyek memiliki ROI rendah sebesar {roi}% dan/atau periode BEP "
            "yang terlalu lama yaitu {payback}."
        ),
        "break_even": (
            "\n\nTitik impas (BEP) sebesar {units} unit ({amount}) dengan harga jual "
            "{price} per unit."
        ),
    },
    "en": {
        "intro": "Based on the analysis, the {name} business is ",
        "feasible": (
            '<span class="text-green-600 font-medium">feasible</span> with an ROI of '
            "{roi}% and a payback period of {payback}. A monthly profit of {profit} "
            "reflects a healthy profit margin of {margin}%."
        ),
        "infeasible": (
            '<span class="text-red-600 font-medium">not feasible</span> under the '
            "current parameters. The project has a low ROI of {roi}% and/or a payback "
            "period that is too long at {payback}."
        ),
        "break_even": (
            "\n\nThe break-even point (BEP) is {units} units ({amount}) at a selling "
            "price of {price} per unit."
        ),
    },
}


def generate_feasibility_summary(
    business_input: BusinessFeasibilityInput,
    roi: float,
    payback_period: float,
    monthly_net_profit: float,
    profit_margin: float,
    break_even_units: float,
    break_even_amount: float,
    selling_price: float,
    feasible: bool,
    language: str = DEFAULT_LANGUAGE,
) -> str:
    """Return the verdict narrative, with the verdict wrapped in a coloured span."""

    templates = _SUMMARY_TEMPLATES.get(language, _SUMMARY_TEMPLATES[DEFAULT_LANGUAGE])
    separator = "." if language == "id" else ","
    values = {
        "name": business_input.business_name,
        "roi": f"{roi:.1f}",
        "payback": format_payback_period(payback_period, language),
        "profit": format_rupiah(monthly_net_profit),
        "margin": f"{profit_margin:.1f}",
        "units": _group_thousands(math.ceil(break_even_units), separator),
        "amount": format_rupiah(break_even_amount),
        "price": format_rupiah(selling_price),
    }

    summary = templates["intro"].format(**values)
    summary += templates["feasible" if feasible else "infeasible"].format(**values)
    summary += templates["break_even"].format(**values)
    return summary


# ---------------------------------------------------------------------------
# Service


class FeasibilityService:
    """Compose the feasibility formulas into a complete analysis."""

    def __init__(
        self,
        config_root: str | None = None,
        roi_threshold: float | None = None,
        language: str | None = None,
    ) -> None:
        self.config_root = config_root or get_settings().config_dir
        settings = load_section(self.config_root, "feasibility")

        threshold = roi_threshold if roi_threshold is not None else settings.get(
            "roi_threshold", DEFAULT_ROI_THRESHOLD
        )
        self.roi_threshold = float(threshold)

        resolved_language = language or str(settings.get("summary_language", DEFAULT_LANGUAGE))
        if resolved_language not in _SUMMARY_TEMPLATES:
            LOGGER.warning(
                "Unsupported summary language %r; falling back to %r",
                resolved_language,
                DEFAULT_LANGUAGE,
            )
            resolved_language = DEFAULT_LANGUAGE
        self.language = resolved_language

    def analyze(self, business_input: BusinessFeasibilityInput) -> BusinessFeasibilityResult:
        """Return the feasibility metrics and verdict for ``business_input``."""

        total_investment = calculate_total_investment(business_input.investment_costs)
        monthly_operational_costs = calculate_total_operational(business_input.operational_costs)
        volume = business_input.monthly_sales_volume

        unit_cost = calculate_unit_cost(
            business_input.production_cost_per_unit,
            monthly_operational_costs,
            volume,
        )
        selling_price = calculate_selling_price(unit_cost, business_input.markup)

        break_even_units = calculate_bep_units(
            total_investment,
            selling_price,
            unit_cost,
            monthly_operational_costs,
        )
        break_even_amount = calculate_bep_amount(break_even_units, selling_price)

        monthly_net_profit = calculate_monthly_net_profit(
            volume,
            selling_price,
            unit_cost,
            monthly_operational_costs,
        )
        revenue = volume * selling_price
        profit_margin = calculate_profit_margin(monthly_net_profit, revenue)

        payback_period = calculate_payback_period(total_investment, monthly_net_profit)
        roi = calculate_roi(monthly_net_profit, total_investment)
        metrics = {
            "unit cost": unit_cost,
            "selling price": selling_price,
            "break-even units": break_even_units,
            "break-even amount": break_even_amount,
            "monthly net profit": monthly_net_profit,
            "profit margin": profit_margin,
            "payback period": payback_period,
            "ROI": roi,
        }
        overflowed = [name for name, value in metrics.items() if not math.isfinite(value)]
        if overflowed:
            raise InvalidInputError(
                f"Inputs are too large; {', '.join(overflowed)} cannot be represented"
            )

        feasible = is_feasible(
            roi, payback_period, business_input.project_lifespan, self.roi_threshold
        )

        LOGGER.debug(
            "Feasibility computed for %s roi=%.2f payback=%.2f feasible=%s",
            business_input.business_name,
            roi,
            payback_period,
            feasible,
        )

        summary = generate_feasibility_summary(
            business_input,
            roi=roi,
            payback_period=payback_period,
            monthly_net_profit=monthly_net_profit,
            profit_margin=profit_margin,
            break_even_units=break_even_units,
            break_even_amount=break_even_amount,
            selling_price=selling_price,
            feasible=feasible,
            language=self.language,
        )

        return BusinessFeasibilityResult(
            total_investment=total_investment,
            monthly_operational_costs=monthly_operational_costs,
            unit_cost=unit_cost,
            selling_price=selling_price,
            break_even_units=break_even_units,
            break_even_amount=break_even_amount,
            monthly_net_profit=monthly_net_profit,
            profit_margin=profit_margin,
            payback_period=payback_period,
            roi=roi,
            feasible=feasible,
            summary=summary,
        )
