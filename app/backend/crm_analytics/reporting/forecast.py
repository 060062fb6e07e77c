"""Straight-line revenue forecast with decaying confidence."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from crm_analytics.reporting.aggregation import safe_div
from crm_analytics.reporting.periods import add_months
from crm_analytics.reporting.records import ZERO

DEFAULT_FORECAST_PERIODS = 6
CONFIDENCE_FLOOR = Decimal("0.3")
CONFIDENCE_STEP = Decimal("0.1")
Q2 = Decimal("0.01")


def growth_rate(history: Sequence[Decimal]) -> Decimal:
    """Unrounded mean change per period between the first and last historical values."""

    if len(history) < 2:
        return ZERO
    return Decimal(history[-1] - history[0]) / Decimal(len(history) - 1)


def average_growth(history: Sequence[Decimal]) -> Decimal:
    return growth_rate(history).quantize(Q2)


def confidence_for(step: int) -> Decimal:
    return max(CONFIDENCE_FLOOR, Decimal(1) - CONFIDENCE_STEP * step)


def linear_forecast(
    history: Sequence[Decimal],
    last_value: Decimal,
    *,
    last_month: date,
    periods: int = DEFAULT_FORECAST_PERIODS,
) -> list[dict[str, object]]:
    # only the projected amount is rounded, never the growth it is built from
    growth = growth_rate(history)
    forecast: list[dict[str, object]] = []
    for step in range(1, periods + 1):
        month = add_months(date(last_month.year, last_month.month, 1), step)
        projected = max(ZERO, (last_value + growth * step).quantize(Q2))
        forecast.append(
            {
                "month": f"{month.year:04d}-{month.month:02d}",
                "projected": projected,
                "confidence": confidence_for(step),
            }
        )
    return forecast


def forecast_summary(forecast: Sequence[dict[str, object]], growth: Decimal) -> dict[str, object]:
    projected_total = sum((row["projected"] for row in forecast), ZERO)
    confidence_total = sum((row["confidence"] for row in forecast), ZERO)
    return {
        "average_monthly_growth": growth.quantize(Q2),
        "projected_total": projected_total,
        "confidence_level": safe_div(confidence_total, len(forecast)),
    }
