from __future__ import annotations

from datetime import date
from decimal import Decimal

from crm_analytics.reporting.forecast import (
    average_growth,
    confidence_for,
    forecast_summary,
    growth_rate,
    linear_forecast,
)


def test_average_growth_needs_two_points() -> None:
    assert average_growth([]) == Decimal("0")
    assert average_growth([Decimal("500")]) == Decimal("0")
    assert average_growth([Decimal("100"), Decimal("150"), Decimal("400")]) == Decimal("150.00")


def test_single_point_history_projects_flat_with_decaying_confidence() -> None:
    forecast = linear_forecast([Decimal("250")], Decimal("250"), last_month=date(2024, 3, 15))

    assert [row["month"] for row in forecast] == ["2024-04", "2024-05", "2024-06", "2024-07", "2024-08", "2024-09"]
    assert all(row["projected"] == Decimal("250") for row in forecast)
    assert [row["confidence"] for row in forecast] == [
        Decimal("0.9"),
        Decimal("0.8"),
        Decimal("0.7"),
        Decimal("0.6"),
        Decimal("0.5"),
        Decimal("0.4"),
    ]


def test_confidence_is_strictly_decreasing_until_floor() -> None:
    values = [confidence_for(step) for step in range(1, 7)]

    assert all(left > right for left, right in zip(values, values[1:]))
    assert confidence_for(7) == Decimal("0.3")
    assert confidence_for(12) == Decimal("0.3")


def test_projection_never_goes_negative() -> None:
    forecast = linear_forecast(
        [Decimal("900"), Decimal("750"), Decimal("600")],
        Decimal("300"),
        last_month=date(2024, 11, 1),
        periods=3,
    )

    assert [row["month"] for row in forecast] == ["2024-12", "2025-01", "2025-02"]
    assert [row["projected"] for row in forecast] == [Decimal("150"), Decimal("0"), Decimal("0")]


def test_forecast_summary() -> None:
    history = [Decimal("100"), Decimal("200")]
    forecast = linear_forecast(history, Decimal("200"), last_month=date(2024, 1, 1), periods=2)

    summary = forecast_summary(forecast, average_growth(history))

    assert summary == {
        "average_monthly_growth": Decimal("100.00"),
        "projected_total": Decimal("700.00"),
        "confidence_level": Decimal("0.85"),
    }


def test_projection_keeps_fractional_growth_until_rounding() -> None:
    history = [Decimal("0"), Decimal("0"), Decimal("0"), Decimal("1")]

    forecast = linear_forecast(history, Decimal("1"), last_month=date(2024, 6, 1))

    assert average_growth(history) == Decimal("0.33")
    assert [row["projected"] for row in forecast] == [
        Decimal("1.33"),
        Decimal("1.67"),
        Decimal("2.00"),
        Decimal("2.33"),
        Decimal("2.67"),
        Decimal("3.00"),
    ]
    assert forecast_summary(forecast, growth_rate(history))["average_monthly_growth"] == Decimal("0.33")
