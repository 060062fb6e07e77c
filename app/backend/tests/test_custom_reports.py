from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from crm_analytics.reporting.custom_reports import (
    apply_row_options,
    budget_analysis,
    client_analysis,
    expense_breakdown,
    financial_summary,
    history_range,
    revenue_forecast,
)
from crm_analytics.reporting.errors import InvalidSortField
from crm_analytics.reporting.periods import TimeRange
from crm_analytics.reporting.records import (
    BudgetRecord,
    ClientRecord,
    ExpenseRecord,
    ProjectRecord,
    ProjectStatus,
    RevenueRecord,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TimeEntryRecord,
)

UTC = timezone.utc
PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
CLIENT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")


def _at(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=UTC)


def _revenue(amount: str, when: datetime, **fields: object) -> RevenueRecord:
    values = {"tax_amount": Decimal("0"), "category": "Services", "status": "RECEIVED"}
    values.update(fields)
    return RevenueRecord(id=uuid.uuid4(), amount=Decimal(amount), date=when, **values)


def _expense(amount: str, when: datetime, **fields: object) -> ExpenseRecord:
    values = {"tax_amount": Decimal("0"), "category": "Software", "status": "APPROVED"}
    values.update(fields)
    return ExpenseRecord(id=uuid.uuid4(), amount=Decimal(amount), date=when, **values)


def _budget(total: str, **fields: object) -> BudgetRecord:
    return BudgetRecord(
        id=uuid.uuid4(),
        name=f"Budget {total}",
        total_amount=Decimal(total),
        start_date=_at(2024, 1, 1),
        end_date=_at(2024, 1, 31),
        **fields,
    )


def test_financial_summary_totals_and_trends() -> None:
    time_range = TimeRange(_at(2024, 1, 1), _at(2024, 2, 29))
    revenues = [_revenue("1000", _at(2024, 1, 10), client_name="Acme")]
    expenses = [_expense("400", _at(2024, 2, 3))]

    report = financial_summary(revenues, expenses, [_budget("800")], time_range=time_range)

    assert report["summary"] == {
        "total_revenue": Decimal("1000"),
        "total_expenses": Decimal("400"),
        "profit": Decimal("600"),
        "profit_margin": Decimal("60.00"),
        "total_budget": Decimal("800"),
        "budget_utilization": Decimal("50.00"),
    }
    assert report["revenue_by_client"] == {"Acme": Decimal("1000")}
    assert report["expenses_by_category"] == {"Software": Decimal("400")}
    assert [row["period_key"] for row in report["monthly_trends"]] == ["2024-01", "2024-02"]
    assert report["monthly_trends"][1]["profit"] == Decimal("-400")


def test_client_analysis_rolls_up_projects_and_hours() -> None:
    acme = ClientRecord(id=CLIENT_ID, name="Acme", email="ops@acme.test")
    quiet = ClientRecord(id=uuid.uuid4(), name="Quiet")
    task = TaskRecord(
        id=uuid.uuid4(),
        title="Build",
        status=TaskStatus.IN_PROGRESS,
        priority=TaskPriority.MEDIUM,
        created_at=_at(2024, 1, 2),
        time_entries=(
            TimeEntryRecord(
                id=uuid.uuid4(), hours=Decimal("5"), date=_at(2024, 1, 3), user_id=uuid.uuid4(), task_id=uuid.uuid4()
            ),
        ),
    )
    project = ProjectRecord(
        id=PROJECT_ID,
        name="Portal",
        status=ProjectStatus.ACTIVE,
        created_at=_at(2024, 1, 1),
        client_id=CLIENT_ID,
        tasks=(task,),
    )

    report = client_analysis(
        [acme, quiet],
        [project],
        [_revenue("1000", _at(2024, 1, 5), client_id=CLIENT_ID)],
        [_expense("250", _at(2024, 1, 6), client_id=CLIENT_ID)],
        [_budget("2000", client_id=CLIENT_ID)],
    )

    acme_row, quiet_row = report["clients"]
    assert acme_row["profit"] == Decimal("750")
    assert acme_row["total_budget"] == Decimal("2000")
    assert acme_row["active_projects"] == 1
    assert acme_row["completed_projects"] == 0
    assert acme_row["total_hours"] == Decimal("5")
    assert acme_row["revenue_per_hour"] == Decimal("200.00")
    assert acme_row["profit_margin"] == Decimal("75.00")
    assert quiet_row["revenue_per_hour"] == Decimal("0")
    assert quiet_row["profit_margin"] == Decimal("0")
    assert report["summary"]["total_projects"] == 1
    assert report["summary"]["average_profit_margin"] == Decimal("37.50")


def test_budget_analysis_burn_rate_and_status() -> None:
    project_budget = _budget("1000", project_id=PROJECT_ID, project_name="Portal")
    client_budget = _budget("500", client_id=CLIENT_ID, client_name="Acme", categories=("Travel",))
    expenses = [
        _expense("400", _at(2024, 1, 5), project_id=PROJECT_ID),
        _expense("200", _at(2024, 1, 10), project_id=PROJECT_ID),
        _expense("450", _at(2024, 1, 3), client_id=CLIENT_ID),
    ]

    report = budget_analysis([project_budget, client_budget], expenses, as_of=_at(2024, 1, 11))

    first, second = report["budgets"]
    assert first["spent"] == Decimal("600")
    assert first["remaining"] == Decimal("400")
    assert first["utilization"] == Decimal("60.00")
    assert first["status"] == "ON_TRACK"
    assert first["days_remaining"] == 20
    assert first["daily_burn_rate"] == Decimal("60.00")
    assert first["projected_spend"] == Decimal("1200.00")
    assert first["projected_overrun"] == Decimal("800")
    assert first["project"] == "Portal"
    assert second["status"] == "AT_RISK"
    assert second["daily_burn_rate"] == Decimal("45.00")
    assert second["projected_overrun"] == Decimal("850")
    assert second["categories"] == ["Travel"]
    assert report["summary"] == {
        "total_budgets": 2,
        "total_allocated": Decimal("1500"),
        "total_spent": Decimal("1050"),
        "average_utilization": Decimal("75.00"),
        "over_budget_count": 0,
        "at_risk_count": 1,
    }


def test_budget_analysis_closed_budget_without_spend() -> None:
    report = budget_analysis([_budget("300")], [], as_of=_at(2024, 3, 1))

    row = report["budgets"][0]
    assert row["days_remaining"] == 0
    assert row["daily_burn_rate"] == Decimal("0")
    assert row["projected_spend"] == Decimal("0")
    assert row["projected_overrun"] == Decimal("0")
    assert row["status"] == "ON_TRACK"


def test_budget_analysis_status_at_exact_boundaries() -> None:
    over = _budget("1000.00", project_id=PROJECT_ID)
    at_limit = _budget("1000.00", client_id=CLIENT_ID)
    expenses = [
        _expense("1000.01", _at(2024, 1, 4), project_id=PROJECT_ID),
        _expense("800.00", _at(2024, 1, 4), client_id=CLIENT_ID),
    ]

    over_row, at_limit_row = budget_analysis([over, at_limit], expenses, as_of=_at(2024, 1, 11))["budgets"]

    assert over_row["utilization"] == Decimal("100.00")
    assert over_row["status"] == "OVER_BUDGET"
    assert at_limit_row["utilization"] == Decimal("80.00")
    assert at_limit_row["status"] == "ON_TRACK"


def test_budget_analysis_projects_from_unrounded_burn_rate() -> None:
    budget = BudgetRecord(
        id=uuid.uuid4(),
        name="Sprint",
        total_amount=Decimal("500"),
        start_date=_at(2024, 1, 1),
        end_date=_at(2024, 1, 7),
    )

    row = budget_analysis([budget], [_expense("100", _at(2024, 1, 2))], as_of=_at(2024, 1, 4))["budgets"][0]

    assert row["daily_burn_rate"] == Decimal("33.33")
    assert row["days_remaining"] == 3
    assert row["projected_spend"] == Decimal("100.00")
    assert row["projected_overrun"] == Decimal("0")


def test_revenue_forecast_uses_preceding_year_trend() -> None:
    time_range = TimeRange(_at(2024, 1, 31), _at(2024, 3, 31))
    historical = [_revenue("100", _at(2023, 1, 31, 12)), _revenue("1300", _at(2024, 1, 20))]
    current = [_revenue("500", _at(2024, 3, 15))]

    report = revenue_forecast(historical, current, time_range=time_range, periods=3)

    assert history_range(time_range) == TimeRange(_at(2023, 1, 31), _at(2024, 1, 31))
    assert len(report["historical"]) == 13
    assert [row["period_key"] for row in report["current"]] == ["2024-01", "2024-02", "2024-03"]
    assert report["forecast"] == [
        {"month": "2024-04", "projected": Decimal("600"), "confidence": Decimal("0.9")},
        {"month": "2024-05", "projected": Decimal("700"), "confidence": Decimal("0.8")},
        {"month": "2024-06", "projected": Decimal("800"), "confidence": Decimal("0.7")},
    ]
    assert report["summary"] == {
        "average_monthly_growth": Decimal("100.00"),
        "projected_total": Decimal("2100"),
        "confidence_level": Decimal("0.80"),
    }


def test_expense_breakdown_dimensions() -> None:
    time_range = TimeRange(_at(2024, 1, 1), _at(2024, 3, 31))
    expenses = [
        _expense("100", _at(2024, 1, 5), tax_amount=Decimal("10"), user_name="Ana", description="Licences"),
        _expense("50", _at(2024, 3, 2), category="Travel", user_name="Ben"),
        _expense("200", _at(2024, 1, 20)),
    ]

    report = expense_breakdown(expenses, time_range=time_range)

    assert report["expenses"][0]["amount"] == Decimal("110")
    assert report["expenses"][0]["description"] == "Licences"
    assert report["breakdown"]["by_category"] == {"Software": Decimal("310"), "Travel": Decimal("50")}
    assert report["breakdown"]["by_user"] == {"Ana": Decimal("110"), "Ben": Decimal("50"), "Unknown": Decimal("200")}
    assert report["breakdown"]["by_month"] == {
        "2024-01": Decimal("310"),
        "2024-02": Decimal("0"),
        "2024-03": Decimal("50"),
    }
    assert report["summary"] == {
        "total_expenses": Decimal("360"),
        "total_entries": 3,
        "average_expense": Decimal("120.00"),
        "top_category": {"name": "Software", "amount": Decimal("310")},
        "top_user": {"name": "Unknown", "amount": Decimal("200")},
    }


def test_expense_breakdown_empty_input() -> None:
    report = expense_breakdown([], time_range=TimeRange(_at(2024, 1, 1), _at(2024, 1, 31)))

    assert report["expenses"] == []
    assert report["summary"]["average_expense"] == Decimal("0")
    assert report["summary"]["top_category"] is None


def test_apply_row_options_sorts_by_metric_and_limits() -> None:
    rows = [
        {"name": "a", "metrics": {"profit": Decimal("5")}},
        {"name": "b"},
        {"name": "c", "metrics": {"profit": Decimal("50")}},
        {"name": "d", "profit": Decimal("20")},
    ]

    descending = apply_row_options(rows, sort_by="profit")
    ascending = apply_row_options(rows, sort_by="profit", sort_order="asc", limit=2)

    assert [row["name"] for row in descending] == ["c", "d", "a", "b"]
    assert [row["name"] for row in ascending] == ["a", "d"]
    assert apply_row_options(rows, sort_by=None, limit=3) == rows[:3]
    assert [row["name"] for row in rows] == ["a", "b", "c", "d"]


def test_apply_row_options_rejects_nested_sort_fields() -> None:
    rows = [
        {"user": {"id": "u1", "name": "Ana"}, "total_tasks": 3},
        {"user": {"id": "u2", "name": "Ben"}, "total_tasks": 1},
    ]

    with pytest.raises(InvalidSortField) as excinfo:
        apply_row_options(rows, sort_by="user")
    with pytest.raises(InvalidSortField):
        apply_row_options(rows[:1], sort_by="user")
    with pytest.raises(InvalidSortField):
        apply_row_options([{"name": "a"}, {"name": 3}], sort_by="name")

    assert excinfo.value.field_name == "user"
