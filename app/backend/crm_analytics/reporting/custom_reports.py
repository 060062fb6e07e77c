"""Composers for saved/custom report kinds that are not plain analytics views."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from crm_analytics.reporting.aggregation import (
    aggregate_by_dimension,
    group_records,
    safe_div,
    safe_rate,
    sum_effective,
    top_entry,
)
from crm_analytics.reporting.analytics import budget_actual_spent, budget_status, monthly_profit_rows
from crm_analytics.reporting.errors import InvalidSortField
from crm_analytics.reporting.forecast import (
    DEFAULT_FORECAST_PERIODS,
    average_growth,
    forecast_summary,
    linear_forecast,
)
from crm_analytics.reporting.periods import TimeRange, as_utc_date, continuous_monthly_series, elapsed_days
from crm_analytics.reporting.records import (
    ZERO,
    BudgetRecord,
    ClientRecord,
    ExpenseRecord,
    ProjectRecord,
    ProjectStatus,
    RevenueRecord,
)

HISTORY_WINDOW = timedelta(days=365)
Q2 = Decimal("0.01")


def financial_summary(
    revenues: Sequence[RevenueRecord],
    expenses: Sequence[ExpenseRecord],
    budgets: Sequence[BudgetRecord],
    *,
    time_range: TimeRange,
) -> dict[str, object]:
    total_revenue = sum_effective(revenues)
    total_expenses = sum_effective(expenses)
    total_budget = sum((budget.total_amount for budget in budgets), ZERO)
    profit = total_revenue - total_expenses
    _, _, monthly_trends = monthly_profit_rows(revenues, expenses, time_range)
    return {
        "summary": {
            "total_revenue": total_revenue,
            "total_expenses": total_expenses,
            "profit": profit,
            "profit_margin": safe_rate(profit, total_revenue),
            "total_budget": total_budget,
            "budget_utilization": safe_rate(total_expenses, total_budget),
        },
        "revenue_by_client": aggregate_by_dimension(revenues, lambda r: r.client_name),
        "expenses_by_category": aggregate_by_dimension(expenses, lambda e: e.category),
        "monthly_trends": monthly_trends,
    }


def client_analysis(
    clients: Sequence[ClientRecord],
    projects: Sequence[ProjectRecord],
    revenues: Sequence[RevenueRecord],
    expenses: Sequence[ExpenseRecord],
    budgets: Sequence[BudgetRecord],
) -> dict[str, object]:
    projects_by_client = group_records(projects, lambda p: p.client_id)
    revenues_by_client = group_records(revenues, lambda r: r.client_id)
    expenses_by_client = group_records(expenses, lambda e: e.client_id)
    budgets_by_client = group_records(budgets, lambda b: b.client_id)

    rows = []
    for client in clients:
        client_projects = projects_by_client.get(client.id, [])
        total_revenue = sum_effective(revenues_by_client.get(client.id, []))
        total_expenses = sum_effective(expenses_by_client.get(client.id, []))
        total_hours = sum(
            (task.total_hours for project in client_projects for task in project.tasks),
            ZERO,
        )
        rows.append(
            {
                "id": str(client.id),
                "name": client.name,
                "email": client.email,
                "total_revenue": total_revenue,
                "total_expenses": total_expenses,
                "profit": total_revenue - total_expenses,
                "total_budget": sum((b.total_amount for b in budgets_by_client.get(client.id, [])), ZERO),
                "total_projects": len(client_projects),
                "active_projects": sum(1 for p in client_projects if p.status is ProjectStatus.ACTIVE),
                "completed_projects": sum(1 for p in client_projects if p.status is ProjectStatus.COMPLETED),
                "total_hours": total_hours,
                "revenue_per_hour": safe_div(total_revenue, total_hours),
                "profit_margin": safe_rate(total_revenue - total_expenses, total_revenue),
            }
        )

    return {
        "clients": rows,
        "summary": {
            "total_clients": len(rows),
            "total_revenue": sum((row["total_revenue"] for row in rows), ZERO),
            "total_expenses": sum((row["total_expenses"] for row in rows), ZERO),
            "total_projects": sum(row["total_projects"] for row in rows),
            "average_profit_margin": safe_div(sum((row["profit_margin"] for row in rows), ZERO), len(rows)),
        },
    }


def budget_analysis(
    budgets: Sequence[BudgetRecord],
    expenses: Sequence[ExpenseRecord],
    *,
    as_of: datetime,
) -> dict[str, object]:
    """Budget utilization with burn-rate projection measured at ``as_of``."""

    rows = []
    for budget in budgets:
        spent = budget_actual_spent(budget, expenses)
        utilization = safe_rate(spent, budget.total_amount)
        days_remaining = max(0, elapsed_days(as_of, budget.end_date))
        days_elapsed = max(1, elapsed_days(budget.start_date, as_of))
        burn_rate = spent / Decimal(days_elapsed)
        projected_spend = (burn_rate * days_remaining).quantize(Q2)
        rows.append(
            {
                "id": str(budget.id),
                "name": budget.name,
                "project": budget.project_name,
                "client": budget.client_name,
                "total_amount": budget.total_amount,
                "spent": spent,
                "remaining": budget.total_amount - spent,
                "utilization": utilization,
                "status": budget_status(spent, budget.total_amount),
                "days_remaining": days_remaining,
                "daily_burn_rate": burn_rate.quantize(Q2),
                "projected_spend": projected_spend,
                "projected_overrun": max(ZERO, spent + projected_spend - budget.total_amount),
                "categories": list(budget.categories),
            }
        )

    return {
        "budgets": rows,
        "summary": {
            "total_budgets": len(rows),
            "total_allocated": sum((row["total_amount"] for row in rows), ZERO),
            "total_spent": sum((row["spent"] for row in rows), ZERO),
            "average_utilization": safe_div(sum((row["utilization"] for row in rows), ZERO), len(rows)),
            "over_budget_count": sum(1 for row in rows if row["status"] == "OVER_BUDGET"),
            "at_risk_count": sum(1 for row in rows if row["status"] == "AT_RISK"),
        },
    }


def history_range(time_range: TimeRange) -> TimeRange:
    return TimeRange(time_range.start - HISTORY_WINDOW, time_range.start)


def revenue_forecast(
    historical_revenues: Sequence[RevenueRecord],
    current_revenues: Sequence[RevenueRecord],
    *,
    time_range: TimeRange,
    periods: int = DEFAULT_FORECAST_PERIODS,
) -> dict[str, object]:
    """Project revenue forward from the trend of the preceding year."""

    historical = continuous_monthly_series(historical_revenues, history_range(time_range), lambda r: r.date)
    current = continuous_monthly_series(current_revenues, time_range, lambda r: r.date)
    history = [bucket.value for bucket in historical]
    growth = average_growth(history)
    forecast = linear_forecast(
        history,
        current[-1].value if current else ZERO,
        last_month=as_utc_date(time_range.end),
        periods=periods,
    )
    return {
        "historical": [bucket.as_dict() for bucket in historical],
        "current": [bucket.as_dict() for bucket in current],
        "forecast": forecast,
        "summary": forecast_summary(forecast, growth),
    }


def expense_breakdown(expenses: Sequence[ExpenseRecord], *, time_range: TimeRange) -> dict[str, object]:
    by_category = aggregate_by_dimension(expenses, lambda e: e.category)
    by_user = aggregate_by_dimension(expenses, lambda e: e.user_name)
    total = sum_effective(expenses)
    return {
        "expenses": [
            {
                "id": str(expense.id),
                "date": expense.date.isoformat(),
                "amount": expense.effective_value,
                "category": expense.category,
                "description": expense.description,
                "user": expense.user_name,
                "project": expense.project_name,
                "client": expense.client_name,
                "status": expense.status,
            }
            for expense in expenses
        ],
        "breakdown": {
            "by_category": by_category,
            "by_user": by_user,
            "by_project": aggregate_by_dimension(expenses, lambda e: e.project_name),
            "by_status": aggregate_by_dimension(expenses, lambda e: e.status),
            "by_month": {
                bucket.period_key: bucket.value
                for bucket in continuous_monthly_series(expenses, time_range, lambda e: e.date)
            },
        },
        "summary": {
            "total_expenses": total,
            "total_entries": len(expenses),
            "average_expense": safe_div(total, len(expenses)),
            "top_category": top_entry(by_category),
            "top_user": top_entry(by_user),
        },
    }


def _row_value(row: dict[str, object], key: str) -> object:
    if key in row:
        return row[key]
    metrics = row.get("metrics")
    if isinstance(metrics, dict):
        return metrics.get(key)
    return None


def apply_row_options(
    rows: list[dict[str, object]],
    *,
    sort_by: str | None,
    sort_order: str = "desc",
    limit: int | None = None,
) -> list[dict[str, object]]:
    """Sort rows by a top-level or ``metrics`` field and truncate; rows without the field go last."""

    ordered = list(rows)
    if sort_by:
        present = [row for row in ordered if _row_value(row, sort_by) is not None]
        missing = [row for row in ordered if _row_value(row, sort_by) is None]
        if any(isinstance(_row_value(row, sort_by), (dict, list, tuple)) for row in present):
            raise InvalidSortField(sort_by)
        try:
            present.sort(key=lambda row: _row_value(row, sort_by), reverse=sort_order == "desc")
        except TypeError as exc:
            raise InvalidSortField(sort_by) from exc
        ordered = present + missing
    if limit is not None:
        ordered = ordered[:limit]
    return ordered
