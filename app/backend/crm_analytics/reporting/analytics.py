"""Composers for the ten analytics report types.

Each function is a pure transformation of already-filtered record lists into a
report mapping. Shared bucketing and aggregation live in ``periods`` and
``aggregation``; the functions here only choose selectors and derived ratios.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from crm_analytics.reporting.aggregation import (
    DEFAULT_TOP_N,
    HUNDRED,
    aggregate_by_dimension,
    group_records,
    safe_div,
    safe_rate,
    sum_effective,
    sum_hours,
    top_n,
)
from crm_analytics.reporting.forecast import DEFAULT_FORECAST_PERIODS, average_growth, linear_forecast
from crm_analytics.reporting.periods import (
    SUNDAY,
    Granularity,
    PeriodBucket,
    TimeRange,
    as_utc,
    as_utc_date,
    bucket_by_period,
    continuous_monthly_series,
    elapsed_days,
)
from crm_analytics.reporting.records import (
    ZERO,
    BudgetRecord,
    ClientRecord,
    ExpenseRecord,
    MonetaryRecord,
    ProjectRecord,
    ProjectStatus,
    RevenueRecord,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TimeEntryRecord,
    UserRecord,
)

DEFAULT_HOURS_PER_DAY = 8
AT_RISK_THRESHOLD = Decimal("80")
OVER_BUDGET_THRESHOLD = Decimal("100")
UNASSIGNED_ID = "unassigned"
UNASSIGNED_NAME = "Unassigned"
UNKNOWN_ID = "unknown"
UNKNOWN_NAME = "Unknown"


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None


def _id(value: object) -> str | None:
    return str(value) if value is not None else None


def _assignee(task: TaskRecord) -> dict[str, object]:
    if task.assignee_id is None:
        return {"id": UNASSIGNED_ID, "name": UNASSIGNED_NAME, "email": ""}
    return {
        "id": str(task.assignee_id),
        "name": task.assignee_name or UNKNOWN_NAME,
        "email": task.assignee_email or "",
    }


# ---------- Money ----------
def _monetary_analysis(
    records: Sequence[MonetaryRecord],
    *,
    granularity: Granularity,
    week_start: int,
) -> dict[str, object]:
    total = sum_effective(records)
    buckets = bucket_by_period(records, granularity, lambda r: r.date, week_start=week_start)
    return {
        "time_series": [bucket.as_dict() for bucket in buckets],
        "summary": {
            "total": total,
            "average": safe_div(total, len(records)),
            "count": len(records),
        },
        "breakdown": {
            "by_status": aggregate_by_dimension(records, lambda r: r.status),
            "by_category": aggregate_by_dimension(records, lambda r: r.category),
        },
    }


def revenue_analysis(
    revenues: Sequence[RevenueRecord],
    *,
    granularity: Granularity = Granularity.DAY,
    week_start: int = SUNDAY,
    top_limit: int = DEFAULT_TOP_N,
) -> dict[str, object]:
    report = _monetary_analysis(revenues, granularity=granularity, week_start=week_start)
    report["top_clients"] = top_n(aggregate_by_dimension(revenues, lambda r: r.client_name), top_limit)
    return report


def expense_analysis(
    expenses: Sequence[ExpenseRecord],
    *,
    granularity: Granularity = Granularity.DAY,
    week_start: int = SUNDAY,
    top_limit: int = DEFAULT_TOP_N,
) -> dict[str, object]:
    report = _monetary_analysis(expenses, granularity=granularity, week_start=week_start)
    report["top_spenders"] = top_n(aggregate_by_dimension(expenses, lambda e: e.user_name), top_limit)
    return report


# ---------- Projects and tasks ----------
def project_duration_days(project: ProjectRecord) -> int:
    if project.start_date is None or project.end_date is None:
        return 0
    return elapsed_days(project.start_date, project.end_date)


def project_performance(projects: Sequence[ProjectRecord]) -> dict[str, object]:
    rows: list[dict[str, object]] = []
    total_duration = 0
    for project in projects:
        total_tasks = len(project.tasks)
        completed_tasks = sum(1 for task in project.tasks if task.is_done)
        duration = project_duration_days(project)
        total_duration += duration
        rows.append(
            {
                "project": {
                    "id": str(project.id),
                    "name": project.name,
                    "status": project.status.value,
                    "start_date": _iso(project.start_date),
                    "end_date": _iso(project.end_date),
                },
                "client": (
                    {"id": str(project.client_id), "name": project.client_name}
                    if project.client_id is not None
                    else None
                ),
                "metrics": {
                    "total_tasks": total_tasks,
                    "completed_tasks": completed_tasks,
                    "completion_rate": safe_rate(completed_tasks, total_tasks),
                    "total_hours": sum((task.total_hours for task in project.tasks), ZERO),
                    "duration": duration,
                },
            }
        )

    completed_projects = sum(1 for project in projects if project.status is ProjectStatus.COMPLETED)
    return {
        "projects": rows,
        "summary": {
            "total_projects": len(projects),
            "completed_projects": completed_projects,
            "overall_completion_rate": safe_rate(completed_projects, len(projects)),
            "average_project_duration": safe_div(total_duration, len(projects)),
        },
    }


def team_productivity(tasks: Sequence[TaskRecord]) -> dict[str, object]:
    by_user: dict[str, dict[str, object]] = {}
    total_hours = ZERO
    for task in tasks:
        user = _assignee(task)
        bucket = by_user.setdefault(
            user["id"],
            {
                "user": user,
                "total_tasks": 0,
                "completed_tasks": 0,
                "total_hours": ZERO,
                "tasks_by_priority": {priority.value: 0 for priority in TaskPriority},
            },
        )
        task_hours = task.total_hours
        total_hours += task_hours
        bucket["total_tasks"] += 1
        if task.is_done:
            bucket["completed_tasks"] += 1
        bucket["total_hours"] += task_hours
        bucket["tasks_by_priority"][task.priority.value] += 1

    team_metrics = []
    for bucket in by_user.values():
        team_metrics.append(
            {
                **bucket,
                "completion_rate": safe_rate(bucket["completed_tasks"], bucket["total_tasks"]),
                "average_hours_per_task": safe_div(bucket["total_hours"], bucket["total_tasks"]),
            }
        )

    return {
        "team_metrics": team_metrics,
        "summary": {
            "total_team_members": len(by_user),
            "total_tasks": len(tasks),
            "total_hours": total_hours,
        },
    }


def _completion_row(tasks: Sequence[TaskRecord]) -> dict[str, object]:
    completed = sum(1 for task in tasks if task.is_done)
    return {
        "total": len(tasks),
        "completed": completed,
        "completion_rate": safe_rate(completed, len(tasks)),
    }


def is_overdue(task: TaskRecord, as_of: datetime) -> bool:
    return task.due_date is not None and as_utc(task.due_date) < as_utc(as_of) and not task.is_done


def average_completion_days(tasks: Sequence[TaskRecord]) -> Decimal:
    durations = [
        Decimal((as_utc(task.completed_at) - as_utc(task.created_at)).total_seconds()) / Decimal(86400)
        for task in tasks
        if task.is_done and task.completed_at is not None
    ]
    return safe_div(sum(durations, ZERO), len(durations))


def task_completion_rate(
    tasks: Sequence[TaskRecord],
    *,
    as_of: datetime,
    granularity: Granularity = Granularity.DAY,
    week_start: int = SUNDAY,
) -> dict[str, object]:
    by_priority = group_records(tasks, lambda t: t.priority.value)
    by_user = group_records(tasks, lambda t: _assignee(t)["id"])

    priority_rates = [{"priority": priority, **_completion_row(rows)} for priority, rows in by_priority.items()]
    user_rates = [{"user": _assignee(rows[0]), **_completion_row(rows)} for rows in by_user.values()]

    completed = sum(1 for task in tasks if task.is_done)
    return {
        "time_series": [
            bucket.as_dict()
            for bucket in bucket_by_period(tasks, granularity, lambda t: t.created_at, week_start=week_start)
        ],
        "by_priority": priority_rates,
        "by_user": user_rates,
        "summary": {
            "total_tasks": len(tasks),
            "completed_tasks": completed,
            "overall_completion_rate": safe_rate(completed, len(tasks)),
            "overdue_tasks": sum(1 for task in tasks if is_overdue(task, as_of)),
            "average_completion_days": average_completion_days(tasks),
        },
    }


# ---------- Clients and budgets ----------
def client_profitability(
    clients: Sequence[ClientRecord],
    revenues: Sequence[RevenueRecord],
    expenses: Sequence[ExpenseRecord],
    projects: Sequence[ProjectRecord] = (),
) -> dict[str, object]:
    revenues_by_client = group_records(revenues, lambda r: r.client_id)
    expenses_by_client = group_records(expenses, lambda e: e.client_id)
    projects_by_client = group_records(projects, lambda p: p.client_id)

    rows = []
    for client in clients:
        client_revenues = revenues_by_client.get(client.id, [])
        total_revenue = sum_effective(client_revenues)
        total_expenses = sum_effective(expenses_by_client.get(client.id, []))
        profit = total_revenue - total_expenses
        rows.append(
            {
                "client": {"id": str(client.id), "name": client.name, "company": client.company},
                "metrics": {
                    "total_revenue": total_revenue,
                    "total_expenses": total_expenses,
                    "profit": profit,
                    "profit_margin": safe_rate(profit, total_revenue),
                    "project_count": len(projects_by_client.get(client.id, [])),
                    "revenue_count": len(client_revenues),
                },
            }
        )

    rows.sort(key=lambda row: row["metrics"]["profit"], reverse=True)
    return {
        "clients": rows,
        "summary": {
            "total_clients": len(rows),
            "total_revenue": sum((row["metrics"]["total_revenue"] for row in rows), ZERO),
            "total_expenses": sum((row["metrics"]["total_expenses"] for row in rows), ZERO),
            "total_profit": sum((row["metrics"]["profit"] for row in rows), ZERO),
        },
    }


def expense_matches_budget(budget: BudgetRecord, expense: ExpenseRecord) -> bool:
    spent_on = as_utc_date(expense.date)
    if not as_utc_date(budget.start_date) <= spent_on <= as_utc_date(budget.end_date):
        return False
    if budget.project_id is not None and expense.project_id != budget.project_id:
        return False
    if budget.client_id is not None and expense.client_id != budget.client_id:
        return False
    return True


def budget_actual_spent(budget: BudgetRecord, expenses: Sequence[ExpenseRecord]) -> Decimal:
    return sum_effective(expense for expense in expenses if expense_matches_budget(budget, expense))


def budget_status(spent: Decimal, budgeted: Decimal) -> str:
    """Classify on the exact spend ratio; reported utilization is rounded separately."""

    if spent * HUNDRED > budgeted * OVER_BUDGET_THRESHOLD:
        return "OVER_BUDGET"
    if spent * HUNDRED > budgeted * AT_RISK_THRESHOLD:
        return "AT_RISK"
    return "ON_TRACK"


def _budget_header(budget: BudgetRecord) -> dict[str, object]:
    return {
        "id": str(budget.id),
        "name": budget.name,
        "total_amount": budget.total_amount,
        "start_date": _iso(budget.start_date),
        "end_date": _iso(budget.end_date),
    }


def budget_variance(budgets: Sequence[BudgetRecord], expenses: Sequence[ExpenseRecord]) -> dict[str, object]:
    rows = []
    for budget in budgets:
        actual_spent = budget_actual_spent(budget, expenses)
        variance = budget.total_amount - actual_spent
        utilization = safe_rate(actual_spent, budget.total_amount)
        rows.append(
            {
                "budget": _budget_header(budget),
                "project": (
                    {"id": str(budget.project_id), "name": budget.project_name}
                    if budget.project_id is not None
                    else None
                ),
                "client": (
                    {"id": str(budget.client_id), "name": budget.client_name}
                    if budget.client_id is not None
                    else None
                ),
                "metrics": {
                    "budgeted": budget.total_amount,
                    "actual_spent": actual_spent,
                    "variance": variance,
                    "variance_percentage": safe_rate(variance, budget.total_amount),
                    "utilization_rate": utilization,
                    "is_over_budget": actual_spent > budget.total_amount,
                    "status": budget_status(actual_spent, budget.total_amount),
                },
            }
        )

    return {
        "budgets": rows,
        "summary": {
            "total_budgets": len(rows),
            "total_budgeted": sum((row["metrics"]["budgeted"] for row in rows), ZERO),
            "total_spent": sum((row["metrics"]["actual_spent"] for row in rows), ZERO),
            "over_budget_count": sum(1 for row in rows if row["metrics"]["is_over_budget"]),
        },
    }


# ---------- Time ----------
def time_tracking(
    entries: Sequence[TimeEntryRecord],
    *,
    granularity: Granularity = Granularity.DAY,
    week_start: int = SUNDAY,
) -> dict[str, object]:
    by_user: dict[str, dict[str, object]] = {}
    by_project: dict[str, dict[str, object]] = {}
    for entry in entries:
        user_id = str(entry.user_id)
        user_bucket = by_user.setdefault(
            user_id,
            {
                "user": {"id": user_id, "name": entry.user_name or UNKNOWN_NAME},
                "total_hours": ZERO,
                "entries": 0,
            },
        )
        user_bucket["total_hours"] += entry.hours
        user_bucket["entries"] += 1

        project_id = _id(entry.project_id) or UNKNOWN_ID
        project_bucket = by_project.setdefault(
            project_id,
            {
                "project": {"id": project_id, "name": entry.project_name or UNKNOWN_NAME},
                "total_hours": ZERO,
                "entries": 0,
            },
        )
        project_bucket["total_hours"] += entry.hours
        project_bucket["entries"] += 1

    daily_hours = aggregate_by_dimension(entries, lambda e: as_utc_date(e.date).isoformat(), lambda e: e.hours)
    total_hours = sum_hours(entries)
    return {
        "time_series": [
            bucket.as_dict()
            for bucket in bucket_by_period(entries, granularity, lambda e: e.date, week_start=week_start)
        ],
        "daily_hours": dict(sorted(daily_hours.items())),
        "by_user": list(by_user.values()),
        "by_project": list(by_project.values()),
        "summary": {
            "total_hours": total_hours,
            "total_entries": len(entries),
            "average_hours_per_entry": safe_div(total_hours, len(entries)),
        },
    }


def resource_utilization(
    users: Sequence[UserRecord],
    entries: Sequence[TimeEntryRecord],
    tasks: Sequence[TaskRecord],
    *,
    time_range: TimeRange,
    hours_per_day: int = DEFAULT_HOURS_PER_DAY,
) -> dict[str, object]:
    entries_by_user = group_records(entries, lambda e: e.user_id)
    tasks_by_user = group_records(tasks, lambda t: t.assignee_id)
    expected_hours = Decimal(time_range.days * hours_per_day)

    rows = []
    for user in users:
        user_tasks = tasks_by_user.get(user.id, [])
        total_hours = sum_hours(entries_by_user.get(user.id, []))
        completed_tasks = sum(1 for task in user_tasks if task.is_done)
        rows.append(
            {
                "user": {"id": str(user.id), "name": user.name, "email": user.email, "role": user.role},
                "metrics": {
                    "total_hours": total_hours,
                    "expected_hours": expected_hours,
                    "utilization_rate": safe_rate(total_hours, expected_hours),
                    "active_tasks": len(user_tasks) - completed_tasks,
                    "completed_tasks": completed_tasks,
                    "total_tasks": len(user_tasks),
                },
            }
        )

    return {
        "users": rows,
        "summary": {
            "total_users": len(rows),
            "average_utilization": safe_div(
                sum((row["metrics"]["utilization_rate"] for row in rows), ZERO), len(rows)
            ),
            "total_hours": sum((row["metrics"]["total_hours"] for row in rows), ZERO),
        },
    }


# ---------- Trends ----------
def monthly_profit_rows(
    revenues: Sequence[RevenueRecord],
    expenses: Sequence[ExpenseRecord],
    time_range: TimeRange,
) -> tuple[list[PeriodBucket], list[PeriodBucket], list[dict[str, object]]]:
    revenue_series = continuous_monthly_series(revenues, time_range, lambda r: r.date)
    expense_series = continuous_monthly_series(expenses, time_range, lambda e: e.date)
    rows = []
    for revenue, expense in zip(revenue_series, expense_series):
        profit = revenue.value - expense.value
        rows.append(
            {
                "period_key": revenue.period_key,
                "revenue": revenue.value,
                "expenses": expense.value,
                "profit": profit,
                "profit_margin": safe_rate(profit, revenue.value),
            }
        )
    return revenue_series, expense_series, rows


def financial_trends(
    revenues: Sequence[RevenueRecord],
    expenses: Sequence[ExpenseRecord],
    *,
    time_range: TimeRange,
    forecast_periods: int = DEFAULT_FORECAST_PERIODS,
) -> dict[str, object]:
    revenue_series, expense_series, rows = monthly_profit_rows(revenues, expenses, time_range)
    history = [bucket.value for bucket in revenue_series]
    growth = average_growth(history)
    total_revenue = sum_effective(revenues)
    total_expenses = sum_effective(expenses)
    return {
        "time_series": rows,
        "revenue": [bucket.as_dict() for bucket in revenue_series],
        "expenses": [bucket.as_dict() for bucket in expense_series],
        "forecast": linear_forecast(
            history,
            history[-1] if history else ZERO,
            last_month=as_utc_date(time_range.end),
            periods=forecast_periods,
        ),
        "summary": {
            "total_revenue": total_revenue,
            "total_expenses": total_expenses,
            "net_profit": total_revenue - total_expenses,
            "average_monthly_growth": growth,
        },
    }
