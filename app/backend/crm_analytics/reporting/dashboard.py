"""Composers for dashboard widgets.

Widgets are compact summaries over the same record lists the analytics
reports use. Each function takes already-windowed records and returns one
widget payload; the engine decides which widgets a dashboard request builds.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from crm_analytics.reporting.aggregation import (
    DEFAULT_TOP_N,
    aggregate_by_dimension,
    count_by_dimension,
    group_records,
    safe_rate,
    sum_effective,
)
from crm_analytics.reporting.analytics import budget_actual_spent, budget_status
from crm_analytics.reporting.periods import Granularity, as_utc, bucket_by_period
from crm_analytics.reporting.records import (
    ZERO,
    BudgetRecord,
    ClientRecord,
    ExpenseRecord,
    MonetaryRecord,
    ProjectRecord,
    ProjectStatus,
    RevenueRecord,
    TaskRecord,
    UserRecord,
)

RECEIVED = "RECEIVED"
APPROVED = "APPROVED"
CURRENCY = "USD"
UPCOMING_WINDOW = timedelta(days=7)
PROJECT_DEADLINE_LIMIT = 5
# Projects carry no priority of their own.
PROJECT_DEADLINE_PRIORITY = "MEDIUM"


def _with_status(records: Sequence[MonetaryRecord], status: str) -> list[MonetaryRecord]:
    return [record for record in records if record.status == status]


def _daily_amounts(records: Sequence[MonetaryRecord]) -> list[dict[str, object]]:
    return [
        {"date": bucket.period_key, "amount": bucket.value}
        for bucket in bucket_by_period(records, Granularity.DAY, lambda r: r.date)
    ]


def _status_counts(counts: dict[str, int]) -> list[dict[str, object]]:
    return [{"status": status, "count": count} for status, count in counts.items()]


def _client_ref(client: ClientRecord) -> dict[str, object]:
    return {"id": str(client.id), "name": client.name, "company": client.company}


# ---------- Headline figures ----------
def overview_stats(
    clients: Sequence[ClientRecord],
    projects: Sequence[ProjectRecord],
    tasks: Sequence[TaskRecord],
    revenues: Sequence[RevenueRecord],
    expenses: Sequence[ExpenseRecord],
) -> dict[str, object]:
    """Headline counts plus received revenue against approved expenses."""

    total_revenue = sum_effective(_with_status(revenues, RECEIVED))
    total_expenses = sum_effective(_with_status(expenses, APPROVED))
    profit = total_revenue - total_expenses
    return {
        "clients": {"total": len(clients), "label": "Active Clients"},
        "projects": {"total": len(projects), "label": "Total Projects"},
        "tasks": {"total": len(tasks), "label": "Total Tasks"},
        "revenue": {"total": total_revenue, "label": "Total Revenue", "currency": CURRENCY},
        "expenses": {"total": total_expenses, "label": "Total Expenses", "currency": CURRENCY},
        "profit": {
            "total": profit,
            "margin": safe_rate(profit, total_revenue),
            "label": "Net Profit",
            "currency": CURRENCY,
        },
    }


def financial_summary(
    revenues: Sequence[RevenueRecord],
    expenses: Sequence[ExpenseRecord],
    budgets: Sequence[BudgetRecord],
) -> dict[str, object]:
    total_revenue = sum_effective(revenues)
    total_expenses = sum_effective(expenses)
    total_budget = sum((budget.total_amount for budget in budgets), ZERO)
    profit = total_revenue - total_expenses
    return {
        "revenue": {"total": total_revenue, "count": len(revenues)},
        "expenses": {"total": total_expenses, "count": len(expenses)},
        "budget": {
            "total": total_budget,
            "count": len(budgets),
            "utilization": safe_rate(total_expenses, total_budget),
        },
        "profit": {"total": profit, "margin": safe_rate(profit, total_revenue)},
    }


# ---------- Charts ----------
def revenue_chart(revenues: Sequence[RevenueRecord]) -> dict[str, object]:
    received = _with_status(revenues, RECEIVED)
    return {
        "data": _daily_amounts(received),
        "total": sum_effective(received),
        "count": len(received),
    }


def expense_chart(expenses: Sequence[ExpenseRecord]) -> dict[str, object]:
    return {
        "data": _daily_amounts(expenses),
        "category_breakdown": aggregate_by_dimension(expenses, lambda e: e.category),
        "total": sum_effective(expenses),
        "count": len(expenses),
    }


def project_status(projects: Sequence[ProjectRecord]) -> dict[str, object]:
    return {
        "data": _status_counts(count_by_dimension(projects, lambda p: p.status.value)),
        "total": len(projects),
    }


def task_completion(tasks: Sequence[TaskRecord]) -> dict[str, object]:
    completed = sum(1 for task in tasks if task.is_done)
    return {
        "data": _status_counts(count_by_dimension(tasks, lambda t: t.status.value)),
        "total": len(tasks),
        "completed": completed,
        "completion_rate": safe_rate(completed, len(tasks)),
    }


# ---------- People and clients ----------
def team_performance(
    users: Sequence[UserRecord],
    tasks: Sequence[TaskRecord],
    *,
    limit: int = DEFAULT_TOP_N,
) -> dict[str, object]:
    tasks_by_user = group_records(tasks, lambda t: t.assignee_id)
    rows = []
    for user in users:
        assigned = tasks_by_user.get(user.id, [])
        completed = sum(1 for task in assigned if task.is_done)
        rows.append(
            {
                "user": {"id": str(user.id), "name": user.name, "email": user.email},
                "assigned_tasks": len(assigned),
                "completed_tasks": completed,
                "completion_rate": safe_rate(completed, len(assigned)),
                "total_hours": sum((task.total_hours for task in assigned), ZERO),
            }
        )
    rows.sort(key=lambda row: row["assigned_tasks"], reverse=True)
    return {"data": rows[:limit]}


def client_activity(
    clients: Sequence[ClientRecord],
    projects: Sequence[ProjectRecord],
    revenues: Sequence[RevenueRecord],
    *,
    limit: int = DEFAULT_TOP_N,
) -> dict[str, object]:
    """Clients ranked by projects started in the window, with their revenue entry count."""

    projects_by_client = group_records(projects, lambda p: p.client_id)
    revenues_by_client = group_records(revenues, lambda r: r.client_id)
    rows = [
        {
            "client": _client_ref(client),
            "project_count": len(projects_by_client.get(client.id, [])),
            "revenue_count": len(revenues_by_client.get(client.id, [])),
        }
        for client in clients
    ]
    rows.sort(key=lambda row: row["project_count"], reverse=True)
    return {"data": rows[:limit]}


def top_clients(
    clients: Sequence[ClientRecord],
    projects: Sequence[ProjectRecord],
    revenues: Sequence[RevenueRecord],
    *,
    limit: int = DEFAULT_TOP_N,
) -> dict[str, object]:
    projects_by_client = group_records(projects, lambda p: p.client_id)
    revenues_by_client = group_records(_with_status(revenues, RECEIVED), lambda r: r.client_id)
    rows = []
    for client in clients:
        client_revenues = revenues_by_client.get(client.id, [])
        total_revenue = sum_effective(client_revenues)
        if total_revenue <= ZERO:
            continue
        rows.append(
            {
                "client": _client_ref(client),
                "total_revenue": total_revenue,
                "project_count": len(projects_by_client.get(client.id, [])),
                "revenue_count": len(client_revenues),
            }
        )
    rows.sort(key=lambda row: row["total_revenue"], reverse=True)
    return {"data": rows[:limit]}


# ---------- Budgets and deadlines ----------
def budget_utilization(
    budgets: Sequence[BudgetRecord],
    expenses: Sequence[ExpenseRecord],
    *,
    limit: int = DEFAULT_TOP_N,
) -> dict[str, object]:
    rows = []
    for budget in budgets[:limit]:
        spent = budget_actual_spent(budget, expenses)
        rows.append(
            {
                "budget": {"id": str(budget.id), "name": budget.name, "total_amount": budget.total_amount},
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
                "spent": spent,
                "remaining": budget.total_amount - spent,
                "utilization": safe_rate(spent, budget.total_amount),
                "is_over_budget": spent > budget.total_amount,
                "status": budget_status(spent, budget.total_amount),
            }
        )
    return {"data": rows}


def _due_within(moment: datetime | None, start: datetime, end: datetime) -> bool:
    return moment is not None and as_utc(start) <= as_utc(moment) <= as_utc(end)


def upcoming_deadlines(
    tasks: Sequence[TaskRecord],
    projects: Sequence[ProjectRecord],
    *,
    as_of: datetime,
    window: timedelta = UPCOMING_WINDOW,
    task_limit: int = DEFAULT_TOP_N,
    project_limit: int = PROJECT_DEADLINE_LIMIT,
) -> dict[str, object]:
    """Open tasks and unfinished projects due between ``as_of`` and ``as_of + window``."""

    horizon = as_of + window
    due_tasks = sorted(
        (task for task in tasks if not task.is_done and _due_within(task.due_date, as_of, horizon)),
        key=lambda task: as_utc(task.due_date),
    )[:task_limit]
    due_projects = sorted(
        (
            project
            for project in projects
            if project.status is not ProjectStatus.COMPLETED and _due_within(project.end_date, as_of, horizon)
        ),
        key=lambda project: as_utc(project.end_date),
    )[:project_limit]

    deadlines: list[tuple[datetime, dict[str, object]]] = [
        (
            as_utc(task.due_date),
            {
                "type": "task",
                "id": str(task.id),
                "title": task.title,
                "project": task.project_name,
                "assignee": task.assignee_name,
                "client": None,
                "priority": task.priority.value,
            },
        )
        for task in due_tasks
    ]
    deadlines.extend(
        (
            as_utc(project.end_date),
            {
                "type": "project",
                "id": str(project.id),
                "title": project.name,
                "project": project.name,
                "assignee": None,
                "client": project.client_name,
                "priority": PROJECT_DEADLINE_PRIORITY,
            },
        )
        for project in due_projects
    )
    # stable: tasks stay ahead of projects due at the same instant
    deadlines.sort(key=lambda item: item[0])
    return {"data": [{**row, "due_date": due.isoformat()} for due, row in deadlines]}
