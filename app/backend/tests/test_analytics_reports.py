from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from crm_analytics.reporting.analytics import (
    budget_variance,
    client_profitability,
    expense_analysis,
    financial_trends,
    project_performance,
    resource_utilization,
    revenue_analysis,
    task_completion_rate,
    team_productivity,
    time_tracking,
)
from crm_analytics.reporting.periods import Granularity, TimeRange
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
    UserRecord,
)

UTC = timezone.utc
USER_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
USER_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")
PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000f1")


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


def _entry(hours: str, when: datetime, user_id: uuid.UUID = USER_A, **fields: object) -> TimeEntryRecord:
    return TimeEntryRecord(
        id=uuid.uuid4(), hours=Decimal(hours), date=when, user_id=user_id, task_id=uuid.uuid4(), **fields
    )


def _task(status: TaskStatus, priority: TaskPriority, **fields: object) -> TaskRecord:
    values: dict[str, object] = {"created_at": _at(2024, 1, 2)}
    values.update(fields)
    return TaskRecord(id=uuid.uuid4(), title="Task", status=status, priority=priority, **values)


def _team_tasks() -> list[TaskRecord]:
    return [
        _task(
            TaskStatus.DONE,
            TaskPriority.HIGH,
            assignee_id=USER_A,
            assignee_name="Ana",
            assignee_email="ana@example.com",
            due_date=_at(2024, 1, 10),
            completed_at=_at(2024, 1, 5),
            time_entries=(_entry("2", _at(2024, 1, 3)), _entry("3", _at(2024, 1, 4))),
        ),
        _task(
            TaskStatus.TODO,
            TaskPriority.LOW,
            assignee_id=USER_A,
            assignee_name="Ana",
            assignee_email="ana@example.com",
            due_date=_at(2024, 1, 20),
        ),
        _task(
            TaskStatus.IN_PROGRESS,
            TaskPriority.URGENT,
            created_at=_at(2024, 1, 9),
            time_entries=(_entry("1.5", _at(2024, 1, 9), user_id=USER_B),),
        ),
    ]


def test_revenue_analysis_same_day_records() -> None:
    revenues = [
        _revenue("100", _at(2024, 1, 5), tax_amount=Decimal("10"), category="A", status="RECEIVED"),
        _revenue("50", _at(2024, 1, 5), category="B", status="PENDING"),
    ]

    report = revenue_analysis(revenues, granularity=Granularity.DAY)

    assert report["time_series"] == [{"period_key": "2024-01-05", "value": Decimal("160"), "count": 2}]
    assert report["summary"] == {"total": Decimal("160"), "average": Decimal("80.00"), "count": 2}
    assert report["breakdown"]["by_status"] == {"RECEIVED": Decimal("110"), "PENDING": Decimal("50")}
    assert report["breakdown"]["by_category"] == {"A": Decimal("110"), "B": Decimal("50")}
    assert report["top_clients"] == [{"name": "Unknown", "amount": Decimal("160")}]


def test_revenue_analysis_empty_input_is_zeroed() -> None:
    report = revenue_analysis([])

    assert report["time_series"] == []
    assert report["summary"] == {"total": Decimal("0"), "average": Decimal("0"), "count": 0}
    assert report["breakdown"] == {"by_status": {}, "by_category": {}}
    assert report["top_clients"] == []


def test_expense_analysis_top_spenders_capped_and_descending() -> None:
    expenses = [_expense(str(10 * (index + 1)), _at(2024, 2, 1), user_name=f"user-{index}") for index in range(12)]

    report = expense_analysis(expenses, granularity=Granularity.MONTH)

    spenders = report["top_spenders"]
    assert len(spenders) == 10
    assert spenders[0] == {"name": "user-11", "amount": Decimal("120")}
    assert [row["amount"] for row in spenders] == sorted((row["amount"] for row in spenders), reverse=True)
    assert report["time_series"] == [{"period_key": "2024-02", "value": Decimal("780"), "count": 12}]


def test_project_performance_guards_projects_without_tasks() -> None:
    empty_project = ProjectRecord(
        id=uuid.uuid4(),
        name="Discovery",
        status=ProjectStatus.ACTIVE,
        created_at=_at(2024, 1, 1),
        start_date=_at(2024, 1, 1),
        end_date=_at(2024, 1, 31, 12),
    )
    delivered = ProjectRecord(
        id=uuid.uuid4(),
        name="Launch",
        status=ProjectStatus.COMPLETED,
        created_at=_at(2024, 1, 2),
        client_id=uuid.uuid4(),
        client_name="Acme",
        tasks=(
            _task(TaskStatus.DONE, TaskPriority.HIGH, time_entries=(_entry("4", _at(2024, 1, 3)),)),
            _task(TaskStatus.TODO, TaskPriority.LOW),
        ),
    )

    report = project_performance([empty_project, delivered])

    first, second = report["projects"]
    assert first["metrics"] == {
        "total_tasks": 0,
        "completed_tasks": 0,
        "completion_rate": Decimal("0"),
        "total_hours": Decimal("0"),
        "duration": 31,
    }
    assert first["client"] is None
    assert second["metrics"]["completion_rate"] == Decimal("50.00")
    assert second["metrics"]["total_hours"] == Decimal("4")
    assert second["metrics"]["duration"] == 0
    assert second["client"]["name"] == "Acme"
    assert report["summary"] == {
        "total_projects": 2,
        "completed_projects": 1,
        "overall_completion_rate": Decimal("50.00"),
        "average_project_duration": Decimal("15.50"),
    }


def test_team_productivity_groups_by_assignee() -> None:
    report = team_productivity(_team_tasks())

    ana, unassigned = report["team_metrics"]
    assert ana["user"] == {"id": str(USER_A), "name": "Ana", "email": "ana@example.com"}
    assert ana["total_tasks"] == 2
    assert ana["completed_tasks"] == 1
    assert ana["completion_rate"] == Decimal("50.00")
    assert ana["average_hours_per_task"] == Decimal("2.50")
    assert ana["tasks_by_priority"] == {"LOW": 1, "MEDIUM": 0, "HIGH": 1, "URGENT": 0}
    assert unassigned["user"] == {"id": "unassigned", "name": "Unassigned", "email": ""}
    assert unassigned["completion_rate"] == Decimal("0")
    assert unassigned["average_hours_per_task"] == Decimal("1.50")
    assert report["summary"] == {"total_team_members": 2, "total_tasks": 3, "total_hours": Decimal("6.5")}


def test_task_completion_rate_breakdowns() -> None:
    report = task_completion_rate(_team_tasks(), as_of=_at(2024, 2, 1), granularity=Granularity.MONTH)

    assert report["time_series"] == [{"period_key": "2024-01", "value": Decimal("3"), "count": 3}]
    assert [row["priority"] for row in report["by_priority"]] == ["HIGH", "LOW", "URGENT"]
    assert report["by_priority"][0] == {
        "priority": "HIGH",
        "total": 1,
        "completed": 1,
        "completion_rate": Decimal("100.00"),
    }
    assert report["by_user"][0]["user"]["id"] == str(USER_A)
    assert report["by_user"][0]["completion_rate"] == Decimal("50.00")
    assert report["by_user"][1]["user"]["id"] == "unassigned"
    assert report["summary"] == {
        "total_tasks": 3,
        "completed_tasks": 1,
        "overall_completion_rate": Decimal("33.33"),
        "overdue_tasks": 1,
        "average_completion_days": Decimal("3.00"),
    }


def test_task_completion_rate_empty_input() -> None:
    report = task_completion_rate([], as_of=_at(2024, 2, 1))

    assert report["time_series"] == []
    assert report["summary"]["overall_completion_rate"] == Decimal("0")
    assert report["summary"]["average_completion_days"] == Decimal("0")


def test_client_profitability_sorted_by_profit() -> None:
    acme = ClientRecord(id=uuid.uuid4(), name="Acme", company="Acme Corp")
    globex = ClientRecord(id=uuid.uuid4(), name="Globex")
    initech = ClientRecord(id=uuid.uuid4(), name="Initech")
    revenues = [
        _revenue("1000", _at(2024, 1, 5), tax_amount=Decimal("100"), client_id=acme.id),
        _revenue("500", _at(2024, 1, 6), client_id=globex.id),
    ]
    expenses = [
        _expense("300", _at(2024, 1, 7), client_id=acme.id),
        _expense("600", _at(2024, 1, 8), client_id=globex.id),
    ]
    projects = [
        ProjectRecord(
            id=uuid.uuid4(), name="Site", status=ProjectStatus.ACTIVE, created_at=_at(2024, 1, 1), client_id=acme.id
        )
    ]

    report = client_profitability([globex, initech, acme], revenues, expenses, projects)

    assert [row["client"]["name"] for row in report["clients"]] == ["Acme", "Initech", "Globex"]
    acme_metrics = report["clients"][0]["metrics"]
    assert acme_metrics["profit"] == Decimal("800")
    assert acme_metrics["profit_margin"] == Decimal("72.73")
    assert acme_metrics["project_count"] == 1
    assert report["clients"][1]["metrics"]["profit_margin"] == Decimal("0")
    assert report["clients"][2]["metrics"]["profit_margin"] == Decimal("-20.00")
    assert report["summary"]["total_profit"] == Decimal("700")


def test_budget_variance_over_budget() -> None:
    budget = BudgetRecord(
        id=uuid.uuid4(),
        name="Q1 delivery",
        total_amount=Decimal("1000"),
        start_date=_at(2024, 1, 1),
        end_date=_at(2024, 1, 31),
        project_id=PROJECT_ID,
        project_name="Site",
    )
    expenses = [
        _expense("600", _at(2024, 1, 10), project_id=PROJECT_ID),
        _expense("450", _at(2024, 1, 31, 15), tax_amount=Decimal("50"), project_id=PROJECT_ID),
        _expense("300", _at(2024, 2, 1), project_id=PROJECT_ID),
        _expense("999", _at(2024, 1, 15), project_id=uuid.uuid4()),
    ]

    report = budget_variance([budget], expenses)

    row = report["budgets"][0]
    assert row["metrics"] == {
        "budgeted": Decimal("1000"),
        "actual_spent": Decimal("1100"),
        "variance": Decimal("-100"),
        "variance_percentage": Decimal("-10.00"),
        "utilization_rate": Decimal("110.00"),
        "is_over_budget": True,
        "status": "OVER_BUDGET",
    }
    assert row["project"] == {"id": str(PROJECT_ID), "name": "Site"}
    assert row["client"] is None
    assert report["summary"]["over_budget_count"] == 1


def test_budget_variance_status_uses_unrounded_spend() -> None:
    budget = BudgetRecord(
        id=uuid.uuid4(),
        name="Tight",
        total_amount=Decimal("1000.00"),
        start_date=_at(2024, 1, 1),
        end_date=_at(2024, 1, 31),
    )

    metrics = budget_variance([budget], [_expense("1000.01", _at(2024, 1, 9))])["budgets"][0]["metrics"]

    assert metrics["utilization_rate"] == Decimal("100.00")
    assert metrics["is_over_budget"] is True
    assert metrics["status"] == "OVER_BUDGET"


def test_budget_variance_zero_budget_is_guarded() -> None:
    budget = BudgetRecord(
        id=uuid.uuid4(),
        name="Placeholder",
        total_amount=Decimal("0"),
        start_date=_at(2024, 1, 1),
        end_date=_at(2024, 1, 31),
    )

    metrics = budget_variance([budget], [])["budgets"][0]["metrics"]

    assert metrics["utilization_rate"] == Decimal("0")
    assert metrics["variance_percentage"] == Decimal("0")
    assert metrics["status"] == "ON_TRACK"


def test_time_tracking_totals() -> None:
    entries = [
        _entry("2", _at(2024, 1, 2, 9), user_name="Ana", project_id=PROJECT_ID, project_name="Site"),
        _entry("3", _at(2024, 1, 1, 9), user_id=USER_B, user_name="Ben", project_id=PROJECT_ID, project_name="Site"),
        _entry("1.5", _at(2024, 1, 2, 14), user_name="Ana"),
    ]

    report = time_tracking(entries)

    assert [bucket["period_key"] for bucket in report["time_series"]] == ["2024-01-01", "2024-01-02"]
    assert report["daily_hours"] == {"2024-01-01": Decimal("3"), "2024-01-02": Decimal("3.5")}
    assert list(report["daily_hours"]) == ["2024-01-01", "2024-01-02"]
    assert report["by_user"][0] == {
        "user": {"id": str(USER_A), "name": "Ana"},
        "total_hours": Decimal("3.5"),
        "entries": 2,
    }
    assert report["by_project"][0]["total_hours"] == Decimal("5")
    assert report["by_project"][1]["project"] == {"id": "unknown", "name": "Unknown"}
    assert report["summary"] == {
        "total_hours": Decimal("6.5"),
        "total_entries": 3,
        "average_hours_per_entry": Decimal("2.17"),
    }


def test_financial_trends_continuous_series_and_forecast() -> None:
    time_range = TimeRange(_at(2024, 1, 10), _at(2024, 3, 20))
    revenues = [
        _revenue("1000", _at(2024, 1, 15)),
        _revenue("1200", _at(2024, 3, 2), tax_amount=Decimal("100")),
    ]
    expenses = [_expense("400", _at(2024, 1, 20)), _expense("200", _at(2024, 2, 11))]

    report = financial_trends(revenues, expenses, time_range=time_range)

    assert report["time_series"] == [
        {
            "period_key": "2024-01",
            "revenue": Decimal("1000"),
            "expenses": Decimal("400"),
            "profit": Decimal("600"),
            "profit_margin": Decimal("60.00"),
        },
        {
            "period_key": "2024-02",
            "revenue": Decimal("0"),
            "expenses": Decimal("200"),
            "profit": Decimal("-200"),
            "profit_margin": Decimal("0"),
        },
        {
            "period_key": "2024-03",
            "revenue": Decimal("1300"),
            "expenses": Decimal("0"),
            "profit": Decimal("1300"),
            "profit_margin": Decimal("100.00"),
        },
    ]
    assert [row["month"] for row in report["forecast"]] == [
        "2024-04",
        "2024-05",
        "2024-06",
        "2024-07",
        "2024-08",
        "2024-09",
    ]
    assert report["forecast"][0]["projected"] == Decimal("1450")
    assert report["forecast"][5]["projected"] == Decimal("2200")
    assert report["summary"] == {
        "total_revenue": Decimal("2300"),
        "total_expenses": Decimal("600"),
        "net_profit": Decimal("1700"),
        "average_monthly_growth": Decimal("150.00"),
    }


def test_resource_utilization_against_expected_hours() -> None:
    users = [
        UserRecord(id=USER_A, name="Ana", email="ana@example.com", role="MEMBER"),
        UserRecord(id=USER_B, name="Ben", email="ben@example.com", role="MANAGER"),
    ]
    entries = [_entry("12", _at(2024, 1, 2)), _entry("8", _at(2024, 1, 3))]
    tasks = [
        _task(TaskStatus.DONE, TaskPriority.LOW, assignee_id=USER_A),
        _task(TaskStatus.REVIEW, TaskPriority.LOW, assignee_id=USER_A),
    ]

    report = resource_utilization(users, entries, tasks, time_range=TimeRange(_at(2024, 1, 1), _at(2024, 1, 11)))

    ana, ben = report["users"]
    assert ana["metrics"] == {
        "total_hours": Decimal("20"),
        "expected_hours": Decimal("80"),
        "utilization_rate": Decimal("25.00"),
        "active_tasks": 1,
        "completed_tasks": 1,
        "total_tasks": 2,
    }
    assert ben["metrics"]["utilization_rate"] == Decimal("0")
    assert report["summary"] == {
        "total_users": 2,
        "average_utilization": Decimal("12.50"),
        "total_hours": Decimal("20"),
    }


def test_reports_are_idempotent() -> None:
    revenues = [_revenue("10", _at(2024, 1, 1)), _revenue("20", _at(2024, 1, 9), client_name="Acme")]
    tasks = _team_tasks()

    assert revenue_analysis(revenues, granularity=Granularity.WEEK) == revenue_analysis(
        revenues, granularity=Granularity.WEEK
    )
    assert team_productivity(tasks) == team_productivity(tasks)
    assert task_completion_rate(tasks, as_of=_at(2024, 2, 1)) == task_completion_rate(tasks, as_of=_at(2024, 2, 1))
