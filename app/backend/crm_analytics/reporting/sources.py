"""Record source contract and an in-memory implementation.

A record source is the only thing that knows where records live. It applies
the date window and the filter set and hands the engine plain lists.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Protocol
from uuid import UUID

from crm_analytics.reporting.periods import TimeRange, as_utc
from crm_analytics.reporting.records import (
    BudgetRecord,
    ClientRecord,
    ClientStatus,
    ExpenseRecord,
    MonetaryRecord,
    ProjectRecord,
    RevenueRecord,
    TaskRecord,
    TimeEntryRecord,
    UserRecord,
)

CLIENT_ROLE = "CLIENT"


@dataclass(frozen=True, slots=True)
class FilterSet:
    client_ids: tuple[UUID, ...] = ()
    project_ids: tuple[UUID, ...] = ()
    user_ids: tuple[UUID, ...] = ()
    categories: tuple[str, ...] = ()
    statuses: tuple[str, ...] = ()
    priorities: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, list[str]]:
        return {
            "client_ids": [str(value) for value in self.client_ids],
            "project_ids": [str(value) for value in self.project_ids],
            "user_ids": [str(value) for value in self.user_ids],
            "categories": list(self.categories),
            "statuses": list(self.statuses),
            "priorities": list(self.priorities),
        }


def allows(selected: Collection[object], value: object) -> bool:
    """An empty selection allows everything; otherwise the value must be selected."""

    return not selected or value in selected


def enum_value(value: object) -> object:
    return getattr(value, "value", value)


class RecordSource(Protocol):
    """What a report needs from storage.

    Every method returns records already narrowed by the given window and by
    whichever filters apply to that entity.
    """

    def revenues(self, time_range: TimeRange, filters: FilterSet) -> list[RevenueRecord]: ...

    def expenses(self, time_range: TimeRange, filters: FilterSet) -> list[ExpenseRecord]: ...

    def projects(
        self,
        filters: FilterSet,
        *,
        created_in: TimeRange | None = None,
        entries_in: TimeRange | None = None,
    ) -> list[ProjectRecord]: ...

    def tasks(self, time_range: TimeRange, filters: FilterSet) -> list[TaskRecord]: ...

    def time_entries(self, time_range: TimeRange, filters: FilterSet) -> list[TimeEntryRecord]: ...

    def budgets(self, filters: FilterSet, *, overlapping: TimeRange | None = None) -> list[BudgetRecord]: ...

    def clients(self, filters: FilterSet, *, active_only: bool = False) -> list[ClientRecord]: ...

    def users(self, filters: FilterSet) -> list[UserRecord]: ...


class InMemoryRecordSource:
    """Record source over lists held in memory, used by tests and scripted runs."""

    def __init__(
        self,
        *,
        revenues: Iterable[RevenueRecord] = (),
        expenses: Iterable[ExpenseRecord] = (),
        projects: Iterable[ProjectRecord] = (),
        tasks: Iterable[TaskRecord] = (),
        time_entries: Iterable[TimeEntryRecord] = (),
        budgets: Iterable[BudgetRecord] = (),
        clients: Iterable[ClientRecord] = (),
        users: Iterable[UserRecord] = (),
    ) -> None:
        self._revenues = tuple(revenues)
        self._expenses = tuple(expenses)
        self._projects = tuple(projects)
        self._tasks = tuple(tasks)
        self._time_entries = tuple(time_entries)
        self._budgets = tuple(budgets)
        self._clients = tuple(clients)
        self._users = tuple(users)

    def _monetary(self, records: Sequence[MonetaryRecord], time_range: TimeRange, filters: FilterSet) -> list:
        return [
            record
            for record in records
            if time_range.contains(record.date)
            and allows(filters.client_ids, record.client_id)
            and allows(filters.project_ids, record.project_id)
            and allows(filters.user_ids, record.user_id)
            and allows(filters.categories, record.category)
            and allows(filters.statuses, record.status)
        ]

    def revenues(self, time_range: TimeRange, filters: FilterSet) -> list[RevenueRecord]:
        return self._monetary(self._revenues, time_range, filters)

    def expenses(self, time_range: TimeRange, filters: FilterSet) -> list[ExpenseRecord]:
        return self._monetary(self._expenses, time_range, filters)

    def projects(
        self,
        filters: FilterSet,
        *,
        created_in: TimeRange | None = None,
        entries_in: TimeRange | None = None,
    ) -> list[ProjectRecord]:
        projects = []
        for project in self._projects:
            if created_in is not None and not created_in.contains(project.created_at):
                continue
            if not (
                allows(filters.client_ids, project.client_id)
                and allows(filters.project_ids, project.id)
                and allows(filters.statuses, enum_value(project.status))
            ):
                continue
            if entries_in is not None:
                project = replace(
                    project,
                    tasks=tuple(
                        replace(
                            task,
                            time_entries=tuple(e for e in task.time_entries if entries_in.contains(e.date)),
                        )
                        for task in project.tasks
                    ),
                )
            projects.append(project)
        return projects

    def tasks(self, time_range: TimeRange, filters: FilterSet) -> list[TaskRecord]:
        return [
            task
            for task in self._tasks
            if time_range.contains(task.created_at)
            and allows(filters.project_ids, task.project_id)
            and allows(filters.user_ids, task.assignee_id)
            and allows(filters.statuses, enum_value(task.status))
            and allows(filters.priorities, enum_value(task.priority))
        ]

    def time_entries(self, time_range: TimeRange, filters: FilterSet) -> list[TimeEntryRecord]:
        return [
            entry
            for entry in self._time_entries
            if time_range.contains(entry.date)
            and allows(filters.project_ids, entry.project_id)
            and allows(filters.user_ids, entry.user_id)
        ]

    def budgets(self, filters: FilterSet, *, overlapping: TimeRange | None = None) -> list[BudgetRecord]:
        budgets = []
        for budget in self._budgets:
            if overlapping is not None and (
                as_utc(budget.start_date) > as_utc(overlapping.end)
                or as_utc(budget.end_date) < as_utc(overlapping.start)
            ):
                continue
            if allows(filters.client_ids, budget.client_id) and allows(filters.project_ids, budget.project_id):
                budgets.append(budget)
        return budgets

    def clients(self, filters: FilterSet, *, active_only: bool = False) -> list[ClientRecord]:
        statuses = (ClientStatus.ACTIVE.value,) if active_only else filters.statuses
        return [
            client
            for client in self._clients
            if allows(filters.client_ids, client.id) and allows(statuses, enum_value(client.status))
        ]

    def users(self, filters: FilterSet) -> list[UserRecord]:
        return [
            user
            for user in self._users
            if user.role != CLIENT_ROLE and allows(filters.user_ids, user.id)
        ]
