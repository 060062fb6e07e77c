"""Record source backed by the relational store."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from crm_analytics.models.entities import Budget, Client, Expense, Project, Revenue, Task, TimeEntry, User, UserRole
from crm_analytics.reporting.periods import TimeRange, as_utc
from crm_analytics.reporting.records import (
    ZERO,
    BudgetRecord,
    ClientRecord,
    ClientStatus,
    ExpenseRecord,
    ProjectRecord,
    RevenueRecord,
    TaskRecord,
    TimeEntryRecord,
    UserRecord,
)
from crm_analytics.reporting.sources import FilterSet


def _money(value: Decimal | None) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def _moment(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


class ReportingRepository:
    """Read-only queries that turn ORM rows into engine records."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Label lookups ----------
    def _names(self, model: type[Client] | type[Project], ids: Iterable[UUID | None]) -> dict[UUID, str]:
        wanted = {value for value in ids if value is not None}
        if not wanted:
            return {}
        rows = self.db.execute(select(model.id, model.name).where(model.id.in_(list(wanted)))).all()
        return {row.id: row.name for row in rows}

    def _users_by_id(self, ids: Iterable[UUID | None]) -> dict[UUID, User]:
        wanted = {value for value in ids if value is not None}
        if not wanted:
            return {}
        return {user.id: user for user in self.db.scalars(select(User).where(User.id.in_(list(wanted)))).all()}

    # ---------- Money ----------
    @staticmethod
    def _monetary_query(
        model: type[Revenue] | type[Expense],
        time_range: TimeRange,
        filters: FilterSet,
    ) -> Select:
        query = select(model).where(model.date.between(as_utc(time_range.start), as_utc(time_range.end)))
        if filters.client_ids:
            query = query.where(model.client_id.in_(filters.client_ids))
        if filters.project_ids:
            query = query.where(model.project_id.in_(filters.project_ids))
        if filters.user_ids:
            query = query.where(model.user_id.in_(filters.user_ids))
        if filters.categories:
            query = query.where(model.category.in_(filters.categories))
        if filters.statuses:
            query = query.where(model.status.in_(filters.statuses))
        return query.order_by(model.date.asc(), model.id.asc())

    def _monetary_records(
        self,
        model: type[Revenue] | type[Expense],
        record_cls: type[RevenueRecord] | type[ExpenseRecord],
        time_range: TimeRange,
        filters: FilterSet,
    ) -> list:
        rows = self.db.scalars(self._monetary_query(model, time_range, filters)).all()
        client_names = self._names(Client, (row.client_id for row in rows))
        project_names = self._names(Project, (row.project_id for row in rows))
        users = self._users_by_id(row.user_id for row in rows)
        return [
            record_cls(
                id=row.id,
                amount=_money(row.amount),
                tax_amount=_money(row.tax_amount),
                date=as_utc(row.date),
                category=row.category,
                status=row.status,
                client_id=row.client_id,
                client_name=client_names.get(row.client_id),
                project_id=row.project_id,
                project_name=project_names.get(row.project_id),
                user_id=row.user_id,
                user_name=users[row.user_id].name if row.user_id in users else None,
                description=row.description,
            )
            for row in rows
        ]

    def revenues(self, time_range: TimeRange, filters: FilterSet) -> list[RevenueRecord]:
        return self._monetary_records(Revenue, RevenueRecord, time_range, filters)

    def expenses(self, time_range: TimeRange, filters: FilterSet) -> list[ExpenseRecord]:
        return self._monetary_records(Expense, ExpenseRecord, time_range, filters)

    # ---------- Tasks and time ----------
    def _time_entry_rows(
        self,
        *,
        task_ids: Iterable[UUID] | None = None,
        time_range: TimeRange | None = None,
        filters: FilterSet | None = None,
    ) -> list[tuple[TimeEntry, UUID | None]]:
        query = select(TimeEntry, Task.project_id).join(Task, Task.id == TimeEntry.task_id)
        if task_ids is not None:
            query = query.where(TimeEntry.task_id.in_(list(task_ids)))
        if time_range is not None:
            query = query.where(TimeEntry.date.between(as_utc(time_range.start), as_utc(time_range.end)))
        if filters is not None:
            if filters.project_ids:
                query = query.where(Task.project_id.in_(filters.project_ids))
            if filters.user_ids:
                query = query.where(TimeEntry.user_id.in_(filters.user_ids))
        rows = self.db.execute(query.order_by(TimeEntry.date.asc(), TimeEntry.id.asc())).all()
        return [(row[0], row[1]) for row in rows]

    def _time_entry_records(self, rows: list[tuple[TimeEntry, UUID | None]]) -> list[TimeEntryRecord]:
        project_names = self._names(Project, (project_id for _, project_id in rows))
        users = self._users_by_id(entry.user_id for entry, _ in rows)
        return [
            TimeEntryRecord(
                id=entry.id,
                hours=_money(entry.hours),
                date=as_utc(entry.date),
                user_id=entry.user_id,
                task_id=entry.task_id,
                user_name=users[entry.user_id].name if entry.user_id in users else None,
                project_id=project_id,
                project_name=project_names.get(project_id),
            )
            for entry, project_id in rows
        ]

    def _task_records(self, tasks: list[Task], entries_in: TimeRange | None = None) -> list[TaskRecord]:
        if not tasks:
            return []
        entries = self._time_entry_records(
            self._time_entry_rows(task_ids=[task.id for task in tasks], time_range=entries_in)
        )
        entries_by_task: dict[UUID, list[TimeEntryRecord]] = {}
        for entry in entries:
            entries_by_task.setdefault(entry.task_id, []).append(entry)

        assignees = self._users_by_id(task.assignee_id for task in tasks)
        project_names = self._names(Project, (task.project_id for task in tasks))
        records = []
        for task in tasks:
            assignee = assignees.get(task.assignee_id)
            records.append(
                TaskRecord(
                    id=task.id,
                    title=task.title,
                    status=task.status,
                    priority=task.priority,
                    created_at=as_utc(task.created_at),
                    assignee_id=task.assignee_id,
                    assignee_name=assignee.name if assignee is not None else None,
                    assignee_email=assignee.email if assignee is not None else None,
                    project_id=task.project_id,
                    project_name=project_names.get(task.project_id),
                    due_date=_moment(task.due_date),
                    completed_at=_moment(task.completed_at),
                    time_entries=tuple(entries_by_task.get(task.id, [])),
                )
            )
        return records

    def tasks(self, time_range: TimeRange, filters: FilterSet) -> list[TaskRecord]:
        query = select(Task).where(Task.created_at.between(as_utc(time_range.start), as_utc(time_range.end)))
        if filters.project_ids:
            query = query.where(Task.project_id.in_(filters.project_ids))
        if filters.user_ids:
            query = query.where(Task.assignee_id.in_(filters.user_ids))
        if filters.statuses:
            query = query.where(Task.status.in_(filters.statuses))
        if filters.priorities:
            query = query.where(Task.priority.in_(filters.priorities))
        tasks = self.db.scalars(query.order_by(Task.created_at.asc(), Task.id.asc())).all()
        return self._task_records(list(tasks))

    def time_entries(self, time_range: TimeRange, filters: FilterSet) -> list[TimeEntryRecord]:
        return self._time_entry_records(self._time_entry_rows(time_range=time_range, filters=filters))

    # ---------- Projects ----------
    def projects(
        self,
        filters: FilterSet,
        *,
        created_in: TimeRange | None = None,
        entries_in: TimeRange | None = None,
    ) -> list[ProjectRecord]:
        query = select(Project)
        if created_in is not None:
            query = query.where(Project.created_at.between(as_utc(created_in.start), as_utc(created_in.end)))
        if filters.client_ids:
            query = query.where(Project.client_id.in_(filters.client_ids))
        if filters.project_ids:
            query = query.where(Project.id.in_(filters.project_ids))
        if filters.statuses:
            query = query.where(Project.status.in_(filters.statuses))
        projects = self.db.scalars(query.order_by(Project.created_at.asc(), Project.id.asc())).all()
        if not projects:
            return []

        project_ids = [project.id for project in projects]
        tasks = self.db.scalars(
            select(Task).where(Task.project_id.in_(project_ids)).order_by(Task.created_at.asc(), Task.id.asc())
        ).all()
        tasks_by_project: dict[UUID, list[TaskRecord]] = {}
        for task in self._task_records(list(tasks), entries_in=entries_in):
            tasks_by_project.setdefault(task.project_id, []).append(task)

        client_names = self._names(Client, (project.client_id for project in projects))
        return [
            ProjectRecord(
                id=project.id,
                name=project.name,
                status=project.status,
                created_at=as_utc(project.created_at),
                start_date=_moment(project.start_date),
                end_date=_moment(project.end_date),
                client_id=project.client_id,
                client_name=client_names.get(project.client_id),
                tasks=tuple(tasks_by_project.get(project.id, [])),
            )
            for project in projects
        ]

    # ---------- Budgets, clients, users ----------
    def budgets(self, filters: FilterSet, *, overlapping: TimeRange | None = None) -> list[BudgetRecord]:
        query = select(Budget)
        if overlapping is not None:
            query = query.where(
                Budget.start_date <= as_utc(overlapping.end),
                Budget.end_date >= as_utc(overlapping.start),
            )
        if filters.client_ids:
            query = query.where(Budget.client_id.in_(filters.client_ids))
        if filters.project_ids:
            query = query.where(Budget.project_id.in_(filters.project_ids))
        budgets = self.db.scalars(query.order_by(Budget.start_date.asc(), Budget.id.asc())).all()
        client_names = self._names(Client, (budget.client_id for budget in budgets))
        project_names = self._names(Project, (budget.project_id for budget in budgets))
        return [
            BudgetRecord(
                id=budget.id,
                name=budget.name,
                total_amount=_money(budget.total_amount),
                start_date=as_utc(budget.start_date),
                end_date=as_utc(budget.end_date),
                project_id=budget.project_id,
                project_name=project_names.get(budget.project_id),
                client_id=budget.client_id,
                client_name=client_names.get(budget.client_id),
                categories=tuple(budget.categories or ()),
            )
            for budget in budgets
        ]

    def clients(self, filters: FilterSet, *, active_only: bool = False) -> list[ClientRecord]:
        query = select(Client)
        if filters.client_ids:
            query = query.where(Client.id.in_(filters.client_ids))
        if active_only:
            query = query.where(Client.status == ClientStatus.ACTIVE)
        elif filters.statuses:
            query = query.where(Client.status.in_(filters.statuses))
        clients = self.db.scalars(query.order_by(Client.name.asc(), Client.id.asc())).all()
        return [
            ClientRecord(
                id=client.id,
                name=client.name,
                company=client.company,
                email=client.email,
                status=client.status,
            )
            for client in clients
        ]

    def users(self, filters: FilterSet) -> list[UserRecord]:
        query = select(User).where(User.is_active.is_(True), User.role != UserRole.CLIENT)
        if filters.user_ids:
            query = query.where(User.id.in_(filters.user_ids))
        users = self.db.scalars(query.order_by(User.name.asc(), User.id.asc())).all()
        return [UserRecord(id=user.id, name=user.name, email=user.email, role=user.role.value) for user in users]
