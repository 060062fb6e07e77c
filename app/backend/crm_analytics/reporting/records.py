"""Immutable record snapshots consumed by the aggregation engine.

Records are plain dataclasses produced by a record source. They carry the
identifiers the engine groups on and the display labels the source resolved,
so the engine never has to look anything up on its own.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

ZERO = Decimal("0.00")


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ProjectStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ClientStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PROSPECT = "PROSPECT"
    CHURNED = "CHURNED"


@dataclass(frozen=True, slots=True)
class MonetaryRecord:
    id: UUID
    amount: Decimal
    tax_amount: Decimal
    date: datetime
    category: str
    status: str
    client_id: UUID | None = None
    client_name: str | None = None
    project_id: UUID | None = None
    project_name: str | None = None
    user_id: UUID | None = None
    user_name: str | None = None
    description: str | None = None

    @property
    def effective_value(self) -> Decimal:
        return self.amount + self.tax_amount


@dataclass(frozen=True, slots=True)
class RevenueRecord(MonetaryRecord):
    pass


@dataclass(frozen=True, slots=True)
class ExpenseRecord(MonetaryRecord):
    pass


@dataclass(frozen=True, slots=True)
class TimeEntryRecord:
    id: UUID
    hours: Decimal
    date: datetime
    user_id: UUID
    task_id: UUID
    user_name: str | None = None
    project_id: UUID | None = None
    project_name: str | None = None


@dataclass(frozen=True, slots=True)
class TaskRecord:
    id: UUID
    title: str
    status: TaskStatus
    priority: TaskPriority
    created_at: datetime
    assignee_id: UUID | None = None
    assignee_name: str | None = None
    assignee_email: str | None = None
    project_id: UUID | None = None
    project_name: str | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    time_entries: tuple[TimeEntryRecord, ...] = ()

    @property
    def is_done(self) -> bool:
        return self.status is TaskStatus.DONE

    @property
    def total_hours(self) -> Decimal:
        return sum((entry.hours for entry in self.time_entries), ZERO)


@dataclass(frozen=True, slots=True)
class ProjectRecord:
    id: UUID
    name: str
    status: ProjectStatus
    created_at: datetime
    start_date: datetime | None = None
    end_date: datetime | None = None
    client_id: UUID | None = None
    client_name: str | None = None
    tasks: tuple[TaskRecord, ...] = ()


@dataclass(frozen=True, slots=True)
class BudgetRecord:
    id: UUID
    name: str
    total_amount: Decimal
    start_date: datetime
    end_date: datetime
    project_id: UUID | None = None
    project_name: str | None = None
    client_id: UUID | None = None
    client_name: str | None = None
    categories: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class ClientRecord:
    id: UUID
    name: str
    company: str | None = None
    email: str | None = None
    status: ClientStatus = ClientStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: UUID
    name: str
    email: str | None = None
    role: str | None = None
