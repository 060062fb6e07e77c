"""ORM model package."""

from crm_analytics.models.entities import (
    Budget,
    Client,
    Expense,
    Project,
    Revenue,
    Task,
    TimeEntry,
    User,
    UserRole,
)

__all__ = [
    "Budget",
    "Client",
    "Expense",
    "Project",
    "Revenue",
    "Task",
    "TimeEntry",
    "User",
    "UserRole",
]
