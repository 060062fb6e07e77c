"""Query-string filter parameters shared by report endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import Query

from crm_analytics.reporting.sources import FilterSet


def report_filters(
    client_id: list[UUID] | None = Query(default=None),
    project_id: list[UUID] | None = Query(default=None),
    user_id: list[UUID] | None = Query(default=None),
    category: list[str] | None = Query(default=None),
    status: list[str] | None = Query(default=None),
    priority: list[str] | None = Query(default=None),
) -> FilterSet:
    return FilterSet(
        client_ids=tuple(client_id or ()),
        project_ids=tuple(project_id or ()),
        user_ids=tuple(user_id or ()),
        categories=tuple(category or ()),
        statuses=tuple(status or ()),
        priorities=tuple(priority or ()),
    )
