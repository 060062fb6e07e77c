"""Custom report endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from crm_analytics.db.dependencies import get_db_session
from crm_analytics.reporting.periods import Granularity
from crm_analytics.reporting.sources import FilterSet
from crm_analytics.services.reporting_service import ReportingService

router = APIRouter(prefix="/reports", tags=["reports"])


class DateRangePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_from: datetime | None = Field(default=None, alias="from")
    date_to: datetime | None = Field(default=None, alias="to")


class FiltersPayload(BaseModel):
    client_ids: list[UUID] = Field(default_factory=list)
    project_ids: list[UUID] = Field(default_factory=list)
    user_ids: list[UUID] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    statuses: list[str] = Field(default_factory=list)
    priorities: list[str] = Field(default_factory=list)

    def to_filter_set(self) -> FilterSet:
        return FilterSet(
            client_ids=tuple(self.client_ids),
            project_ids=tuple(self.project_ids),
            user_ids=tuple(self.user_ids),
            categories=tuple(self.categories),
            statuses=tuple(self.statuses),
            priorities=tuple(self.priorities),
        )


class CustomReportParametersPayload(BaseModel):
    date_range: DateRangePayload = Field(default_factory=DateRangePayload)
    filters: FiltersPayload = Field(default_factory=FiltersPayload)
    group_by: Granularity = Granularity.DAY
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int | None = Field(default=None, ge=1, le=1000)


class CustomReportPayload(BaseModel):
    report_type: str = Field(min_length=1, max_length=64)
    parameters: CustomReportParametersPayload = Field(default_factory=CustomReportParametersPayload)


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.post("/custom")
def custom_report(
    payload: CustomReportPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    parameters = payload.parameters
    return service.custom_report(
        report_type=payload.report_type,
        date_from=parameters.date_range.date_from,
        date_to=parameters.date_range.date_to,
        group_by=parameters.group_by,
        filters=parameters.filters.to_filter_set(),
        sort_by=parameters.sort_by,
        sort_order=parameters.sort_order,
        limit=parameters.limit,
    )
