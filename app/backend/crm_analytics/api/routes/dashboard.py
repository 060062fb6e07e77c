"""Dashboard widgets endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm_analytics.api.filters import report_filters
from crm_analytics.db.dependencies import get_db_session
from crm_analytics.reporting.sources import FilterSet
from crm_analytics.services.reporting_service import ReportingService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard")
def dashboard(
    widgets: list[str] | None = Query(default=None),
    date_range: str | None = Query(default=None),
    date_from: str | None = Query(default=None),
    date_to: str | None = Query(default=None),
    filters: FilterSet = Depends(report_filters),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return ReportingService(db).dashboard(
        widgets=widgets,
        date_range=date_range,
        date_from=date_from,
        date_to=date_to,
        filters=filters,
    )
