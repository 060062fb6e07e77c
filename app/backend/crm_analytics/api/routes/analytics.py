"""Analytics report endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm_analytics.api.filters import report_filters
from crm_analytics.db.dependencies import get_db_session
from crm_analytics.reporting.periods import Granularity
from crm_analytics.reporting.sources import FilterSet
from crm_analytics.services.reporting_service import ReportingService

router = APIRouter(prefix="/reports", tags=["reports"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/analytics")
def analytics_report(
    report_type: str = Query(..., min_length=1),
    date_range: str | None = Query(default=None),
    date_from: str | None = Query(default=None),
    date_to: str | None = Query(default=None),
    group_by: Granularity = Query(default=Granularity.DAY),
    metric: list[str] | None = Query(default=None),
    filters: FilterSet = Depends(report_filters),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.analytics_report(
        report_type=report_type,
        date_range=date_range,
        date_from=date_from,
        date_to=date_to,
        group_by=group_by,
        filters=filters,
        metrics=metric,
    )
