"""Export endpoint for custom report datasets."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from crm_analytics.api.filters import report_filters
from crm_analytics.db.dependencies import get_db_session
from crm_analytics.reporting.periods import Granularity
from crm_analytics.reporting.sources import FilterSet
from crm_analytics.services.reporting_service import ReportingService

router = APIRouter(prefix="/exports", tags=["exports"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/{report_type}")
def export_report(
    report_type: str,
    format: str = Query(default="xlsx"),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    group_by: Granularity = Query(default=Granularity.DAY),
    sort_by: str | None = Query(default=None),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    limit: int | None = Query(default=None, ge=1, le=1000),
    filters: FilterSet = Depends(report_filters),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _service(db)
    exported = service.export_report(
        report_type=report_type,
        format_name=format,
        date_from=date_from,
        date_to=date_to,
        group_by=group_by,
        filters=filters,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
