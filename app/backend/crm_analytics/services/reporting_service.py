"""Report orchestration for the HTTP layer: parameters in, JSON-ready envelopes out."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from crm_analytics.core.config import Settings, get_settings
from crm_analytics.reporting.engine import (
    ReportParameters,
    parse_custom_type,
    primary_rows,
    run_analytics_report,
    run_custom_report,
    run_dashboard,
)
from crm_analytics.reporting.errors import InvalidReportType, ReportingError
from crm_analytics.reporting.exports import ExportFilePayload, export_rows, normalize_format
from crm_analytics.reporting.periods import DateRangePreset, Granularity, TimeRange, resolve_time_range
from crm_analytics.reporting.serialization import to_jsonable
from crm_analytics.reporting.sources import FilterSet
from crm_analytics.repositories.reporting_repository import ReportingRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _http_error(exc: ReportingError) -> HTTPException:
    if isinstance(exc, InvalidReportType):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


class ReportingService:
    """Analytics, custom report and export use-cases over the reporting repository."""

    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock
        self.source = ReportingRepository(db)

    def _parameters(
        self,
        *,
        time_range: TimeRange,
        now: datetime,
        group_by: Granularity,
        filters: FilterSet,
        metrics: list[str] | None = None,
        sort_by: str | None = None,
        sort_order: str = "desc",
        limit: int | None = None,
    ) -> ReportParameters:
        return ReportParameters(
            time_range=time_range,
            as_of=now,
            granularity=group_by,
            filters=filters,
            metrics=tuple(metrics or ()),
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            week_start=self.settings.report_week_start,
            top_limit=self.settings.report_top_n,
            forecast_periods=self.settings.report_forecast_periods,
            hours_per_day=self.settings.report_expected_hours_per_day,
        )

    def _implied_preset(self, date_from: str | None, date_to: str | None) -> str:
        if date_from is not None or date_to is not None:
            return DateRangePreset.CUSTOM.value
        return self.settings.report_default_date_range

    def _custom_time_range(self, now: datetime, date_from: datetime | None, date_to: datetime | None) -> TimeRange:
        if date_from is None and date_to is None:
            return resolve_time_range(self.settings.report_default_date_range, now=now)
        return resolve_time_range(DateRangePreset.CUSTOM, now=now, date_from=date_from, date_to=date_to)

    # ---------- Analytics ----------
    def analytics_report(
        self,
        *,
        report_type: str,
        date_range: str | None,
        date_from: str | None,
        date_to: str | None,
        group_by: Granularity,
        filters: FilterSet,
        metrics: list[str] | None,
    ) -> dict[str, object]:
        now = self.clock()
        preset = date_range or self._implied_preset(date_from, date_to)
        try:
            time_range = resolve_time_range(preset, now=now, date_from=date_from, date_to=date_to)
            params = self._parameters(
                time_range=time_range, now=now, group_by=group_by, filters=filters, metrics=metrics
            )
            data = run_analytics_report(report_type, params, self.source)
        except ReportingError as exc:
            logger.warning("Rejected analytics report %r: %s", report_type, exc)
            raise _http_error(exc) from exc

        logger.info("Generated analytics report %s for %s..%s", report_type, time_range.start, time_range.end)
        return to_jsonable(
            {
                "report_type": report_type,
                "date_range": {"from": time_range.start, "to": time_range.end, "period": preset},
                "group_by": group_by,
                "filters": filters.as_dict(),
                "metrics": list(params.metrics),
                "generated_at": now,
                "data": data,
            }
        )

    # ---------- Custom ----------
    def _build_custom(
        self,
        *,
        report_type: str,
        date_from: datetime | None,
        date_to: datetime | None,
        group_by: Granularity,
        filters: FilterSet,
        sort_by: str | None,
        sort_order: str,
        limit: int | None,
    ) -> tuple[datetime, ReportParameters, dict[str, object]]:
        now = self.clock()
        time_range = self._custom_time_range(now, date_from, date_to)
        params = self._parameters(
            time_range=time_range,
            now=now,
            group_by=group_by,
            filters=filters,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
        )
        return now, params, run_custom_report(report_type, params, self.source)

    def custom_report(
        self,
        *,
        report_type: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        group_by: Granularity = Granularity.DAY,
        filters: FilterSet | None = None,
        sort_by: str | None = None,
        sort_order: str = "desc",
        limit: int | None = None,
    ) -> dict[str, object]:
        filters = filters or FilterSet()
        try:
            now, params, data = self._build_custom(
                report_type=report_type,
                date_from=date_from,
                date_to=date_to,
                group_by=group_by,
                filters=filters,
                sort_by=sort_by,
                sort_order=sort_order,
                limit=limit,
            )
        except ReportingError as exc:
            logger.warning("Rejected custom report %r: %s", report_type, exc)
            raise _http_error(exc) from exc

        logger.info(
            "Generated custom report %s with %d primary rows", report_type, len(primary_rows(report_type, data))
        )
        return to_jsonable(
            {
                "report_type": report_type,
                "generated_at": now,
                "date_range": {"from": params.time_range.start, "to": params.time_range.end},
                "parameters": {
                    "group_by": group_by,
                    "filters": filters.as_dict(),
                    "sort_by": sort_by,
                    "sort_order": sort_order,
                    "limit": limit,
                },
                "data": data,
            }
        )

    # ---------- Dashboard ----------
    def dashboard(
        self,
        *,
        widgets: list[str] | None,
        date_range: str | None,
        date_from: str | None,
        date_to: str | None,
        filters: FilterSet,
    ) -> dict[str, object]:
        now = self.clock()
        preset = date_range or self._implied_preset(date_from, date_to)
        try:
            time_range = resolve_time_range(preset, now=now, date_from=date_from, date_to=date_to)
            params = self._parameters(time_range=time_range, now=now, group_by=Granularity.DAY, filters=filters)
            data = run_dashboard(widgets, params, self.source)
        except ReportingError as exc:
            logger.warning("Rejected dashboard %r: %s", widgets, exc)
            raise _http_error(exc) from exc

        logger.info("Generated dashboard with %d widgets for %s..%s", len(data), time_range.start, time_range.end)
        return to_jsonable(
            {
                "date_range": {"from": time_range.start, "to": time_range.end, "period": preset},
                "filters": filters.as_dict(),
                "generated_at": now,
                "widgets": data,
            }
        )

    # ---------- Exports ----------
    def export_report(
        self,
        *,
        report_type: str,
        format_name: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        group_by: Granularity = Granularity.DAY,
        filters: FilterSet | None = None,
        sort_by: str | None = None,
        sort_order: str = "desc",
        limit: int | None = None,
    ) -> ExportFilePayload:
        try:
            normalize_format(format_name)
            resolved = parse_custom_type(report_type)
            _, params, data = self._build_custom(
                report_type=resolved.value,
                date_from=date_from,
                date_to=date_to,
                group_by=group_by,
                filters=filters or FilterSet(),
                sort_by=sort_by,
                sort_order=sort_order,
                limit=limit,
            )
            rows = primary_rows(resolved, data)
            report_name = f"{resolved.value}-{params.time_range.start:%Y%m%d}-{params.time_range.end:%Y%m%d}"
            exported = export_rows(report_name, rows, format_name)
        except ReportingError as exc:
            logger.warning("Rejected export of %r as %r: %s", report_type, format_name, exc)
            raise _http_error(exc) from exc

        logger.info("Exported %s report as %s (%d rows)", resolved.value, exported.filename, len(rows))
        return exported
