"""Reporting and analytics aggregation engine."""

from crm_analytics.reporting.engine import (
    AnalyticsReportType,
    CustomReportType,
    DashboardWidget,
    ReportParameters,
    run_analytics_report,
    run_custom_report,
    run_dashboard,
)
from crm_analytics.reporting.errors import (
    InvalidDashboardWidget,
    InvalidDateRange,
    InvalidReportType,
    InvalidSortField,
    ReportingError,
    UnsupportedExportFormat,
)
from crm_analytics.reporting.periods import Granularity, TimeRange, resolve_time_range
from crm_analytics.reporting.sources import FilterSet, InMemoryRecordSource, RecordSource

__all__ = [
    "AnalyticsReportType",
    "CustomReportType",
    "DashboardWidget",
    "FilterSet",
    "Granularity",
    "InMemoryRecordSource",
    "InvalidDashboardWidget",
    "InvalidDateRange",
    "InvalidReportType",
    "InvalidSortField",
    "RecordSource",
    "ReportParameters",
    "ReportingError",
    "TimeRange",
    "UnsupportedExportFormat",
    "resolve_time_range",
    "run_analytics_report",
    "run_custom_report",
    "run_dashboard",
]
