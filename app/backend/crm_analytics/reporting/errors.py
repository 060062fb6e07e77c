"""Domain errors raised while validating report parameters."""

from __future__ import annotations


class ReportingError(Exception):
    """Base class for report parameter failures surfaced to the caller."""


class InvalidReportType(ReportingError):
    def __init__(self, report_type: str) -> None:
        super().__init__(f"Invalid report type: {report_type!r}.")
        self.report_type = report_type


class InvalidDateRange(ReportingError):
    pass


class UnsupportedExportFormat(ReportingError):
    def __init__(self, format_name: str) -> None:
        super().__init__("format must be one of: csv, xlsx.")
        self.format_name = format_name


class InvalidSortField(ReportingError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"Cannot sort rows by {field_name!r}: it does not hold a single comparable value.")
        self.field_name = field_name


class InvalidDashboardWidget(InvalidReportType):
    def __init__(self, widget: str) -> None:
        ReportingError.__init__(self, f"Invalid dashboard widget: {widget!r}.")
        self.report_type = widget
