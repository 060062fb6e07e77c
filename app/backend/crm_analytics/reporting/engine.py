"""Report dispatch: validate the report type, fetch its records, run its composer."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, time, timezone

from crm_analytics.reporting import analytics, custom_reports, dashboard
from crm_analytics.reporting.aggregation import DEFAULT_TOP_N
from crm_analytics.reporting.errors import InvalidDashboardWidget, InvalidReportType
from crm_analytics.reporting.forecast import DEFAULT_FORECAST_PERIODS
from crm_analytics.reporting.periods import SUNDAY, Granularity, TimeRange, as_utc_date
from crm_analytics.reporting.records import BudgetRecord, ClientRecord, ExpenseRecord
from crm_analytics.reporting.sources import FilterSet, RecordSource

logger = logging.getLogger(__name__)


class AnalyticsReportType(str, enum.Enum):
    REVENUE_ANALYSIS = "revenue_analysis"
    EXPENSE_ANALYSIS = "expense_analysis"
    PROJECT_PERFORMANCE = "project_performance"
    TEAM_PRODUCTIVITY = "team_productivity"
    CLIENT_PROFITABILITY = "client_profitability"
    BUDGET_VARIANCE = "budget_variance"
    TIME_TRACKING = "time_tracking"
    TASK_COMPLETION_RATE = "task_completion_rate"
    FINANCIAL_TRENDS = "financial_trends"
    RESOURCE_UTILIZATION = "resource_utilization"


class CustomReportType(str, enum.Enum):
    FINANCIAL_SUMMARY = "financial_summary"
    PROJECT_PERFORMANCE = "project_performance"
    TEAM_PRODUCTIVITY = "team_productivity"
    CLIENT_ANALYSIS = "client_analysis"
    TIME_TRACKING = "time_tracking"
    BUDGET_ANALYSIS = "budget_analysis"
    REVENUE_FORECAST = "revenue_forecast"
    EXPENSE_BREAKDOWN = "expense_breakdown"
    TASK_COMPLETION = "task_completion"


class DashboardWidget(str, enum.Enum):
    OVERVIEW_STATS = "overview_stats"
    REVENUE_CHART = "revenue_chart"
    EXPENSE_CHART = "expense_chart"
    PROJECT_STATUS = "project_status"
    TEAM_PERFORMANCE = "team_performance"
    CLIENT_ACTIVITY = "client_activity"
    TASK_COMPLETION = "task_completion"
    BUDGET_UTILIZATION = "budget_utilization"
    TOP_CLIENTS = "top_clients"
    UPCOMING_DEADLINES = "upcoming_deadlines"
    FINANCIAL_SUMMARY = "financial_summary"


DEFAULT_DASHBOARD_WIDGETS: tuple[DashboardWidget, ...] = (
    DashboardWidget.OVERVIEW_STATS,
    DashboardWidget.REVENUE_CHART,
    DashboardWidget.EXPENSE_CHART,
    DashboardWidget.PROJECT_STATUS,
)

# Earliest creation time considered when looking for open deadlines.
DEADLINE_SCAN_START = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Row list that sorting, limits and exports operate on.
PRIMARY_ROWS: dict[CustomReportType, str] = {
    CustomReportType.FINANCIAL_SUMMARY: "monthly_trends",
    CustomReportType.PROJECT_PERFORMANCE: "projects",
    CustomReportType.TEAM_PRODUCTIVITY: "team_metrics",
    CustomReportType.CLIENT_ANALYSIS: "clients",
    CustomReportType.TIME_TRACKING: "by_user",
    CustomReportType.BUDGET_ANALYSIS: "budgets",
    CustomReportType.REVENUE_FORECAST: "forecast",
    CustomReportType.EXPENSE_BREAKDOWN: "expenses",
    CustomReportType.TASK_COMPLETION: "by_user",
}


@dataclass(frozen=True, slots=True)
class ReportParameters:
    time_range: TimeRange
    as_of: datetime
    granularity: Granularity = Granularity.DAY
    filters: FilterSet = field(default_factory=FilterSet)
    metrics: tuple[str, ...] = ()
    sort_by: str | None = None
    sort_order: str = "desc"
    limit: int | None = None
    week_start: int = SUNDAY
    top_limit: int = DEFAULT_TOP_N
    forecast_periods: int = DEFAULT_FORECAST_PERIODS
    hours_per_day: int = analytics.DEFAULT_HOURS_PER_DAY


def parse_analytics_type(value: str | AnalyticsReportType) -> AnalyticsReportType:
    try:
        return AnalyticsReportType(value)
    except ValueError as exc:
        raise InvalidReportType(str(value)) from exc


def parse_custom_type(value: str | CustomReportType) -> CustomReportType:
    try:
        return CustomReportType(value)
    except ValueError as exc:
        raise InvalidReportType(str(value)) from exc


def parse_dashboard_widgets(values: Iterable[str | DashboardWidget] | None) -> tuple[DashboardWidget, ...]:
    """Resolve requested widgets in order, dropping repeats; comma-separated values are split."""

    names: list[str] = []
    for value in values or ():
        if isinstance(value, DashboardWidget):
            names.append(value.value)
        else:
            names.extend(part.strip() for part in value.split(",") if part.strip())
    if not names:
        return DEFAULT_DASHBOARD_WIDGETS
    widgets: list[DashboardWidget] = []
    for name in names:
        try:
            widget = DashboardWidget(name)
        except ValueError as exc:
            raise InvalidDashboardWidget(name) from exc
        if widget not in widgets:
            widgets.append(widget)
    return tuple(widgets)


def budget_expense_window(budgets: Sequence[BudgetRecord]) -> TimeRange:
    """Whole calendar days spanning every budget period."""

    first_day = min(as_utc_date(budget.start_date) for budget in budgets)
    last_day = max(as_utc_date(budget.end_date) for budget in budgets)
    return TimeRange(
        datetime.combine(first_day, time.min, tzinfo=timezone.utc),
        datetime.combine(last_day, time.max, tzinfo=timezone.utc),
    )


def _budget_expenses(budgets: Sequence[BudgetRecord], source: RecordSource) -> list[ExpenseRecord]:
    # Budget spend ignores the request filters; the budget's own scope decides.
    if not budgets:
        return []
    return source.expenses(budget_expense_window(budgets), FilterSet())


# ---------- Analytics ----------
def _revenue_analysis(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return analytics.revenue_analysis(
        source.revenues(params.time_range, params.filters),
        granularity=params.granularity,
        week_start=params.week_start,
        top_limit=params.top_limit,
    )


def _expense_analysis(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return analytics.expense_analysis(
        source.expenses(params.time_range, params.filters),
        granularity=params.granularity,
        week_start=params.week_start,
        top_limit=params.top_limit,
    )


def _project_performance(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return analytics.project_performance(source.projects(params.filters, created_in=params.time_range))


def _team_productivity(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return analytics.team_productivity(source.tasks(params.time_range, params.filters))


def _client_profitability(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    clients = source.clients(params.filters, active_only=True)
    if not clients:
        return analytics.client_profitability([], [], [])
    client_scope = FilterSet(client_ids=tuple(client.id for client in clients))
    return analytics.client_profitability(
        clients,
        source.revenues(params.time_range, client_scope),
        source.expenses(params.time_range, client_scope),
        source.projects(client_scope),
    )


def _budget_variance(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    budgets = source.budgets(params.filters, overlapping=params.time_range)
    return analytics.budget_variance(budgets, _budget_expenses(budgets, source))


def _time_tracking(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return analytics.time_tracking(
        source.time_entries(params.time_range, params.filters),
        granularity=params.granularity,
        week_start=params.week_start,
    )


def _task_completion(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return analytics.task_completion_rate(
        source.tasks(params.time_range, params.filters),
        as_of=params.as_of,
        granularity=params.granularity,
        week_start=params.week_start,
    )


def _financial_trends(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return analytics.financial_trends(
        source.revenues(params.time_range, params.filters),
        source.expenses(params.time_range, params.filters),
        time_range=params.time_range,
        forecast_periods=params.forecast_periods,
    )


def _resource_utilization(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    users = source.users(params.filters)
    if not users:
        return analytics.resource_utilization([], [], [], time_range=params.time_range)
    user_scope = FilterSet(user_ids=tuple(user.id for user in users))
    return analytics.resource_utilization(
        users,
        source.time_entries(params.time_range, user_scope),
        source.tasks(params.time_range, user_scope),
        time_range=params.time_range,
        hours_per_day=params.hours_per_day,
    )


# ---------- Custom ----------
def _financial_summary(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return custom_reports.financial_summary(
        source.revenues(params.time_range, params.filters),
        source.expenses(params.time_range, params.filters),
        source.budgets(params.filters, overlapping=params.time_range),
        time_range=params.time_range,
    )


def _client_analysis(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    clients = source.clients(params.filters)
    if not clients:
        return custom_reports.client_analysis([], [], [], [], [])
    client_scope = FilterSet(client_ids=tuple(client.id for client in clients))
    return custom_reports.client_analysis(
        clients,
        source.projects(client_scope, entries_in=params.time_range),
        source.revenues(params.time_range, client_scope),
        source.expenses(params.time_range, client_scope),
        source.budgets(client_scope),
    )


def _budget_analysis(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    budgets = source.budgets(params.filters, overlapping=params.time_range)
    return custom_reports.budget_analysis(budgets, _budget_expenses(budgets, source), as_of=params.as_of)


def _revenue_forecast(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return custom_reports.revenue_forecast(
        source.revenues(custom_reports.history_range(params.time_range), params.filters),
        source.revenues(params.time_range, params.filters),
        time_range=params.time_range,
        periods=params.forecast_periods,
    )


def _expense_breakdown(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return custom_reports.expense_breakdown(
        source.expenses(params.time_range, params.filters),
        time_range=params.time_range,
    )


# ---------- Dashboard ----------
def _client_scope(clients: Sequence[ClientRecord]) -> FilterSet:
    return FilterSet(client_ids=tuple(client.id for client in clients))


def _overview_stats(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return dashboard.overview_stats(
        source.clients(params.filters, active_only=True),
        source.projects(params.filters, created_in=params.time_range),
        source.tasks(params.time_range, params.filters),
        source.revenues(params.time_range, params.filters),
        source.expenses(params.time_range, params.filters),
    )


def _revenue_chart(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return dashboard.revenue_chart(source.revenues(params.time_range, params.filters))


def _expense_chart(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return dashboard.expense_chart(source.expenses(params.time_range, params.filters))


def _project_status(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return dashboard.project_status(source.projects(params.filters, created_in=params.time_range))


def _team_performance(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    users = source.users(params.filters)
    if not users:
        return dashboard.team_performance([], [])
    user_scope = FilterSet(user_ids=tuple(user.id for user in users))
    return dashboard.team_performance(
        users,
        source.tasks(params.time_range, user_scope),
        limit=params.top_limit,
    )


def _client_activity(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    clients = source.clients(params.filters)
    if not clients:
        return dashboard.client_activity([], [], [])
    scope = _client_scope(clients)
    return dashboard.client_activity(
        clients,
        source.projects(scope, created_in=params.time_range),
        source.revenues(params.time_range, scope),
        limit=params.top_limit,
    )


def _task_completion_widget(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return dashboard.task_completion(source.tasks(params.time_range, params.filters))


def _budget_utilization(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    budgets = source.budgets(params.filters, overlapping=params.time_range)[: params.top_limit]
    return dashboard.budget_utilization(budgets, _budget_expenses(budgets, source), limit=params.top_limit)


def _top_clients(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    clients = source.clients(params.filters)
    if not clients:
        return dashboard.top_clients([], [], [])
    scope = _client_scope(clients)
    return dashboard.top_clients(
        clients,
        source.projects(scope),
        source.revenues(params.time_range, scope),
        limit=params.top_limit,
    )


def _upcoming_deadlines(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    # Deadlines look forward from as_of, independent of the report window.
    horizon = params.as_of + dashboard.UPCOMING_WINDOW
    return dashboard.upcoming_deadlines(
        source.tasks(TimeRange(DEADLINE_SCAN_START, horizon), params.filters),
        source.projects(params.filters),
        as_of=params.as_of,
        task_limit=params.top_limit,
    )


def _dashboard_financial_summary(params: ReportParameters, source: RecordSource) -> dict[str, object]:
    return dashboard.financial_summary(
        source.revenues(params.time_range, params.filters),
        source.expenses(params.time_range, params.filters),
        source.budgets(params.filters, overlapping=params.time_range),
    )


ReportBuilder = Callable[[ReportParameters, RecordSource], dict[str, object]]

ANALYTICS_BUILDERS: dict[AnalyticsReportType, ReportBuilder] = {
    AnalyticsReportType.REVENUE_ANALYSIS: _revenue_analysis,
    AnalyticsReportType.EXPENSE_ANALYSIS: _expense_analysis,
    AnalyticsReportType.PROJECT_PERFORMANCE: _project_performance,
    AnalyticsReportType.TEAM_PRODUCTIVITY: _team_productivity,
    AnalyticsReportType.CLIENT_PROFITABILITY: _client_profitability,
    AnalyticsReportType.BUDGET_VARIANCE: _budget_variance,
    AnalyticsReportType.TIME_TRACKING: _time_tracking,
    AnalyticsReportType.TASK_COMPLETION_RATE: _task_completion,
    AnalyticsReportType.FINANCIAL_TRENDS: _financial_trends,
    AnalyticsReportType.RESOURCE_UTILIZATION: _resource_utilization,
}

CUSTOM_BUILDERS: dict[CustomReportType, ReportBuilder] = {
    CustomReportType.FINANCIAL_SUMMARY: _financial_summary,
    CustomReportType.PROJECT_PERFORMANCE: _project_performance,
    CustomReportType.TEAM_PRODUCTIVITY: _team_productivity,
    CustomReportType.CLIENT_ANALYSIS: _client_analysis,
    CustomReportType.TIME_TRACKING: _time_tracking,
    CustomReportType.BUDGET_ANALYSIS: _budget_analysis,
    CustomReportType.REVENUE_FORECAST: _revenue_forecast,
    CustomReportType.EXPENSE_BREAKDOWN: _expense_breakdown,
    CustomReportType.TASK_COMPLETION: _task_completion,
}

DASHBOARD_BUILDERS: dict[DashboardWidget, ReportBuilder] = {
    DashboardWidget.OVERVIEW_STATS: _overview_stats,
    DashboardWidget.REVENUE_CHART: _revenue_chart,
    DashboardWidget.EXPENSE_CHART: _expense_chart,
    DashboardWidget.PROJECT_STATUS: _project_status,
    DashboardWidget.TEAM_PERFORMANCE: _team_performance,
    DashboardWidget.CLIENT_ACTIVITY: _client_activity,
    DashboardWidget.TASK_COMPLETION: _task_completion_widget,
    DashboardWidget.BUDGET_UTILIZATION: _budget_utilization,
    DashboardWidget.TOP_CLIENTS: _top_clients,
    DashboardWidget.UPCOMING_DEADLINES: _upcoming_deadlines,
    DashboardWidget.FINANCIAL_SUMMARY: _dashboard_financial_summary,
}


def run_analytics_report(
    report_type: str | AnalyticsReportType,
    params: ReportParameters,
    source: RecordSource,
) -> dict[str, object]:
    resolved = parse_analytics_type(report_type)
    logger.debug(
        "Building analytics report %s for %s..%s", resolved.value, params.time_range.start, params.time_range.end
    )
    return ANALYTICS_BUILDERS[resolved](params, source)


def run_custom_report(
    report_type: str | CustomReportType,
    params: ReportParameters,
    source: RecordSource,
) -> dict[str, object]:
    """Build a custom report and apply sort/limit options to its primary rows."""

    resolved = parse_custom_type(report_type)
    logger.debug(
        "Building custom report %s for %s..%s", resolved.value, params.time_range.start, params.time_range.end
    )
    report = CUSTOM_BUILDERS[resolved](params, source)
    rows_key = PRIMARY_ROWS[resolved]
    report[rows_key] = custom_reports.apply_row_options(
        report[rows_key],
        sort_by=params.sort_by,
        sort_order=params.sort_order,
        limit=params.limit,
    )
    return report


def primary_rows(report_type: str | CustomReportType, report: dict[str, object]) -> list[dict[str, object]]:
    return list(report.get(PRIMARY_ROWS[parse_custom_type(report_type)], []))


def run_dashboard(
    widgets: Iterable[str | DashboardWidget] | None,
    params: ReportParameters,
    source: RecordSource,
) -> dict[str, object]:
    """Build each requested widget, keyed by widget name in request order."""

    resolved = parse_dashboard_widgets(widgets)
    logger.debug("Building dashboard widgets %s", ", ".join(widget.value for widget in resolved))
    return {widget.value: DASHBOARD_BUILDERS[widget](params, source) for widget in resolved}
