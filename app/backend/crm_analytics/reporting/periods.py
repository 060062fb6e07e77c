"""Period bucketing: date ranges, period keys and ordered per-period buckets."""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import TypeVar

from crm_analytics.reporting.errors import InvalidDateRange
from crm_analytics.reporting.records import ZERO, MonetaryRecord, TimeEntryRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUNDAY = 6
SECONDS_PER_DAY = 86400


class Granularity(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class DateRangePreset(str, enum.Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    LAST_6_MONTHS = "6m"
    LAST_YEAR = "1y"
    CUSTOM = "custom"


PRESET_DAYS: dict[DateRangePreset, int] = {
    DateRangePreset.LAST_7_DAYS: 7,
    DateRangePreset.LAST_30_DAYS: 30,
    DateRangePreset.LAST_90_DAYS: 90,
    DateRangePreset.LAST_6_MONTHS: 180,
    DateRangePreset.LAST_YEAR: 365,
}


def as_utc(moment: datetime) -> datetime:
    """Normalize a timestamp to an aware UTC datetime (naive values are taken as UTC)."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def as_utc_date(moment: datetime | date) -> date:
    if isinstance(moment, datetime):
        return as_utc(moment).date()
    return moment


def elapsed_days(start: datetime, end: datetime) -> int:
    """Whole days between two instants, rounded up."""

    return math.ceil((as_utc(end) - as_utc(start)).total_seconds() / SECONDS_PER_DAY)


@dataclass(frozen=True, slots=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if as_utc(self.start) > as_utc(self.end):
            raise InvalidDateRange("date_from must be earlier than or equal to date_to.")

    @property
    def days(self) -> int:
        return elapsed_days(self.start, self.end)

    def contains(self, moment: datetime) -> bool:
        return as_utc(self.start) <= as_utc(moment) <= as_utc(self.end)


def parse_timestamp(value: str | datetime | date) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise InvalidDateRange(f"Malformed date value: {value!r}.") from exc


def resolve_time_range(
    preset: str | DateRangePreset,
    *,
    now: datetime,
    date_from: str | datetime | date | None = None,
    date_to: str | datetime | date | None = None,
) -> TimeRange:
    """Build the report window from a named preset or explicit bounds."""

    try:
        resolved = DateRangePreset(preset)
    except ValueError as exc:
        raise InvalidDateRange(f"Unknown date range preset: {preset!r}.") from exc

    if resolved is not DateRangePreset.CUSTOM and (date_from is not None or date_to is not None):
        raise InvalidDateRange(f"date_from and date_to require the custom date range, not {resolved.value!r}.")

    if resolved is DateRangePreset.CUSTOM:
        if date_from is None or date_to is None:
            raise InvalidDateRange("Custom date range requires both date_from and date_to.")
        return TimeRange(parse_timestamp(date_from), parse_timestamp(date_to))

    end = as_utc(now)
    return TimeRange(end - timedelta(days=PRESET_DAYS[resolved]), end)


def week_start_date(day: date, week_start: int = SUNDAY) -> date:
    return day - timedelta(days=(day.weekday() - week_start) % 7)


def period_key(moment: datetime | date, granularity: Granularity, week_start: int = SUNDAY) -> str:
    day = as_utc_date(moment)
    if granularity is Granularity.WEEK:
        return week_start_date(day, week_start).isoformat()
    if granularity is Granularity.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    if granularity is Granularity.QUARTER:
        return f"{day.year:04d}-Q{(day.month - 1) // 3 + 1}"
    if granularity is Granularity.YEAR:
        return f"{day.year:04d}"
    return day.isoformat()


def month_key(moment: datetime | date) -> str:
    return period_key(moment, Granularity.MONTH)


@dataclass(slots=True)
class PeriodBucket:
    period_key: str
    value: Decimal = ZERO
    count: int = 0

    def as_dict(self) -> dict[str, object]:
        return {"period_key": self.period_key, "value": self.value, "count": self.count}


def record_value(record: object) -> Decimal:
    """Value a record contributes to its bucket: money, hours, or a plain count."""

    if isinstance(record, MonetaryRecord):
        return record.effective_value
    if isinstance(record, TimeEntryRecord):
        return record.hours
    return Decimal(1)


def bucket_by_period(
    records: Iterable[T],
    granularity: Granularity,
    date_of: Callable[[T], datetime],
    value_of: Callable[[T], Decimal] = record_value,
    *,
    week_start: int = SUNDAY,
) -> list[PeriodBucket]:
    """Group records into observed periods, ordered ascending by period key."""

    buckets: dict[str, PeriodBucket] = {}
    for record in records:
        key = period_key(date_of(record), granularity, week_start)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = PeriodBucket(period_key=key)
        bucket.value += value_of(record)
        bucket.count += 1

    # zero-padded keys sort chronologically
    return [buckets[key] for key in sorted(buckets)]


def month_sequence(start_month: date, end_month: date) -> list[date]:
    current = date(start_month.year, start_month.month, 1)
    end = date(end_month.year, end_month.month, 1)
    months: list[date] = []
    while current <= end:
        months.append(current)
        current = add_months(current, 1)
    return months


def add_months(month_start: date, count: int) -> date:
    index = month_start.year * 12 + (month_start.month - 1) + count
    return date(index // 12, index % 12 + 1, 1)


def continuous_monthly_series(
    records: Iterable[T],
    time_range: TimeRange,
    date_of: Callable[[T], datetime],
    value_of: Callable[[T], Decimal] = record_value,
) -> list[PeriodBucket]:
    """Month buckets for every month in range, zero-filled, then accumulated.

    Records whose month falls outside the range are ignored.
    """

    months = month_sequence(as_utc_date(time_range.start), as_utc_date(time_range.end))
    buckets = {month_key(month): PeriodBucket(period_key=month_key(month)) for month in months}
    skipped = 0
    for record in records:
        bucket = buckets.get(month_key(date_of(record)))
        if bucket is None:
            skipped += 1
            continue
        bucket.value += value_of(record)
        bucket.count += 1
    if skipped:
        logger.debug("Skipped %d records outside monthly series range", skipped)
    return list(buckets.values())
