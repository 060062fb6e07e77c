"""Dimension aggregation: grouped sums, counts, top-N rankings and guarded ratios."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal
from typing import TypeVar

from crm_analytics.reporting.periods import record_value
from crm_analytics.reporting.records import ZERO, MonetaryRecord, TimeEntryRecord

T = TypeVar("T")

UNKNOWN_LABEL = "Unknown"
HUNDRED = Decimal("100")
Q2 = Decimal("0.01")
DEFAULT_TOP_N = 10


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


def safe_div(numerator: Decimal | int, denominator: Decimal | int) -> Decimal:
    if denominator == 0:
        return ZERO
    return _q2(Decimal(numerator) / Decimal(denominator))


def safe_rate(numerator: Decimal | int, denominator: Decimal | int) -> Decimal:
    """Percentage of numerator over denominator; zero when the denominator is zero."""

    if denominator == 0:
        return ZERO
    return _q2(Decimal(numerator) / Decimal(denominator) * HUNDRED)


def dimension_label(value: object) -> str:
    if value is None or value == "":
        return UNKNOWN_LABEL
    return str(value)


def aggregate_by_dimension(
    records: Iterable[T],
    key_of: Callable[[T], object],
    value_of: Callable[[T], Decimal] = record_value,
) -> dict[str, Decimal]:
    """Sum record values per dimension label, keeping first-seen order."""

    totals: dict[str, Decimal] = {}
    for record in records:
        label = dimension_label(key_of(record))
        totals[label] = totals.get(label, ZERO) + value_of(record)
    return totals


def count_by_dimension(records: Iterable[T], key_of: Callable[[T], object]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for record in records:
        label = dimension_label(key_of(record))
        counts[label] = counts.get(label, 0) + 1
    return counts


def top_n(totals: Mapping[str, Decimal], limit: int = DEFAULT_TOP_N) -> list[dict[str, object]]:
    # sorted() is stable, ties keep insertion order even with reverse=True
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [{"name": name, "amount": amount} for name, amount in ranked[:limit]]


def top_entry(totals: Mapping[str, Decimal | int]) -> dict[str, object] | None:
    if not totals:
        return None
    name, amount = sorted(totals.items(), key=lambda item: item[1], reverse=True)[0]
    return {"name": name, "amount": amount}


def sum_effective(records: Iterable[MonetaryRecord]) -> Decimal:
    return sum((record.effective_value for record in records), ZERO)


def sum_hours(entries: Iterable[TimeEntryRecord]) -> Decimal:
    return sum((entry.hours for entry in entries), ZERO)


def group_records(records: Iterable[T], key_of: Callable[[T], object]) -> dict[object, list[T]]:
    grouped: dict[object, list[T]] = {}
    for record in records:
        grouped.setdefault(key_of(record), []).append(record)
    return grouped
