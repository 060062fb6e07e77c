from __future__ import annotations

from decimal import Decimal

from crm_analytics.reporting.aggregation import (
    aggregate_by_dimension,
    count_by_dimension,
    group_records,
    safe_div,
    safe_rate,
    top_entry,
    top_n,
)


def test_safe_rate_and_div_return_zero_for_zero_denominator() -> None:
    assert safe_rate(Decimal("5"), 0) == Decimal("0")
    assert safe_rate(0, Decimal("0")) == Decimal("0")
    assert safe_div(Decimal("12.5"), 0) == Decimal("0")


def test_safe_rate_is_a_percentage_rounded_to_cents() -> None:
    assert safe_rate(1, 3) == Decimal("33.33")
    assert safe_rate(Decimal("1100"), Decimal("1000")) == Decimal("110.00")
    assert safe_div(Decimal("10"), 4) == Decimal("2.50")


def test_aggregate_by_dimension_labels_missing_values_unknown() -> None:
    rows = [
        {"client": "Acme", "value": Decimal("10")},
        {"client": None, "value": Decimal("4")},
        {"client": "", "value": Decimal("1")},
        {"client": "Acme", "value": Decimal("5")},
    ]

    totals = aggregate_by_dimension(rows, lambda row: row["client"], lambda row: row["value"])

    assert totals == {"Acme": Decimal("15"), "Unknown": Decimal("5")}
    assert list(totals) == ["Acme", "Unknown"]


def test_count_by_dimension() -> None:
    counts = count_by_dimension(["HIGH", "LOW", "HIGH", None], lambda value: value)

    assert counts == {"HIGH": 2, "LOW": 1, "Unknown": 1}


def test_top_n_sorts_descending_and_truncates() -> None:
    totals = {f"client-{index}": Decimal(index) for index in range(15)}

    ranked = top_n(totals, 10)

    assert len(ranked) == 10
    assert ranked[0] == {"name": "client-14", "amount": Decimal(14)}
    amounts = [row["amount"] for row in ranked]
    assert amounts == sorted(amounts, reverse=True)


def test_top_n_ties_keep_insertion_order() -> None:
    totals = {"beta": Decimal("50"), "alpha": Decimal("50"), "gamma": Decimal("70"), "delta": Decimal("50")}

    ranked = top_n(totals)

    assert [row["name"] for row in ranked] == ["gamma", "beta", "alpha", "delta"]


def test_top_entry() -> None:
    assert top_entry({}) is None
    assert top_entry({"Travel": Decimal("20"), "Software": Decimal("90")}) == {
        "name": "Software",
        "amount": Decimal("90"),
    }


def test_group_records_keeps_first_seen_order() -> None:
    grouped = group_records([("b", 1), ("a", 2), ("b", 3)], lambda item: item[0])

    assert list(grouped) == ["b", "a"]
    assert grouped["b"] == [("b", 1), ("b", 3)]
