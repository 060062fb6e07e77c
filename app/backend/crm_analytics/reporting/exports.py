"""CSV and XLSX rendering of a report's primary rows."""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from dataclasses import dataclass

from openpyxl import Workbook

from crm_analytics.reporting.errors import UnsupportedExportFormat
from crm_analytics.reporting.serialization import to_jsonable

EXPORT_FORMATS = ("csv", "xlsx")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def normalize_format(format_name: str) -> str:
    normalized = format_name.strip().lower()
    if normalized not in EXPORT_FORMATS:
        raise UnsupportedExportFormat(format_name)
    return normalized


def _flatten(value: object, prefix: str, record: dict[str, str]) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            _flatten(item, f"{prefix}.{key}" if prefix else str(key), record)
        return
    if isinstance(value, list):
        record[prefix] = "; ".join(str(item) for item in value)
        return
    if value is not None:
        record[prefix] = str(value)


def flatten_rows(rows: Sequence[dict[str, object]]) -> list[dict[str, str]]:
    """One flat record per row; nested mappings become dotted column names."""

    flat_rows: list[dict[str, str]] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        record: dict[str, str] = {}
        _flatten(to_jsonable(row), "", record)
        flat_rows.append(record)
    return flat_rows


def _fieldnames(flat_rows: Sequence[dict[str, str]]) -> list[str]:
    fieldnames_set: set[str] = set()
    for row in flat_rows:
        fieldnames_set.update(row.keys())
    return sorted(fieldnames_set)


def render_csv(flat_rows: Sequence[dict[str, str]]) -> bytes:
    fieldnames = _fieldnames(flat_rows)
    if not fieldnames:
        return b""
    sio = io.StringIO()
    writer = csv.DictWriter(sio, fieldnames=fieldnames)
    writer.writeheader()
    writer.writerows(flat_rows)
    return sio.getvalue().encode("utf-8")


def render_xlsx(flat_rows: Sequence[dict[str, str]], sheet_title: str = "report") -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title[:31]

    fieldnames = _fieldnames(flat_rows)
    if fieldnames:
        sheet.append(fieldnames)
        for row in flat_rows:
            sheet.append([row.get(column, "") for column in fieldnames])

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def export_rows(report_name: str, rows: Sequence[dict[str, object]], format_name: str) -> ExportFilePayload:
    normalized_format = normalize_format(format_name)
    flat_rows = flatten_rows(rows)
    if normalized_format == "csv":
        return ExportFilePayload(
            media_type="text/csv; charset=utf-8",
            filename=f"{report_name}.csv",
            content=render_csv(flat_rows),
        )
    return ExportFilePayload(
        media_type=XLSX_MEDIA_TYPE,
        filename=f"{report_name}.xlsx",
        content=render_xlsx(flat_rows, sheet_title=report_name),
    )
