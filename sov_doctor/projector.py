"""
projector.py — turns retained sheets into schema-shaped records.

One mapping (built from the first retained sheet's headers) serves every
retained sheet. Each column first looks up its own header text in that
mapping. Only a header the mapping has never seen falls back to POSITION:
it takes the target of the representative header in the same column index.
There is no other alignment, so an unknown header in a reordered sheet can
still land on the wrong key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sov_doctor.analyzer import data_rows_below, detect_header_row
from sov_doctor.grid import SheetGrid, Workbook, WorkbookError, is_blank
from sov_doctor.mapper import header_text
from sov_doctor.schema import ColumnMapping, MappedRecord, SheetClassification

logger = logging.getLogger(__name__)

FALLBACK_SHEET_CONFIDENCE = 0.5
FALLBACK_SHEET_REASON = "Fallback to first sheet"


@dataclass
class SheetTable:
    name: str
    header_row_number: int
    headers: list[Any]
    rows: list[tuple[int, list[Any]]]
    confidence: float = 0.0
    reason: str = ""

    @property
    def header_texts(self) -> list[str]:
        return [header_text(value) for value in self.headers]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "header_row": self.header_row_number,
            "headers": self.header_texts,
            "row_count": len(self.rows),
            "confidence": round(self.confidence, 4),
            "reason": self.reason,
        }


def extract_sheet_table(grid: SheetGrid, confidence: float = 0.0, reason: str = "") -> SheetTable:
    header_index = detect_header_row(grid.rows)
    headers = list(grid.rows[header_index]) if grid.rows else []
    return SheetTable(
        name=grid.name,
        header_row_number=header_index + 1,
        headers=headers,
        rows=data_rows_below(grid.rows, header_index),
        confidence=confidence,
        reason=reason,
    )


def select_tables(workbook: Workbook, selected: list[SheetClassification]) -> list[SheetTable]:
    """Tables for the selected data sheets, or the first sheet when none qualified."""
    if not workbook.sheets:
        raise WorkbookError("No data found in workbook: it has no sheets")

    if not selected:
        first = workbook.sheets[0]
        logger.warning("No sheet classified as data; falling back to first sheet %r", first.name)
        if not first.rows:
            raise WorkbookError("No data found in workbook")
        tables = [extract_sheet_table(first, FALLBACK_SHEET_CONFIDENCE, FALLBACK_SHEET_REASON)]
    else:
        tables = [
            extract_sheet_table(workbook.sheet(item.sheet_name), item.confidence, item.reason)
            for item in selected
        ]

    if not any(table.rows for table in tables):
        names = ", ".join(table.name for table in tables)
        raise WorkbookError(f"No data rows found in selected sheet(s): {names}")
    return tables


def representative_headers(tables: list[SheetTable]) -> list[Any]:
    for table in tables:
        if table.headers:
            return table.headers
    return []


def column_targets(
    headers: list[Any],
    mapping: ColumnMapping,
    fallback_headers: list[Any] | None = None,
) -> list[str | None]:
    """
    Canonical key per column index. A header the mapping has never seen
    borrows the target of the representative header in the same position.
    """
    fallback_headers = fallback_headers or []
    targets: list[str | None] = []
    for col_idx, header in enumerate(headers):
        text = header_text(header)
        if text in mapping:
            targets.append(mapping[text])
        elif col_idx < len(fallback_headers):
            targets.append(mapping.get(header_text(fallback_headers[col_idx])))
        else:
            targets.append(None)
    return targets


def project_row(targets: list[str | None], row: list[Any]) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for target, value in zip(targets, row):
        if target is None or is_blank(value):
            continue
        # duplicate targets: last column wins
        record[target] = value
    return record


def project_rows(tables: list[SheetTable], mapping: ColumnMapping) -> list[MappedRecord]:
    representative = representative_headers(tables)
    records: list[MappedRecord] = []
    for table in tables:
        targets = column_targets(table.headers, mapping, representative)
        for row_number, row in table.rows:
            records.append(MappedRecord(project_row(targets, row), table.name, row_number))
        logger.debug("Projected %d row(s) from %r", len(table.rows), table.name)
    return records
