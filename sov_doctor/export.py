from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from sov_doctor.schema import TARGET_SCHEMA, MappedRecord, ValidationSummary, jsonable

logger = logging.getLogger(__name__)

OUTPUT_SHEET = "Standardized_SOV"
ISSUES_SHEET = "Validation Issues"
ISSUE_HEADERS = ["row", "field", "issue", "severity"]

FILL_ERROR = PatternFill("solid", fgColor="FCE4D6")     # soft orange
FILL_WARNING = PatternFill("solid", fgColor="FFF2CC")   # soft yellow


def _style_sheet(ws, col_widths: list[int], header_color: str) -> None:
    """Bold white header on a colored band, frozen header row, column widths."""
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(val)) + 2))
    return widths


def record_row(record: MappedRecord) -> list[Any]:
    return [jsonable(record.get(key)) for key in TARGET_SCHEMA.values()]


def records_to_frame(records: list[MappedRecord]) -> pd.DataFrame:
    return pd.DataFrame([record_row(record) for record in records], columns=list(TARGET_SCHEMA), dtype=object)


def render_csv(records: list[MappedRecord]) -> str:
    return records_to_frame(records).to_csv(index=False, lineterminator="\n")


def write_csv(records: list[MappedRecord], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_csv(records), encoding="utf-8")
    logger.info("Wrote %d record(s) to %s", len(records), output_path)


def write_standardized_workbook(
    records: list[MappedRecord],
    output_path: Path,
    validation: ValidationSummary | None = None,
) -> None:
    wb = openpyxl.Workbook()

    # ── Sheet 1: Standardized SOV ────────────────────────────────────────────
    ws1 = wb.active
    ws1.title = OUTPUT_SHEET
    headers = list(TARGET_SCHEMA)
    rows_for_width: list[list] = [headers]
    ws1.append(headers)
    for record in records:
        row_out = record_row(record)
        ws1.append(row_out)
        rows_for_width.append(row_out)
    _style_sheet(ws1, _infer_col_widths(rows_for_width), "1565C0")   # blue

    # ── Sheet 2: Validation issues ───────────────────────────────────────────
    if validation is not None:
        ws2 = wb.create_sheet(ISSUES_SHEET)
        issue_rows: list[list] = [ISSUE_HEADERS]
        ws2.append(ISSUE_HEADERS)
        for issue in validation.issues:
            row_out = [issue.row, issue.field, issue.issue, issue.severity]
            ws2.append(row_out)
            issue_rows.append(row_out)
            severity_cell = ws2.cell(ws2.max_row, 4)
            severity_cell.fill = FILL_ERROR if issue.severity == "error" else FILL_WARNING
        _style_sheet(ws2, _infer_col_widths(issue_rows), "E53935")   # red
        for cell in ws2["C"][1:]:
            cell.alignment = Alignment(wrap_text=True, vertical="top")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    logger.info("Wrote %d record(s) to %s", len(records), output_path)
