"""
analyzer.py — structural profile of each sheet in an uploaded workbook.

The profile is a rule-based guess at the sheet's role (data, summary,
template, empty, unknown) plus the evidence behind it. It is what the
classifier falls back to when the completion service is unavailable.

Confidence is additive and NOT clamped after the row-count and
numeric-content boosts: a strong data sheet can score above 1.0. Treat it as
a relative strength signal, not a probability.
"""

from __future__ import annotations

import logging
from typing import Any

from sov_doctor.grid import SheetGrid, Workbook, is_blank, row_is_blank, to_text
from sov_doctor.schema import (
    HEADER_SCAN_ROWS,
    INSURANCE_KEYWORDS,
    NON_DATA_SHEET_TOKENS,
    SAMPLE_ROW_LIMIT,
    SheetProfile,
)
from sov_doctor.values import is_numeric_like, looks_like_numeric_text, starts_with_number

logger = logging.getLogger(__name__)

MIN_DATA_KEYWORDS = 3
KEYWORDS_FOR_FULL_CONFIDENCE = 6
WIDE_HEADER_CELLS = 5
HIGH_ROW_COUNT = 20
TEMPLATE_MAX_ROWS = 5
ROW_COUNT_BOOST = 0.2
NUMERIC_CONTENT_BOOST = 0.3


# ══════════════════════════════════════════════════════════════════════════════
# HEADER ROW DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def is_header_like_cell(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    text = value.strip()
    return len(text) > 2 and not looks_like_numeric_text(text)


def detect_header_row(rows: list[list[Any]], scan_rows: int = HEADER_SCAN_ROWS) -> int:
    """Index of the first of the top rows holding a real text label; 0 if none."""
    for idx, row in enumerate(rows[:scan_rows]):
        if any(is_header_like_cell(value) for value in row):
            return idx
    return 0


def data_rows_below(rows: list[list[Any]], header_index: int) -> list[tuple[int, list[Any]]]:
    """Non-blank rows after the header, paired with their 1-based sheet row number."""
    return [
        (idx + 1, row)
        for idx, row in enumerate(rows)
        if idx > header_index and not row_is_blank(row)
    ]


# ══════════════════════════════════════════════════════════════════════════════
# SIGNALS
# ══════════════════════════════════════════════════════════════════════════════

def sheet_name_token(name: str) -> str | None:
    lowered = name.lower()
    for token in NON_DATA_SHEET_TOKENS:
        if token in lowered:
            return token
    return None


def matched_keywords(header_row: list[Any]) -> list[str]:
    header_text = " ".join(to_text(value) for value in header_row).lower()
    return [keyword for keyword in INSURANCE_KEYWORDS if keyword in header_text]


def has_numeric_content(sample_rows: list[list[Any]]) -> bool:
    for row in sample_rows:
        for value in row:
            if is_blank(value):
                continue
            if is_numeric_like(value) or starts_with_number(value):
                return True
    return False


# ══════════════════════════════════════════════════════════════════════════════
# PROFILING
# ══════════════════════════════════════════════════════════════════════════════

def analyze_sheet(grid: SheetGrid) -> SheetProfile:
    rows = grid.rows
    row_count = len(rows)

    if row_count <= 1:
        reason = "Sheet is empty" if row_count == 0 else "Sheet has a single row and no data below it"
        return SheetProfile(
            name=grid.name,
            row_count=row_count,
            header_row=tuple(rows[0]) if rows else (),
            sample_rows=(),
            is_empty=True,
            rule_based_type="empty",
            rule_based_confidence=0.0,
            reasons=(reason,),
        )

    header_row = list(rows[0])
    sample_rows = [list(row) for row in rows[1:] if not row_is_blank(row)][:SAMPLE_ROW_LIMIT]

    sheet_type = "unknown"
    confidence = 0.0
    reasons: list[str] = []

    token = sheet_name_token(grid.name)
    if token:
        sheet_type = "summary"
        reasons.append(f"Sheet name suggests summary/overview ('{token}')")
    elif len(header_row) > WIDE_HEADER_CELLS:
        keywords = matched_keywords(header_row)
        if len(keywords) >= MIN_DATA_KEYWORDS:
            sheet_type = "data"
            confidence = min(len(keywords) / KEYWORDS_FOR_FULL_CONFIDENCE, 1.0)
            reasons.append(f"Contains {len(keywords)} insurance-related headers")
        if row_count > HIGH_ROW_COUNT:
            confidence += ROW_COUNT_BOOST
            reasons.append(f"High row count: {row_count} rows")
        if has_numeric_content(sample_rows):
            confidence += NUMERIC_CONTENT_BOOST
            reasons.append("Contains numerical financial data")
    elif row_count < TEMPLATE_MAX_ROWS:
        sheet_type = "template"
        reasons.append("Low row count suggests template/example")

    profile = SheetProfile(
        name=grid.name,
        row_count=row_count,
        header_row=tuple(header_row),
        sample_rows=tuple(tuple(row) for row in sample_rows),
        is_empty=False,
        rule_based_type=sheet_type,
        rule_based_confidence=confidence,
        reasons=tuple(reasons),
    )
    logger.debug("Profiled sheet %r as %s (%.2f)", grid.name, sheet_type, confidence)
    return profile


def analyze_workbook(workbook: Workbook) -> list[SheetProfile]:
    return [analyze_sheet(grid) for grid in workbook.sheets]
