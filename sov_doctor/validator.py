"""
validator.py — data-quality checks over projected SOV records.

Two passes:
  - mapping level: critical fields the column mapping never produces
  - row level: required values, financial sanity, TIV cross-check,
    coordinates, year built, number of stories

Every row lands in exactly one bucket: error (any error issue), warning
(any warning issue, no errors) or successful. Buckets are counted over the
full issue list; only the reported list is capped.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any

from sov_doctor.schema import (
    CRITICAL_FIELDS,
    DEDUCTIBLE_FIELDS,
    DISPLAY_HEADERS,
    FINANCIAL_FIELDS,
    ISSUE_REPORT_LIMIT,
    TIV_VARIANCE_TOLERANCE,
    ColumnMapping,
    MappedRecord,
    ValidationIssue,
    ValidationSummary,
)
from sov_doctor.values import is_missing, parse_number

logger = logging.getLogger(__name__)

ERROR = "error"
WARNING = "warning"

EARLIEST_YEAR_BUILT = 1800
FUTURE_YEAR_ALLOWANCE = 5
MAX_REASONABLE_STORIES = 100
COORDINATE_BOUNDS = {"latitude": (-90.0, 90.0), "longitude": (-180.0, 180.0)}


def critical_missing(mapping: ColumnMapping) -> list[str]:
    targets = mapping.targets()
    return [field for field in CRITICAL_FIELDS if field not in targets]


def _label(field: str) -> str:
    return DISPLAY_HEADERS.get(field, field)


def _fmt(number: float) -> str:
    return f"{number:,.0f}" if number.is_integer() else f"{number:,.2f}"


class RowChecker:
    """Collects the issues for one record."""

    def __init__(self, row_number: int, record: MappedRecord, current_year: int) -> None:
        self.row_number = row_number
        self.record = record
        self.current_year = current_year
        self.issues: list[ValidationIssue] = []

    def add(self, field: str, issue: str, severity: str) -> None:
        self.issues.append(ValidationIssue(self.row_number, field, issue, severity))

    def value(self, field: str) -> Any:
        value = self.record.get(field)
        return None if is_missing(value) else value

    def number(self, field: str, unparsable_severity: str = ERROR) -> float | None:
        value = self.value(field)
        if value is None:
            return None
        number = parse_number(value)
        if number is None:
            self.add(field, f"{_label(field)} is not a valid number: {value!r}", unparsable_severity)
        return number

    # ── checks ───────────────────────────────────────────────────────────────

    def check_required(self) -> None:
        for field in CRITICAL_FIELDS:
            if self.value(field) is None:
                self.add(field, f"Missing required field: {field}", ERROR)

    def check_financials(self) -> dict[str, float]:
        amounts: dict[str, float] = {}
        for field in FINANCIAL_FIELDS + DEDUCTIBLE_FIELDS:
            severity = WARNING if field in DEDUCTIBLE_FIELDS else ERROR
            number = self.number(field, unparsable_severity=severity)
            if number is None:
                continue
            if number < 0:
                self.add(field, f"{_label(field)} is negative: {_fmt(number)}", ERROR)
            amounts[field] = number
        return amounts

    def check_tiv(self, amounts: dict[str, float]) -> None:
        tiv = amounts.get("totalInsurableValue")
        pd_value = amounts.get("pdValue")
        bi_value = amounts.get("biValue")
        if tiv is None or pd_value is None or bi_value is None:
            return
        combined = pd_value + bi_value
        denominator = max(tiv, combined)
        if denominator <= 0:
            return
        variance = abs(tiv - combined) / denominator
        if variance > TIV_VARIANCE_TOLERANCE:
            self.add(
                "totalInsurableValue",
                f"Total Insurable Value {_fmt(tiv)} differs from PD + BI ({_fmt(combined)}) by {variance:.1%}",
                WARNING,
            )

    def check_coordinates(self) -> None:
        for field, (low, high) in COORDINATE_BOUNDS.items():
            number = self.number(field)
            if number is None:
                continue
            if not low <= number <= high:
                self.add(field, f"{_label(field)} out of range [{low:g}, {high:g}]: {number:g}", ERROR)

    def check_year_built(self) -> None:
        year = self.number("yearBuilt")
        if year is None:
            return
        latest = self.current_year + FUTURE_YEAR_ALLOWANCE
        if year < EARLIEST_YEAR_BUILT or year > latest:
            self.add("yearBuilt", f"Year Built out of range [{EARLIEST_YEAR_BUILT}, {latest}]: {year:g}", ERROR)
        elif year > self.current_year:
            self.add("yearBuilt", f"Year Built is in the future: {year:g}", WARNING)

    def check_stories(self) -> None:
        stories = self.number("numberOfStories")
        if stories is None:
            return
        if stories < 0:
            self.add("numberOfStories", f"Number of Stories is negative: {stories:g}", ERROR)
        elif stories > MAX_REASONABLE_STORIES:
            self.add("numberOfStories", f"Number of Stories is unusually high: {stories:g}", WARNING)

    def run(self) -> list[ValidationIssue]:
        self.check_required()
        self.check_tiv(self.check_financials())
        self.check_coordinates()
        self.check_year_built()
        self.check_stories()
        return self.issues


def validate_row(record: MappedRecord, row_number: int, current_year: int | None = None) -> list[ValidationIssue]:
    year = current_year if current_year is not None else datetime.now().year
    return RowChecker(row_number, record, year).run()


def row_status(issues: list[ValidationIssue]) -> str:
    severities = {issue.severity for issue in issues}
    if ERROR in severities:
        return "error"
    if WARNING in severities:
        return "warning"
    return "successful"


def validate_records(
    records: list[MappedRecord],
    mapping: ColumnMapping,
    current_year: int | None = None,
    issue_limit: int = ISSUE_REPORT_LIMIT,
) -> ValidationSummary:
    year = current_year if current_year is not None else datetime.now().year
    all_issues: list[ValidationIssue] = []
    statuses: Counter[str] = Counter()

    for index, record in enumerate(records):
        # 1-based sheet row with the header on row 1
        issues = validate_row(record, index + 2, year)
        statuses[row_status(issues)] += 1
        all_issues.extend(issues)

    summary = ValidationSummary(
        total_rows=len(records),
        successful_rows=statuses["successful"],
        warning_rows=statuses["warning"],
        error_rows=statuses["error"],
        critical_missing=critical_missing(mapping),
        issues=all_issues[:issue_limit],
        total_issues=len(all_issues),
        severity_counts=dict(Counter(issue.severity for issue in all_issues)),
    )
    logger.info(
        "Validated %d row(s): %d ok, %d warning, %d error",
        summary.total_rows,
        summary.successful_rows,
        summary.warning_rows,
        summary.error_rows,
    )
    return summary
