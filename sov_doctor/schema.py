from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# Display header -> canonical key, in output column order.
TARGET_SCHEMA = {
    "Location Number": "locationNumber",
    "Property": "property",
    "Street Address": "streetAddress",
    "Suburb": "suburb",
    "State": "state",
    "Postal / ZIP Code": "postalZipCode",
    "Cresta Zone": "crestaZone",
    "Country": "country",
    "Occupancy": "occupancy",
    "PD Value": "pdValue",
    "PD Deductibles": "pdDeductibles",
    "BI Value": "biValue",
    "Total Insurable Value": "totalInsurableValue",
    "Latitude": "latitude",
    "Longitude": "longitude",
    "Construction Class": "constructionClass",
    "Roof Type": "roofType",
    "Number of Stories": "numberOfStories",
    "Year Built": "yearBuilt",
    "Fluvial Flood": "fluvialFlood",
    "Original Storm Surge": "originalStormSurge",
    "Original PF Risk Level": "originalPfRiskLevel",
    "Windstorm": "windstorm",
    "Hailstorm": "hailstorm",
    "Wildfire": "wildfire",
    "Severity": "severity",
}
CANONICAL_KEYS = tuple(TARGET_SCHEMA.values())
CANONICAL_KEY_SET = frozenset(CANONICAL_KEYS)
DISPLAY_HEADERS = {key: display for display, key in TARGET_SCHEMA.items()}

CRITICAL_FIELDS = ("locationNumber", "streetAddress", "country", "occupancy")
FINANCIAL_FIELDS = ("pdValue", "biValue", "totalInsurableValue")
DEDUCTIBLE_FIELDS = ("pdDeductibles",)

NON_DATA_SHEET_TOKENS = ("summary", "overview", "dashboard", "contents", "index", "instructions")
INSURANCE_KEYWORDS = (
    "location",
    "property",
    "address",
    "building",
    "occupancy",
    "pd value",
    "bi value",
    "tiv",
    "limit",
    "sum insured",
    "construction",
    "latitude",
    "longitude",
    "risk",
)

SAMPLE_ROW_LIMIT = 5
HEADER_SCAN_ROWS = 10
DATA_SHEET_THRESHOLD = 0.5
ISSUE_REPORT_LIMIT = 50
TIV_VARIANCE_TOLERANCE = 0.10

NUMERIC_TEXT_RE = re.compile(r"^\d+\.?\d*$")
SENTINEL_NULLS = {"", "na", "n/a", "none", "null", "nil", "nan", "tbd", "-"}


@dataclass(frozen=True)
class SheetProfile:
    name: str
    row_count: int
    header_row: tuple
    sample_rows: tuple
    is_empty: bool
    rule_based_type: str
    rule_based_confidence: float
    reasons: tuple[str, ...]

    @property
    def likely_data_sheet(self) -> bool:
        return self.rule_based_type == "data" and self.rule_based_confidence > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "row_count": self.row_count,
            "header_row": [jsonable(cell) for cell in self.header_row],
            "sample_rows": [[jsonable(cell) for cell in row] for row in self.sample_rows],
            "is_empty": self.is_empty,
            "rule_based_type": self.rule_based_type,
            "rule_based_confidence": round(self.rule_based_confidence, 4),
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class SheetClassification:
    sheet_name: str
    should_process: bool
    type: str
    confidence: float
    reason: str
    source: str = "rules"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheet_name": self.sheet_name,
            "should_process": self.should_process,
            "type": self.type,
            "confidence": round(self.confidence, 4),
            "reason": self.reason,
            "source": self.source,
        }


@dataclass(frozen=True)
class ColumnMapping:
    """Detected header text -> canonical key (or None when unmappable)."""

    columns: dict[str, str | None]
    source: str = "rules"

    def __getitem__(self, header: str) -> str | None:
        return self.columns[header]

    def __contains__(self, header: object) -> bool:
        return header in self.columns

    def __len__(self) -> int:
        return len(self.columns)

    def get(self, header: str) -> str | None:
        return self.columns.get(header)

    def headers(self) -> list[str]:
        return list(self.columns)

    def targets(self) -> set[str]:
        return {target for target in self.columns.values() if target is not None}

    def to_dict(self) -> dict[str, str | None]:
        return dict(self.columns)


@dataclass
class MappedRecord:
    values: dict[str, Any]
    source_sheet: str
    source_row: int

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {key: jsonable(self.values[key]) for key in CANONICAL_KEYS if key in self.values}


@dataclass(frozen=True)
class ValidationIssue:
    row: int
    field: str
    issue: str
    severity: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "field": self.field, "issue": self.issue, "severity": self.severity}


@dataclass
class ValidationSummary:
    total_rows: int
    successful_rows: int
    warning_rows: int
    error_rows: int
    critical_missing: list[str]
    issues: list[ValidationIssue]
    total_issues: int = 0
    severity_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "successful_rows": self.successful_rows,
            "warning_rows": self.warning_rows,
            "error_rows": self.error_rows,
            "critical_missing": list(self.critical_missing),
            "total_issues": self.total_issues,
            "severity_counts": dict(self.severity_counts),
            "issues": [issue.to_dict() for issue in self.issues],
        }


def jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
