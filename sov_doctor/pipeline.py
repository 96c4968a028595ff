"""
pipeline.py — one uploaded workbook in, standardized SOV records out.

Stages run strictly in order, each fully consumed by the next:

    analyze sheets → classify sheets → select data sheets → map headers
    → project rows → validate → score mapping confidence

Only two stages talk to the completion service (classification, mapping) and
both have a deterministic rule-based fallback, so a service outage changes
the quality of the answer, never whether there is one. The run fails only on
structural grounds (unreadable or empty workbook, no data rows).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sov_doctor.analyzer import analyze_workbook
from sov_doctor.classifier import SheetClassifier, select_data_sheets
from sov_doctor.completion import CompletionService
from sov_doctor.contracts import build_run_summary, wrap_payload
from sov_doctor.grid import Workbook, WorkbookError, load_workbook
from sov_doctor.mapper import ColumnMapper, header_text
from sov_doctor.projector import SheetTable, project_rows, representative_headers, select_tables
from sov_doctor.schema import (
    ColumnMapping,
    MappedRecord,
    SheetClassification,
    SheetProfile,
    ValidationSummary,
)
from sov_doctor.scoring import mapping_confidence
from sov_doctor.validator import validate_records

logger = logging.getLogger(__name__)

TOOL_NAME = "sov-doctor"


@dataclass
class WorkbookInspection:
    source: str
    profiles: list[SheetProfile]
    classifications: list[SheetClassification]
    selected: list[SheetClassification]

    @property
    def classification_source(self) -> str:
        if any(item.source == "ai" for item in self.classifications):
            return "ai"
        return "rules"

    def to_dict(self) -> dict[str, Any]:
        body = {
            "file": Path(self.source).name,
            "total_sheets": len(self.profiles),
            "analyzed_sheets": [profile.to_dict() for profile in self.profiles],
            "classifications": [item.to_dict() for item in self.classifications],
            "classification_source": self.classification_source,
            "data_sheets": [item.sheet_name for item in self.selected],
        }
        summary = build_run_summary(
            tool=TOOL_NAME,
            step="inspect",
            input_file=self.source,
            metrics={"sheets": len(self.profiles), "data_sheets": len(self.selected)},
        )
        return wrap_payload("sov_doctor.inspect", body, summary)


@dataclass
class ProcessingResult:
    inspection: WorkbookInspection
    processed_sheets: list[SheetTable]
    original_columns: list[str]
    mapping: ColumnMapping
    records: list[MappedRecord]
    confidence: float
    validation: ValidationSummary
    warnings: list[str] = field(default_factory=list)

    @property
    def multi_sheet(self) -> bool:
        return len(self.processed_sheets) > 1

    def to_dict(self, output_file: str | None = None) -> dict[str, Any]:
        inspection = self.inspection
        body = {
            "file": Path(inspection.source).name,
            "workbook_analysis": {
                "total_sheets": len(inspection.profiles),
                "analyzed_sheets": [profile.to_dict() for profile in inspection.profiles],
                "classifications": [item.to_dict() for item in inspection.classifications],
                "classification_source": inspection.classification_source,
                "processed_sheets": [table.to_dict() for table in self.processed_sheets],
            },
            "multi_sheet": self.multi_sheet,
            "mapping": {
                "original_columns": list(self.original_columns),
                "columns": self.mapping.to_dict(),
                "source": self.mapping.source,
                "confidence": round(self.confidence, 4),
            },
            "validation": self.validation.to_dict(),
            "records": [record.to_dict() for record in self.records],
        }
        summary = build_run_summary(
            tool=TOOL_NAME,
            step="process",
            input_file=inspection.source,
            output_file=output_file,
            status="ok" if self.validation.error_rows == 0 else "issues",
            warnings=self.warnings,
            metrics={
                "records": len(self.records),
                "successful_rows": self.validation.successful_rows,
                "warning_rows": self.validation.warning_rows,
                "error_rows": self.validation.error_rows,
                "mapping_confidence": round(self.confidence, 4),
            },
        )
        return wrap_payload("sov_doctor.process", body, summary)


def ensure_has_content(workbook: Workbook) -> None:
    if not workbook.sheets or all(not grid.rows for grid in workbook.sheets):
        raise WorkbookError("No data found in workbook")


def inspect_workbook(workbook: Workbook, completion: CompletionService) -> WorkbookInspection:
    ensure_has_content(workbook)
    profiles = analyze_workbook(workbook)
    classifications = SheetClassifier(completion).classify(profiles)
    selected = select_data_sheets(classifications)
    logger.info(
        "Classified %d sheet(s); %d selected as data: %s",
        len(classifications),
        len(selected),
        [item.sheet_name for item in selected],
    )
    return WorkbookInspection(workbook.source, profiles, classifications, selected)


def process_workbook(workbook: Workbook, completion: CompletionService) -> ProcessingResult:
    inspection = inspect_workbook(workbook, completion)
    warnings: list[str] = []
    if inspection.classification_source == "rules":
        warnings.append("Sheet classification used the rule-based fallback")
    if not inspection.selected:
        warnings.append(f"No sheet qualified as data; used first sheet '{workbook.sheets[0].name}'")

    tables = select_tables(workbook, inspection.selected)
    if len(tables) > 1:
        warnings.append(
            f"Merged {len(tables)} sheets using the column layout of '{tables[0].name}'; "
            "sheets with a different column order may be misassigned"
        )

    headers = representative_headers(tables)
    original_columns = [header_text(value) for value in headers]
    mapping = ColumnMapper(completion).map_headers(headers)
    if mapping.source == "rules":
        warnings.append("Column mapping used the rule-based fallback")

    records = project_rows(tables, mapping)
    validation = validate_records(records, mapping)
    if validation.critical_missing:
        warnings.append("Critical fields not mapped: " + ", ".join(validation.critical_missing))

    return ProcessingResult(
        inspection=inspection,
        processed_sheets=tables,
        original_columns=original_columns,
        mapping=mapping,
        records=records,
        confidence=mapping_confidence(mapping),
        validation=validation,
        warnings=warnings,
    )


def process_file(path: "str | Path", completion: CompletionService) -> ProcessingResult:
    return process_workbook(load_workbook(path), completion)
