from __future__ import annotations

import json
import logging
from typing import Any

from sov_doctor.completion import CompletionService, ServiceError
from sov_doctor.llm_json import parse_loose_json
from sov_doctor.schema import DATA_SHEET_THRESHOLD, SheetClassification, SheetProfile, jsonable

logger = logging.getLogger(__name__)


def build_classification_prompt(profiles: list[SheetProfile]) -> str:
    sheets = [
        {
            "name": profile.name,
            "headers": [jsonable(cell) for cell in profile.header_row],
            "rowCount": profile.row_count,
            "sampleData": [jsonable(cell) for cell in profile.sample_rows[0]] if profile.sample_rows else [],
        }
        for profile in profiles
    ]
    return "\n".join(
        [
            "Analyze these Excel sheets to identify which contain property insurance data vs summaries/templates.",
            "",
            "SHEET ANALYSIS:",
            json.dumps(sheets, indent=2, ensure_ascii=False),
            "",
            "Return JSON array with sheet classifications:",
            "[",
            "  {",
            '    "sheetName": "Sheet1",',
            '    "shouldProcess": true,',
            '    "type": "data",',
            '    "confidence": 0.95,',
            '    "reason": "Contains property data with financial values"',
            "  }",
            "]",
            "",
            'Be conservative - only classify as "data" if confident it contains actual property listings.',
            "Return ONLY the JSON array, no other text.",
        ]
    )


def rule_based_classification(profile: SheetProfile) -> SheetClassification:
    return SheetClassification(
        sheet_name=profile.name,
        should_process=profile.likely_data_sheet,
        type=profile.rule_based_type,
        confidence=profile.rule_based_confidence,
        reason="; ".join(profile.reasons) or "Rule-based classification",
        source="rules",
    )


def rule_based_classifications(profiles: list[SheetProfile]) -> list[SheetClassification]:
    return [rule_based_classification(profile) for profile in profiles]


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    return None


def _as_confidence(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _entry_to_classification(entry: dict[str, Any]) -> SheetClassification | None:
    should_process = _as_bool(entry.get("shouldProcess"))
    confidence = _as_confidence(entry.get("confidence"))
    if should_process is None or confidence is None:
        return None
    return SheetClassification(
        sheet_name=str(entry["sheetName"]),
        should_process=should_process,
        type=str(entry.get("type") or "unknown"),
        confidence=confidence,
        reason=str(entry.get("reason") or "AI classification"),
        source="ai",
    )


def reconcile_classifications(parsed: Any, profiles: list[SheetProfile]) -> list[SheetClassification] | None:
    """
    Line the service's answer up with the workbook: one entry per sheet, in
    sheet order. Sheets the answer skips or garbles get their rule-based
    classification; names the workbook does not have are dropped.
    Returns None when the answer is not a list of objects at all.
    """
    if isinstance(parsed, dict) and isinstance(parsed.get("sheets"), list):
        parsed = parsed["sheets"]
    if not isinstance(parsed, list) or not all(isinstance(entry, dict) for entry in parsed):
        return None

    known = {profile.name for profile in profiles}
    by_name: dict[str, SheetClassification] = {}
    for entry in parsed:
        name = entry.get("sheetName")
        if name is None or str(name) not in known or str(name) in by_name:
            continue
        classification = _entry_to_classification(entry)
        if classification is not None:
            by_name[str(name)] = classification

    missing = [profile.name for profile in profiles if profile.name not in by_name]
    if missing:
        logger.warning("Completion service skipped %d sheet(s); using rules for: %s", len(missing), missing)
    return [by_name.get(profile.name) or rule_based_classification(profile) for profile in profiles]


class SheetClassifier:
    def __init__(self, completion: CompletionService) -> None:
        self.completion = completion

    def classify(self, profiles: list[SheetProfile]) -> list[SheetClassification]:
        if not profiles:
            return []
        try:
            response = self.completion.complete(build_classification_prompt(profiles))
        except ServiceError as exc:
            logger.warning("Sheet classification falling back to rules: %s", exc)
            return rule_based_classifications(profiles)

        parsed = parse_loose_json(response)
        if not parsed.ok:
            logger.warning("Sheet classification falling back to rules: %s", parsed.reason)
            return rule_based_classifications(profiles)

        reconciled = reconcile_classifications(parsed.value, profiles)
        if reconciled is None:
            logger.warning("Sheet classification falling back to rules: response is not a list of sheet objects")
            return rule_based_classifications(profiles)
        return reconciled


def select_data_sheets(
    classifications: list[SheetClassification],
    threshold: float = DATA_SHEET_THRESHOLD,
) -> list[SheetClassification]:
    return [item for item in classifications if item.should_process and item.confidence > threshold]
