from __future__ import annotations

import json
import logging
from typing import Any, Callable

from sov_doctor.completion import CompletionService, ServiceError
from sov_doctor.grid import to_text
from sov_doctor.llm_json import parse_loose_json
from sov_doctor.schema import CANONICAL_KEY_SET, CANONICAL_KEYS, ColumnMapping
from sov_doctor.values import looks_like_numeric_text

logger = logging.getLogger(__name__)

MAPPING_GUIDE = """Location & Address:
- "Location Number", "Loc No" → "locationNumber"
- "Property", "Building Name" → "property"
- "Street Address", "Address" → "streetAddress"
- "Suburb", "City" → "suburb"
- "State", "Province" → "state"
- "Postal / ZIP Code", "ZIP" → "postalZipCode"
- "Cresta Zone", "CRESTA" → "crestaZone"
- "Country" → "country"

Financial Values:
- "PD Value", "Property Damage" → "pdValue"
- "BI Value", "Business Interruption" → "biValue"
- "Total Insurable Value", "TIV" → "totalInsurableValue"
- "PD Deductibles", "Deductible" → "pdDeductibles"

Property Details:
- "Occupancy", "Building Type" → "occupancy"
- "Construction Class", "Construction" → "constructionClass"
- "Roof Type", "Roof" → "roofType"
- "Number of Stories", "Stories" → "numberOfStories"
- "Year Built", "Built" → "yearBuilt"

Coordinates & Risk:
- "Latitude", "Lat" → "latitude"
- "Longitude", "Long", "Lon" → "longitude"
- "Fluvial Flood", "Flood Zone" → "fluvialFlood"
- "Storm Surge" → "originalStormSurge"
- "PF Risk Level" → "originalPfRiskLevel"
- "Windstorm", "Wind" → "windstorm"
- "Hailstorm", "Hail" → "hailstorm"
- "Wildfire", "Bushfire" → "wildfire"
- "Severity" → "severity\""""


def build_mapping_prompt(headers: list[str]) -> str:
    return (
        "Map these Excel columns to our standard schema:\n\n"
        f"DETECTED COLUMNS: {json.dumps(headers, ensure_ascii=False)}\n"
        f"TARGET SCHEMA KEYS: {json.dumps(list(CANONICAL_KEYS))}\n\n"
        f"{MAPPING_GUIDE}\n\n"
        "Return ONLY valid JSON mapping object:\n"
        "{\n"
        '  "detectedColumn1": "targetSchemaKey",\n'
        '  "detectedColumn2": "targetSchemaKey",\n'
        '  "unmappableColumn": null\n'
        "}"
    )


def header_text(value: Any) -> str:
    return to_text(value)


# ══════════════════════════════════════════════════════════════════════════════
# RULE-BASED FALLBACK
# ══════════════════════════════════════════════════════════════════════════════

def _has(*needles: str) -> Callable[[str], bool]:
    return lambda text: any(needle in text for needle in needles)


def _has_all(*needles: str) -> Callable[[str], bool]:
    return lambda text: all(needle in text for needle in needles)


def _either(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda text: any(predicate(text) for predicate in predicates)


# Order matters: first match wins.
HEADER_RULES: tuple[tuple[Callable[[str], bool], str], ...] = (
    (_either(_has_all("location", "number"), _has("loc no", "loc #", "loc number", "location #")), "locationNumber"),
    (_has("property", "building"), "property"),
    (_has("address"), "streetAddress"),
    (_has("suburb", "city"), "suburb"),
    (_has("state", "province"), "state"),
    (_has("zip", "postal", "postcode"), "postalZipCode"),
    (_has("country"), "country"),
    (_has("occupancy", "building type"), "occupancy"),
    (lambda text: "pd" in text and "deduct" not in text, "pdValue"),
    (_has("bi"), "biValue"),
    (_has("tiv", "total"), "totalInsurableValue"),
    (_has("lat"), "latitude"),
    (_has("lon"), "longitude"),
    (_has("deduct"), "pdDeductibles"),
    (_has("cresta"), "crestaZone"),
    (_has("construction"), "constructionClass"),
    (_has("roof"), "roofType"),
    (_has("stories", "storey", "floors"), "numberOfStories"),
    (_has("built", "year"), "yearBuilt"),
    (_has("surge"), "originalStormSurge"),
    (_has("pf risk", "risk level"), "originalPfRiskLevel"),
    (_has("flood"), "fluvialFlood"),
    (_has("wind"), "windstorm"),
    (_has("hail"), "hailstorm"),
    (_has("wildfire", "bushfire"), "wildfire"),
    (_has("severity"), "severity"),
)


def fallback_target(header: str) -> str | None:
    lowered = header.strip().lower()
    if not lowered or lowered in {"null", "undefined"}:
        return None
    if looks_like_numeric_text(lowered):
        return None
    for predicate, target in HEADER_RULES:
        if predicate(lowered):
            return target
    return None


def fallback_mapping(headers: list[str]) -> ColumnMapping:
    return ColumnMapping({header: fallback_target(header) for header in headers}, source="rules")


# ══════════════════════════════════════════════════════════════════════════════
# AI PATH
# ══════════════════════════════════════════════════════════════════════════════

def reconcile_mapping(parsed: Any, headers: list[str]) -> ColumnMapping | None:
    """
    Make the service's answer total over `headers`. Targets outside the
    canonical schema become None; headers the answer leaves out take their
    rule-based target. Returns None when the answer is not an object.
    """
    if not isinstance(parsed, dict):
        return None
    columns: dict[str, str | None] = {}
    skipped: list[str] = []
    for header in headers:
        if header not in parsed:
            skipped.append(header)
            columns[header] = fallback_target(header)
            continue
        target = parsed[header]
        if target is not None and (not isinstance(target, str) or target not in CANONICAL_KEY_SET):
            logger.info("Ignoring non-canonical target %r for column %r", target, header)
            target = None
        columns[header] = target
    if skipped:
        logger.warning("Completion service skipped %d column(s); using rules for: %s", len(skipped), skipped)
    return ColumnMapping(columns, source="ai")


class ColumnMapper:
    def __init__(self, completion: CompletionService) -> None:
        self.completion = completion

    def map_headers(self, raw_headers: list[Any]) -> ColumnMapping:
        headers = list(dict.fromkeys(header_text(value) for value in raw_headers))
        if not headers:
            return ColumnMapping({}, source="rules")
        try:
            response = self.completion.complete(build_mapping_prompt(headers))
        except ServiceError as exc:
            logger.warning("Column mapping falling back to rules: %s", exc)
            return fallback_mapping(headers)

        parsed = parse_loose_json(response)
        if not parsed.ok:
            logger.warning("Column mapping falling back to rules: %s", parsed.reason)
            return fallback_mapping(headers)

        mapping = reconcile_mapping(parsed.value, headers)
        if mapping is None:
            logger.warning("Column mapping falling back to rules: response is not a JSON object")
            return fallback_mapping(headers)
        return mapping
