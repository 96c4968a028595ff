from __future__ import annotations

from sov_doctor.schema import CRITICAL_FIELDS, ColumnMapping


def mapping_confidence(mapping: ColumnMapping) -> float:
    """Half overall column coverage, half critical-field coverage."""
    total_columns = len(mapping.columns)
    if total_columns == 0:
        return 0.0
    targets = list(mapping.columns.values())
    mapped_columns = sum(1 for target in targets if target is not None)
    critical_covered = sum(1 for field in CRITICAL_FIELDS if field in targets)
    return 0.5 * (mapped_columns / total_columns) + 0.5 * (critical_covered / len(CRITICAL_FIELDS))
