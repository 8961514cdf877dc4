from __future__ import annotations

from typing import Any

import pandas as pd

ID_MARKERS = ("id", "key", "number")
IMPORTANT_MARKERS = ("name", "status", "type", "active", "description")


def _is_id_field(name: str) -> bool:
    lowered = name.lower()
    return lowered == "sys_id" or any(m in lowered for m in ID_MARKERS)


def _is_important_field(name: str) -> bool:
    lowered = name.lower()
    return any(m in lowered for m in IMPORTANT_MARKERS)


def build_preview(records: list[dict[str, Any]], *, sample_size: int = 5) -> dict[str, Any]:
    """
    Summarize flattened records for display:
    field names in discovery order, likely identifier and descriptive fields,
    per-field non-null counts and the first few records.
    """
    if not records:
        return {
            "totalRecords": 0,
            "fieldsDetected": 0,
            "availableFields": [],
            "idFields": [],
            "importantFields": [],
            "nonNullCounts": {},
            "sampleRecords": [],
            "error": "No records found in API response",
        }

    df = pd.DataFrame(records)
    fields = [str(c) for c in df.columns]
    id_fields = [f for f in fields if _is_id_field(f)]
    important = [f for f in fields if f not in id_fields and _is_important_field(f)]
    non_null = {str(k): int(v) for k, v in df.notna().sum().items()}

    return {
        "totalRecords": int(len(df)),
        "fieldsDetected": len(fields),
        "availableFields": fields,
        "idFields": id_fields,
        "importantFields": important,
        "nonNullCounts": non_null,
        "sampleRecords": records[:sample_size],
    }
