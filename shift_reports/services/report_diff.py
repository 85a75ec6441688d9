"""
Field-level diff between two versions of a report.

Values are compared structurally; a difference anywhere inside a list or object
marks the whole top-level field as changed.
"""
from typing import Dict, Iterable, List, Optional


# Canonical order of change records in a history entry
REPORT_FIELDS = (
    "project_id",
    "date",
    "shift",
    "start_time",
    "end_time",
    "location",
    "work_zone",
    "work_section",
    "front_supervisor_name",
    "overseer_name",
    "hauling_entries",
    "material_entries",
    "water_entries",
    "machinery_entries",
    "personnel_entries",
    "notes",
    "map_pins",
)


def diff(before: Dict, after: Dict, fields: Optional[Iterable[str]] = None) -> List[Dict]:
    """
    Compare two report states.

    Args:
        before: Previous state (JSON-compatible dict)
        after: Candidate state (JSON-compatible dict)
        fields: Fields to compare, defaults to REPORT_FIELDS

    Returns:
        List of {field, before, after} in canonical field order
    """
    changes = []
    for field in fields or REPORT_FIELDS:
        before_val = before.get(field)
        after_val = after.get(field)
        if before_val != after_val:
            changes.append({
                "field": field,
                "before": before_val,
                "after": after_val,
            })
    return changes


def merge(current: Dict, partial: Dict) -> Dict:
    """Shallow merge of the fields present in `partial` over `current`."""
    candidate = dict(current)
    for field in REPORT_FIELDS:
        if field in partial:
            candidate[field] = partial[field]
    return candidate


def machinery_vehicle_ids(state: Dict) -> List[str]:
    """Vehicle ids referenced by machinery entries, in first-seen order."""
    seen: List[str] = []
    for entry in state.get("machinery_entries") or []:
        vehicle_id = entry.get("vehicle_id")
        if vehicle_id and vehicle_id not in seen:
            seen.append(vehicle_id)
    return seen
