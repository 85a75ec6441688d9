"""
Fleet Registry hour-meter state derived from report machinery entries.

A vehicle's odometer_end is the reading of the latest machinery entry that
references it, ordered by report date, report creation time and position inside
the report. hours_operated is the cumulative sum of every entry's hours.
"""
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.models import Report, ReportMachineryUsage, Vehicle
from .errors import DependencyUnavailable


logger = structlog.get_logger(__name__)


def _as_uuid(value: Union[str, uuid.UUID]) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def apply_machinery_usage(
    db: Session,
    vehicle_id: Union[str, uuid.UUID],
    odometer_end: Optional[float],
    hours_operated: Optional[float] = None,
) -> Optional[Vehicle]:
    """
    Write hour-meter state onto a single vehicle.

    Only the vehicle row is locked (SELECT ... FOR UPDATE where supported).
    Calling it again with the same values leaves the vehicle unchanged.

    Args:
        db: Database session
        vehicle_id: Vehicle to update
        odometer_end: Latest reading; None resets it to the vehicle baseline
        hours_operated: Cumulative operating hours, left untouched when None

    Returns:
        Updated Vehicle, or None when the vehicle does not exist
    """
    vid = _as_uuid(vehicle_id)
    try:
        vehicle = db.query(Vehicle).filter(Vehicle.id == vid).with_for_update().first()
    except SQLAlchemyError as e:
        raise DependencyUnavailable(f"Fleet registry unavailable: {e.__class__.__name__}") from e
    if not vehicle:
        logger.warning("vehicle_not_found", vehicle_id=str(vid))
        return None

    vehicle.odometer_end = odometer_end if odometer_end is not None else vehicle.odometer_start
    if hours_operated is not None:
        vehicle.hours_operated = hours_operated
    vehicle.updated_at = datetime.now(timezone.utc)
    try:
        db.flush()
    except SQLAlchemyError as e:
        raise DependencyUnavailable(f"Fleet registry unavailable: {e.__class__.__name__}") from e
    logger.info(
        "vehicle_odometer_applied",
        vehicle_id=str(vid),
        odometer_end=vehicle.odometer_end,
        hours_operated=vehicle.hours_operated,
    )
    return vehicle


def usage_history(db: Session, vehicle_id: Union[str, uuid.UUID]) -> List[ReportMachineryUsage]:
    """Every machinery entry referencing the vehicle, oldest first."""
    return (
        db.query(ReportMachineryUsage)
        .join(Report, Report.id == ReportMachineryUsage.report_id)
        .filter(ReportMachineryUsage.vehicle_id == _as_uuid(vehicle_id))
        .order_by(Report.date.asc(), Report.created_at.asc(), ReportMachineryUsage.position.asc())
        .all()
    )


def recompute_vehicle(db: Session, vehicle_id: Union[str, uuid.UUID]) -> Optional[Vehicle]:
    """Derive a vehicle's odometer_end and hours_operated from all reports referencing it."""
    try:
        rows = usage_history(db, vehicle_id)
    except SQLAlchemyError as e:
        raise DependencyUnavailable(f"Fleet registry unavailable: {e.__class__.__name__}") from e

    if rows:
        odometer_end = rows[-1].odometer_end
        hours = sum(r.hours_operated or 0 for r in rows)
    else:
        odometer_end = None
        hours = 0.0
    return apply_machinery_usage(db, vehicle_id, odometer_end, hours)


def build_machinery_usage(machinery_entries: Iterable[Dict]) -> List[ReportMachineryUsage]:
    """Usage rows for the machinery entries that reference a vehicle and carry a final reading."""
    rows = []
    for position, entry in enumerate(machinery_entries or []):
        vehicle_id = entry.get("vehicle_id")
        odometer_end = entry.get("odometer_end")
        if not vehicle_id or odometer_end is None:
            continue
        rows.append(ReportMachineryUsage(
            vehicle_id=_as_uuid(vehicle_id),
            position=position,
            odometer_start=entry.get("odometer_start"),
            odometer_end=odometer_end,
            hours_operated=entry.get("hours_operated") or 0,
        ))
    return rows
