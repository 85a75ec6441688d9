"""
Report lifecycle: create, update with change history, delete.

Report and history writes are committed first. Vehicle hour-meter updates run
afterwards, one vehicle per transaction, and their failures are returned as
warnings so a saved report is never lost because of fleet state.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Project, Report, ReportModification
from ..schemas.reports import ReportCreate, ReportFields, ReportUpdate
from . import fleet_registry
from .errors import ConflictError, DependencyUnavailable, NotFoundError, ValidationError
from .history import ActingUser, list_modifications, record_modification
from .report_diff import REPORT_FIELDS, diff, merge, machinery_vehicle_ids


logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("project_id", "date", "shift")
# Scalar fields written with their Python value instead of the JSON form
_NATIVE_FIELDS = frozenset({"project_id", "date"})


@dataclass
class EngineResult:
    report: Report
    warnings: List[Dict] = field(default_factory=list)
    changes: List[Dict] = field(default_factory=list)


def report_state(report: Report) -> Dict:
    """JSON-compatible snapshot of the fields tracked by the change history."""
    return ReportFields.model_validate(report).model_dump(mode="json")


def _normalize(state: Dict) -> Dict:
    return ReportFields.model_validate(state).model_dump(mode="json")


def validate_state(state: Dict) -> None:
    """Raise ValidationError listing every problem found in a report state."""
    errors = []
    for name in REQUIRED_FIELDS:
        if state.get(name) in (None, ""):
            errors.append({"field": name, "message": f"{name} is required"})

    for index, entry in enumerate(state.get("machinery_entries") or []):
        if not entry.get("vehicle_id"):
            continue
        start = entry.get("odometer_start")
        end = entry.get("odometer_end")
        if start is not None and end is not None and end < start:
            errors.append({
                "field": f"machinery_entries[{index}]",
                "index": index,
                "vehicle_id": entry.get("vehicle_id"),
                "message": f"odometer_end ({end}) is lower than odometer_start ({start})",
            })

    if errors:
        raise ValidationError("Report validation failed", details=errors)


def _apply_state(report: Report, state: Dict) -> None:
    fields = ReportFields.model_validate(state)
    native = fields.model_dump(mode="python")
    as_json = fields.model_dump(mode="json")
    for name in REPORT_FIELDS:
        setattr(report, name, native[name] if name in _NATIVE_FIELDS else as_json[name])
    report.machinery_usage = fleet_registry.build_machinery_usage(as_json["machinery_entries"])


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("report_store_failed", operation=what, error=str(e))
        raise DependencyUnavailable(f"Report store unavailable while trying to {what}") from e


def _sync_vehicles(db: Session, vehicle_ids: Iterable[str]) -> List[Dict]:
    warnings = []
    for vehicle_id in vehicle_ids:
        try:
            fleet_registry.recompute_vehicle(db, vehicle_id)
            db.commit()
        except (DependencyUnavailable, SQLAlchemyError) as e:
            db.rollback()
            logger.warning("vehicle_sync_failed", vehicle_id=str(vehicle_id), error=str(e))
            warnings.append({
                "kind": DependencyUnavailable.kind,
                "vehicle_id": str(vehicle_id),
                "message": "Report saved but vehicle hour-meter could not be updated",
            })
    return warnings


def _ensure_project(db: Session, project_id) -> None:
    if project_id is None:
        return
    if not db.query(Project.id).filter(Project.id == uuid.UUID(str(project_id))).first():
        raise ValidationError(
            "Report validation failed",
            details=[{"field": "project_id", "message": "project does not exist"}],
        )


def get_report(db: Session, report_id: uuid.UUID) -> Report:
    report = db.query(Report).filter(Report.id == report_id).first()
    if not report:
        raise NotFoundError("Report not found")
    return report


def find_by_offline_id(db: Session, offline_id: str) -> Optional[Report]:
    return db.query(Report).filter(Report.offline_id == offline_id).first()


def _offline_duplicate(existing: Report, payload: ReportCreate) -> EngineResult:
    if existing.project_id != payload.project_id:
        logger.warning(
            "report_offline_id_conflict",
            offline_id=payload.offline_id,
            project_id=str(payload.project_id),
        )
        raise ConflictError(
            "offline_id already used by a report of another project",
            details={"field": "offline_id", "offline_id": payload.offline_id},
        )
    logger.info("report_offline_duplicate", report_id=str(existing.id), offline_id=payload.offline_id)
    return EngineResult(report=existing)


def create_report(db: Session, payload: ReportCreate, acting_user: ActingUser) -> EngineResult:
    """
    Persist a new report and apply its machinery usage to the Fleet Registry.

    A payload carrying an offline_id that was already stored for the same
    project returns the existing report without side effects; the same
    offline_id under another project is a ConflictError. No ModificationEvent
    is written.
    """
    if payload.offline_id:
        existing = find_by_offline_id(db, payload.offline_id)
        if existing:
            return _offline_duplicate(existing, payload)

    state = _normalize(payload.model_dump(mode="json", include=set(REPORT_FIELDS)))
    validate_state(state)
    _ensure_project(db, state["project_id"])

    report = Report(
        author_user_id=acting_user.user_id,
        author_name=acting_user.user_name,
        offline_id=payload.offline_id,
        created_at=datetime.utcnow(),
    )
    _apply_state(report, state)
    db.add(report)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        if isinstance(e, IntegrityError) and payload.offline_id:
            # A concurrent resubmission stored the same offline_id first
            existing = find_by_offline_id(db, payload.offline_id)
            if existing is not None:
                return _offline_duplicate(existing, payload)
        logger.error("report_store_failed", operation="create report", error=str(e))
        raise DependencyUnavailable("Report store unavailable while trying to create report") from e
    db.refresh(report)
    logger.info("report_created", report_id=str(report.id), project_id=str(report.project_id))

    warnings = _sync_vehicles(db, machinery_vehicle_ids(state))
    return EngineResult(report=report, warnings=warnings)


def update_report(
    db: Session,
    report_id: uuid.UUID,
    payload: ReportUpdate,
    acting_user: ActingUser,
    note: Optional[str] = None,
) -> EngineResult:
    """
    Apply a partial update and record what changed.

    Only fields present in the payload are merged. When nothing differs the
    report is returned as is and no history is written. Otherwise one
    ModificationEvent is appended and every vehicle referenced before or after
    the edit is recomputed.
    """
    report = get_report(db, report_id)
    if note is None:
        note = payload.modification_note

    before = report_state(report)
    partial = payload.model_dump(mode="json", exclude_unset=True, include=set(REPORT_FIELDS))
    candidate = _normalize(merge(before, partial))
    changes = diff(before, candidate)
    if not changes:
        logger.info("report_update_noop", report_id=str(report.id))
        return EngineResult(report=report)

    validate_state(candidate)
    if "project_id" in partial:
        _ensure_project(db, candidate["project_id"])

    _apply_state(report, candidate)
    report.updated_at = datetime.now(timezone.utc)
    record_modification(db, report.id, acting_user, changes, note)
    _commit(db, "update report")
    db.refresh(report)
    logger.info(
        "report_updated",
        report_id=str(report.id),
        fields=[c["field"] for c in changes],
        acting_user_id=str(acting_user.user_id) if acting_user.user_id else None,
    )

    vehicle_ids = machinery_vehicle_ids(before)
    for vehicle_id in machinery_vehicle_ids(candidate):
        if vehicle_id not in vehicle_ids:
            vehicle_ids.append(vehicle_id)
    warnings = _sync_vehicles(db, vehicle_ids)
    return EngineResult(report=report, warnings=warnings, changes=changes)


def delete_report(db: Session, report_id: uuid.UUID) -> None:
    """Remove a report and its history. Vehicle hour-meters are left as they are."""
    report = get_report(db, report_id)
    db.delete(report)
    _commit(db, "delete report")
    logger.info("report_deleted", report_id=str(report_id))


def list_reports(
    db: Session,
    project_id: Optional[uuid.UUID] = None,
    project_ids: Optional[List[uuid.UUID]] = None,
    author_user_id: Optional[uuid.UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Report]:
    """
    List reports, newest shift first.

    Args:
        project_id: Only reports of this project
        project_ids: Restrict to these projects (access scoping); None means no restriction
        author_user_id: Only reports written by this user
        date_from: Inclusive lower bound on the report date
        date_to: Inclusive upper bound on the report date
        limit: Page size (capped by settings.max_report_limit)
        offset: Rows to skip
    """
    query = db.query(Report)
    if project_id:
        query = query.filter(Report.project_id == project_id)
    if project_ids is not None:
        query = query.filter(Report.project_id.in_(project_ids))
    if author_user_id:
        query = query.filter(Report.author_user_id == author_user_id)
    if date_from:
        query = query.filter(Report.date >= date_from)
    if date_to:
        query = query.filter(Report.date <= date_to)

    limit = settings.default_report_limit if limit is None else limit
    limit = min(max(1, limit), settings.max_report_limit)
    offset = max(0, offset or 0)
    return (
        query.order_by(Report.date.desc(), Report.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_modification_history(db: Session, report_id: uuid.UUID) -> List[ReportModification]:
    get_report(db, report_id)
    return list_modifications(db, report_id)


def report_stats(
    db: Session,
    project_ids: Optional[List[uuid.UUID]] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict:
    """Totals over the reports of the given projects and date range."""
    query = db.query(Report)
    if project_ids is not None:
        query = query.filter(Report.project_id.in_(project_ids))
    if date_from:
        query = query.filter(Report.date >= date_from)
    if date_to:
        query = query.filter(Report.date <= date_to)
    reports = query.all()

    def _total(section: str, key: str) -> float:
        return float(sum((e.get(key) or 0) for r in reports for e in (getattr(r, section) or [])))

    def _count(section: str) -> int:
        return sum(len(getattr(r, section) or []) for r in reports)

    return {
        "total_reports": len(reports),
        "distinct_projects": len({r.project_id for r in reports}),
        "distinct_authors": len({r.author_user_id for r in reports if r.author_user_id}),
        "total_hauling_entries": _count("hauling_entries"),
        "total_material_entries": _count("material_entries"),
        "total_water_entries": _count("water_entries"),
        "total_machinery_entries": _count("machinery_entries"),
        "total_personnel_entries": _count("personnel_entries"),
        "total_hauled_volume": _total("hauling_entries", "loose_volume"),
        "total_water_volume": _total("water_entries", "volume"),
        "total_machinery_hours": _total("machinery_entries", "hours_operated"),
        "date_from": date_from,
        "date_to": date_to,
    }
