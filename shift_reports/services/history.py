"""
Report change history.
Append-only ModificationEvents with integrity hashing.
"""
import hashlib
import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Dict

from sqlalchemy.orm import Session

from ..models.models import ReportModification
from ..config import settings


@dataclass(frozen=True)
class ActingUser:
    """The authenticated principal performing a report operation."""
    user_id: Optional[uuid.UUID]
    user_name: Optional[str]
    role: Optional[str] = None


def compute_integrity_hash(
    report_id: uuid.UUID,
    acting_user: ActingUser,
    changes: List[Dict],
    timestamp_utc: datetime,
    note: Optional[str] = None,
    secret: Optional[str] = None,
) -> str:
    if secret is None:
        secret = settings.jwt_secret
    # Canonical JSON representation, None values dropped and keys sorted
    canonical_data = {
        "report_id": str(report_id),
        "acting_user_id": str(acting_user.user_id) if acting_user.user_id else None,
        "acting_user_name": acting_user.user_name,
        "timestamp_utc": timestamp_utc.replace(tzinfo=None).isoformat(),
        "note": note,
        "changes": changes,
    }
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def record_modification(
    db: Session,
    report_id: uuid.UUID,
    acting_user: ActingUser,
    changes: List[Dict],
    note: Optional[str] = None,
) -> ReportModification:
    """
    Append a ModificationEvent for a report.

    The event is added to the session and flushed; the caller commits it
    together with the report write it describes.

    Args:
        db: Database session
        report_id: Modified report
        acting_user: Principal that made the change
        changes: [{field, before, after}] in canonical field order
        note: Optional free-text note supplied with the update

    Returns:
        Created ReportModification
    """
    timestamp_utc = datetime.utcnow()
    integrity_hash = None
    if settings.history_integrity:
        integrity_hash = compute_integrity_hash(report_id, acting_user, changes, timestamp_utc, note)

    event = ReportModification(
        report_id=report_id,
        acting_user_id=acting_user.user_id,
        acting_user_name=acting_user.user_name,
        acting_user_role=acting_user.role,
        note=note,
        changes=changes,
        timestamp_utc=timestamp_utc,
        integrity_hash=integrity_hash,
    )
    db.add(event)
    db.flush()
    return event


def list_modifications(db: Session, report_id: uuid.UUID) -> List[ReportModification]:
    """History of a report, oldest first."""
    return (
        db.query(ReportModification)
        .filter(ReportModification.report_id == report_id)
        .order_by(ReportModification.timestamp_utc.asc(), ReportModification.id.asc())
        .all()
    )


def verify_integrity(event: ReportModification) -> bool:
    if not event.integrity_hash:
        return False
    expected = compute_integrity_hash(
        event.report_id,
        ActingUser(event.acting_user_id, event.acting_user_name, event.acting_user_role),
        event.changes,
        event.timestamp_utc,
        event.note,
    )
    return expected == event.integrity_hash
