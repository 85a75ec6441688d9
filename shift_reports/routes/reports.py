import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import (
    get_current_user,
    require_roles,
    acting_user,
    allowed_project_ids,
    ensure_project_access,
)
from ..models.models import User
from ..schemas.common import ok
from ..schemas.reports import (
    ReportCreate,
    ReportUpdate,
    ReportResponse,
    ModificationEventResponse,
    ReportStatsResponse,
)
from ..services import report_engine


router = APIRouter(prefix="/reports", tags=["reports"])


def _dump(report) -> ReportResponse:
    return ReportResponse.model_validate(report, from_attributes=True)


@router.post("", status_code=201)
def create_report(
    payload: ReportCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create a report authored by the current user"""
    ensure_project_access(user, payload.project_id)
    result = report_engine.create_report(db, payload, acting_user(user))
    return ok(_dump(result.report), warnings=result.warnings)


@router.get("")
def list_reports(
    project_id: Optional[uuid.UUID] = Query(None),
    author_user_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List reports visible to the current user, newest first"""
    ensure_project_access(user, project_id)
    reports = report_engine.list_reports(
        db,
        project_id=project_id,
        project_ids=allowed_project_ids(user),
        author_user_id=author_user_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return ok([_dump(r) for r in reports])


# Must be declared before /{report_id}
@router.get("/stats")
def report_stats(
    project_ids: Optional[List[uuid.UUID]] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Totals per report section for a set of projects and a date range"""
    allowed = allowed_project_ids(user)
    if project_ids:
        for pid in project_ids:
            ensure_project_access(user, pid)
        scope = project_ids
    else:
        scope = allowed
    stats = report_engine.report_stats(db, project_ids=scope, date_from=date_from, date_to=date_to)
    return ok(ReportStatsResponse(**stats))


@router.get("/{report_id}")
def get_report(
    report_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    report = report_engine.get_report(db, report_id)
    ensure_project_access(user, report.project_id)
    return ok(_dump(report))


@router.patch("/{report_id}")
def update_report(
    report_id: uuid.UUID,
    payload: ReportUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("admin", "supervisor")),
):
    """Partially update a report (admin or supervisor); the change is recorded in its history"""
    result = report_engine.update_report(db, report_id, payload, acting_user(user))
    return ok(_dump(result.report), warnings=result.warnings)


@router.delete("/{report_id}")
def delete_report(
    report_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    """Delete a report and its history (vehicle hour-meters are not rolled back)"""
    report_engine.delete_report(db, report_id)
    return ok({"id": str(report_id), "deleted": True})


@router.get("/{report_id}/history")
def get_report_history(
    report_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    report = report_engine.get_report(db, report_id)
    ensure_project_access(user, report.project_id)
    events = report_engine.get_modification_history(db, report_id)
    return ok([ModificationEventResponse.model_validate(e) for e in events])
