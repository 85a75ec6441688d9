import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles
from ..models.models import Personnel, Project
from ..schemas.common import ok
from .lookups import load_projects
from ..schemas.catalogs import PersonnelCreate, PersonnelUpdate, PersonnelResponse


router = APIRouter(prefix="/personnel", tags=["personnel"])


def _get_person(db: Session, personnel_id: uuid.UUID) -> Personnel:
    person = db.query(Personnel).filter(Personnel.id == personnel_id).first()
    if not person:
        raise HTTPException(status_code=404, detail="Personnel not found")
    return person


@router.get("")
def list_personnel(
    project_id: Optional[uuid.UUID] = Query(None),
    role_id: Optional[uuid.UUID] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(Personnel)
    if not include_inactive:
        query = query.filter(Personnel.active.is_(True))
    if project_id:
        query = query.filter(Personnel.projects.any(Project.id == project_id))
    if role_id:
        query = query.filter(Personnel.role_id == role_id)
    people = query.order_by(Personnel.name.asc()).all()
    return ok([PersonnelResponse.model_validate(p) for p in people])


@router.get("/{personnel_id}")
def get_personnel(personnel_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return ok(PersonnelResponse.model_validate(_get_person(db, personnel_id)))


@router.post("", status_code=201)
def create_personnel(
    payload: PersonnelCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    person = Personnel(**payload.model_dump(exclude={"project_ids"}))
    person.projects = load_projects(db, payload.project_ids or [])
    db.add(person)
    db.commit()
    db.refresh(person)
    return ok(PersonnelResponse.model_validate(person))


@router.patch("/{personnel_id}")
def update_personnel(
    personnel_id: uuid.UUID,
    payload: PersonnelUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    person = _get_person(db, personnel_id)
    data = payload.model_dump(exclude_unset=True)
    if "project_ids" in data:
        person.projects = load_projects(db, data.pop("project_ids") or [])
    for key, value in data.items():
        if key in ("name", "active") and value is None:
            continue
        setattr(person, key, value)
    db.commit()
    db.refresh(person)
    return ok(PersonnelResponse.model_validate(person))


@router.delete("/{personnel_id}")
def delete_personnel(
    personnel_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    """Delete personnel (soft delete by clearing active)"""
    person = _get_person(db, personnel_id)
    person.active = False
    db.commit()
    return ok({"id": str(personnel_id), "active": False})
