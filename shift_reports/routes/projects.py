import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles, allowed_project_ids
from ..models.models import Project, User
from ..schemas.common import ok
from ..schemas.catalogs import (
    ProjectCreate,
    ProjectUpdate,
    ProjectMembersUpdate,
    ProjectResponse,
)


router = APIRouter(prefix="/projects", tags=["projects"])


def _get_project(db: Session, project_id: uuid.UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _load_users(db: Session, user_ids: List[uuid.UUID]) -> List[User]:
    users = db.query(User).filter(User.id.in_(user_ids)).all() if user_ids else []
    if len(users) != len(set(user_ids or [])):
        raise HTTPException(status_code=400, detail="Unknown user id")
    return users


@router.get("")
def list_projects(
    active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Projects visible to the current user"""
    query = db.query(Project)
    allowed = allowed_project_ids(user)
    if allowed is not None:
        query = query.filter(Project.id.in_(allowed))
    if active is not None:
        query = query.filter(Project.active == active)
    projects = query.order_by(Project.name.asc()).all()
    return ok([ProjectResponse.model_validate(p) for p in projects])


@router.get("/{project_id}")
def get_project(project_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    allowed = allowed_project_ids(user)
    if allowed is not None and project_id not in allowed:
        raise HTTPException(status_code=403, detail="Forbidden: project not assigned")
    return ok(ProjectResponse.model_validate(_get_project(db, project_id)))


@router.post("", status_code=201)
def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    project = Project(**payload.model_dump(exclude={"member_ids"}))
    project.members = _load_users(db, payload.member_ids or [])
    db.add(project)
    db.commit()
    db.refresh(project)
    return ok(ProjectResponse.model_validate(project))


@router.patch("/{project_id}")
def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    project = _get_project(db, project_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(project, key, value)
    db.commit()
    db.refresh(project)
    return ok(ProjectResponse.model_validate(project))


@router.put("/{project_id}/members")
def set_project_members(
    project_id: uuid.UUID,
    payload: ProjectMembersUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    project = _get_project(db, project_id)
    project.members = _load_users(db, payload.member_ids)
    db.commit()
    return ok({"id": str(project.id), "member_ids": [str(u.id) for u in project.members]})


@router.delete("/{project_id}")
def delete_project(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    """Delete a project (soft delete by clearing active)"""
    project = _get_project(db, project_id)
    project.active = False
    db.commit()
    return ok({"id": str(project_id), "active": False})
