import uuid
from typing import List

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models.models import Project


def load_projects(db: Session, project_ids: List[uuid.UUID]) -> List[Project]:
    """Resolve project ids for an assignment; any unknown id rejects the whole request."""
    projects = db.query(Project).filter(Project.id.in_(project_ids)).all() if project_ids else []
    if len(projects) != len(set(project_ids or [])):
        raise HTTPException(status_code=400, detail="Unknown project id")
    return projects
