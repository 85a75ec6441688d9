import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..logging import structlog
from ..models.models import User
from ..schemas.auth import (
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    UserCreate,
    UserUpdate,
    MeResponse,
)
from ..schemas.common import ok
from ..routes.lookups import load_projects
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    require_roles,
)


router = APIRouter(prefix="/auth", tags=["auth"])


def _user_to_dict(u: User) -> dict:
    return {
        "id": str(u.id),
        "username": u.username,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "is_active": u.is_active,
        "project_ids": [str(p.id) for p in u.projects],
    }


@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter((User.username == req.identifier) | (User.email == req.identifier)).first()
    if not user or not user.is_active or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    access = create_access_token(str(user.id), role=user.role)
    refresh = create_refresh_token(str(user.id))
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    structlog.get_logger().info("user_login", user_id=str(user.id))
    return ok(TokenResponse(access_token=access, refresh_token=refresh))


@router.post("/refresh")
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user = db.query(User).filter(User.id == uuid.UUID(str(payload["sub"]))).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    return ok(TokenResponse(
        access_token=create_access_token(str(user.id), role=user.role),
        refresh_token=create_refresh_token(str(user.id)),
    ))


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return ok(MeResponse(
        id=str(user.id),
        username=user.username,
        name=user.name,
        email=user.email,
        role=user.role,
        project_ids=[str(p.id) for p in user.projects],
    ))


@router.get("/users")
def list_users(db: Session = Depends(get_db), _=Depends(require_roles("admin"))):
    users = db.query(User).order_by(User.created_at.desc()).all()
    return ok([_user_to_dict(u) for u in users])


@router.post("/users")
def create_user(payload: UserCreate, db: Session = Depends(get_db), _=Depends(require_roles("admin"))):
    exists = db.query(User).filter(User.username == payload.username).first()
    if exists:
        raise HTTPException(status_code=409, detail="Username already taken")
    user = User(
        username=payload.username,
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=payload.role.value,
    )
    user.projects = load_projects(db, payload.project_ids or [])
    db.add(user)
    db.commit()
    db.refresh(user)
    return ok(_user_to_dict(user))


@router.patch("/users/{user_id}")
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    data = payload.model_dump(exclude_unset=True)
    if "password" in data:
        password = data.pop("password")
        if password:
            user.password_hash = get_password_hash(password)
    if "project_ids" in data:
        user.projects = load_projects(db, data.pop("project_ids") or [])
    role = data.pop("role", None)
    if role is not None:
        user.role = role.value
    for key, value in data.items():
        if value is not None:
            setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return ok(_user_to_dict(user))
