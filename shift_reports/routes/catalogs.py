import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles
from ..models.models import CatalogItem
from ..schemas.common import ok
from ..schemas.catalogs import (
    CatalogKind,
    CatalogItemCreate,
    CatalogItemUpdate,
    CatalogItemResponse,
)


router = APIRouter(prefix="/catalogs", tags=["catalogs"])


def _get_item(db: Session, kind: CatalogKind, item_id: uuid.UUID) -> CatalogItem:
    item = db.query(CatalogItem).filter(CatalogItem.id == item_id, CatalogItem.kind == kind.value).first()
    if not item:
        raise HTTPException(status_code=404, detail="Catalog item not found")
    return item


def _ensure_unique(db: Session, kind: CatalogKind, name: str, exclude_id: Optional[uuid.UUID] = None):
    query = db.query(CatalogItem).filter(CatalogItem.kind == kind.value, CatalogItem.name == name)
    if exclude_id:
        query = query.filter(CatalogItem.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail=f"{kind.value} '{name}' already exists")


@router.get("/{kind}")
def list_catalog(
    kind: CatalogKind,
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(CatalogItem).filter(CatalogItem.kind == kind.value)
    if not include_inactive:
        query = query.filter(CatalogItem.active.is_(True))
    items = query.order_by(CatalogItem.sort_index.asc(), CatalogItem.name.asc()).all()
    return ok([CatalogItemResponse.model_validate(i) for i in items])


@router.post("/{kind}", status_code=201)
def create_catalog_item(
    kind: CatalogKind,
    payload: CatalogItemCreate,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Register a new catalog value (any authenticated user may add values from the report form)"""
    name = payload.name.strip()
    _ensure_unique(db, kind, name)
    item = CatalogItem(kind=kind.value, **{**payload.model_dump(), "name": name})
    db.add(item)
    db.commit()
    db.refresh(item)
    return ok(CatalogItemResponse.model_validate(item))


@router.patch("/{kind}/{item_id}")
def update_catalog_item(
    kind: CatalogKind,
    item_id: uuid.UUID,
    payload: CatalogItemUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    item = _get_item(db, kind, item_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        data["name"] = data["name"].strip()
        _ensure_unique(db, kind, data["name"], exclude_id=item.id)
    for key, value in data.items():
        if key in ("name", "active") and value is None:
            continue
        setattr(item, key, value)
    db.commit()
    db.refresh(item)
    return ok(CatalogItemResponse.model_validate(item))


@router.delete("/{kind}/{item_id}")
def delete_catalog_item(
    kind: CatalogKind,
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    """Soft delete: the value stays on reports that already use it"""
    item = _get_item(db, kind, item_id)
    item.active = False
    db.commit()
    return ok({"id": str(item_id), "active": False})
