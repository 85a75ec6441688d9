import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles
from ..models.models import Vehicle, Project
from ..schemas.common import ok
from .lookups import load_projects
from ..schemas.fleet import (
    VehicleCreate,
    VehicleUpdate,
    VehicleProjectsUpdate,
    VehicleResponse,
    VehicleUsageResponse,
)
from ..services import fleet_registry


router = APIRouter(prefix="/vehicles", tags=["vehicles"])


def _get_vehicle(db: Session, vehicle_id: uuid.UUID) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


def _ensure_unique_number(db: Session, economic_number: str, exclude_id: Optional[uuid.UUID] = None):
    query = db.query(Vehicle).filter(Vehicle.economic_number == economic_number)
    if exclude_id:
        query = query.filter(Vehicle.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Economic number already registered")


@router.get("")
def list_vehicles(
    active: Optional[bool] = Query(None),
    project_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """List vehicles with filters"""
    query = db.query(Vehicle)
    if active is not None:
        query = query.filter(Vehicle.active == active)
    if project_id:
        query = query.filter(Vehicle.projects.any(Project.id == project_id))
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Vehicle.name.ilike(search_term),
                Vehicle.economic_number.ilike(search_term),
                Vehicle.type.ilike(search_term),
            )
        )
    vehicles = query.order_by(Vehicle.economic_number.asc()).limit(500).all()
    return ok([VehicleResponse.model_validate(v) for v in vehicles])


@router.get("/by-number/{economic_number}")
def get_vehicle_by_number(economic_number: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    vehicle = db.query(Vehicle).filter(Vehicle.economic_number == economic_number.strip().upper()).first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return ok(VehicleResponse.model_validate(vehicle))


@router.get("/{vehicle_id}")
def get_vehicle(vehicle_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return ok(VehicleResponse.model_validate(_get_vehicle(db, vehicle_id)))


@router.get("/{vehicle_id}/usage")
def get_vehicle_usage(vehicle_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    """Machinery entries referencing the vehicle, oldest first"""
    _get_vehicle(db, vehicle_id)
    rows = fleet_registry.usage_history(db, vehicle_id)
    return ok([VehicleUsageResponse.model_validate(r) for r in rows])


@router.post("", status_code=201)
def create_vehicle(
    payload: VehicleCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    """Register a vehicle; odometer_end starts at the baseline reading"""
    _ensure_unique_number(db, payload.economic_number)
    data = payload.model_dump(exclude={"project_ids"})
    if data.get("odometer_end") is None:
        data["odometer_end"] = data["odometer_start"]
    vehicle = Vehicle(**data, hours_operated=0)
    vehicle.projects = load_projects(db, payload.project_ids or [])
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return ok(VehicleResponse.model_validate(vehicle))


@router.patch("/{vehicle_id}")
def update_vehicle(
    vehicle_id: uuid.UUID,
    payload: VehicleUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    """Update vehicle master data (hour-meter state is derived from reports)"""
    vehicle = _get_vehicle(db, vehicle_id)
    update_data = payload.model_dump(exclude_unset=True)
    if update_data.get("economic_number"):
        _ensure_unique_number(db, update_data["economic_number"], exclude_id=vehicle.id)
    if "project_ids" in update_data:
        vehicle.projects = load_projects(db, update_data.pop("project_ids") or [])
    for key, value in update_data.items():
        if value is not None:
            setattr(vehicle, key, value)
    vehicle.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(vehicle)
    return ok(VehicleResponse.model_validate(vehicle))


@router.put("/{vehicle_id}/projects")
def set_vehicle_projects(
    vehicle_id: uuid.UUID,
    payload: VehicleProjectsUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    vehicle = _get_vehicle(db, vehicle_id)
    vehicle.projects = load_projects(db, payload.project_ids)
    vehicle.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(vehicle)
    return ok(VehicleResponse.model_validate(vehicle))


@router.post("/{vehicle_id}/recompute")
def recompute_vehicle(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    """Rebuild hour-meter state from every report that references the vehicle"""
    _get_vehicle(db, vehicle_id)
    vehicle = fleet_registry.recompute_vehicle(db, vehicle_id)
    db.commit()
    db.refresh(vehicle)
    return ok(VehicleResponse.model_validate(vehicle))


@router.delete("/{vehicle_id}")
def delete_vehicle(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "supervisor")),
):
    """Delete a vehicle (soft delete by clearing active)"""
    vehicle = _get_vehicle(db, vehicle_id)
    vehicle.active = False
    vehicle.updated_at = datetime.now(timezone.utc)
    db.commit()
    return ok({"id": str(vehicle_id), "active": False})
