import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shift_reports.db import Base, get_db
from shift_reports.main import app
from shift_reports.auth.security import get_password_hash, create_access_token
from shift_reports.models.models import User, Project, Vehicle
from shift_reports.services.history import ActingUser


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def project(db):
    p = Project(name="Autopista Norte", location="Km 12+400")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture()
def other_project(db):
    p = Project(name="Presa El Cajón", location="Nayarit")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def _make_user(db, username, name, role, projects=()):
    user = User(
        username=username,
        name=name,
        password_hash=get_password_hash("s3cret-pass"),
        role=role,
    )
    user.projects = list(projects)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin(db):
    return _make_user(db, "admin", "Ana Admin", "admin")


@pytest.fixture()
def supervisor(db):
    return _make_user(db, "super", "Sergio Supervisor", "supervisor")


@pytest.fixture()
def field_lead(db, project):
    return _make_user(db, "lead", "Lucía Frente", "field_lead", projects=[project])


@pytest.fixture()
def acting(admin):
    return ActingUser(user_id=admin.id, user_name=admin.name, role=admin.role)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), role=user.role)}"}


@pytest.fixture()
def make_vehicle(db):
    def _make(economic_number="CV-01", odometer_start=1000.0, **kwargs):
        vehicle = Vehicle(
            name=kwargs.pop("name", "Camión de volteo"),
            type=kwargs.pop("type", "Camión"),
            economic_number=economic_number,
            odometer_start=odometer_start,
            odometer_end=odometer_start,
            hours_operated=0,
            **kwargs,
        )
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle

    return _make


def machinery(vehicle=None, start=None, end=None, **kwargs):
    entry = {
        "vehicle_id": str(vehicle.id) if vehicle is not None else None,
        "vehicle_name": getattr(vehicle, "name", None),
        "vehicle_type": getattr(vehicle, "type", None),
        "economic_number": getattr(vehicle, "economic_number", None),
        "odometer_start": start,
        "odometer_end": end,
        "operator_name": "Juan Pérez",
        "activity_description": "Acarreo a terraplén",
    }
    entry.update(kwargs)
    return entry


def report_payload(project, **overrides) -> dict:
    payload = {
        "project_id": str(project.id),
        "date": "2026-10-01",
        "shift": "first",
        "start_time": "07:00",
        "end_time": "15:00",
        "location": "Km 12+400",
        "work_zone": {"id": "z1", "name": "Zona A"},
        "work_section": {"id": "s1", "name": "Tramo 1"},
        "front_supervisor_name": "Ing. Ramírez",
        "overseer_name": "Pedro Sánchez",
        "hauling_entries": [
            {
                "material": "Tepetate",
                "trip_count": 3,
                "capacity": 14.0,
                "loose_volume": 42.0,
                "layer_number": "2",
                "layer_elevation": "101.50",
                "origin": "Banco 3",
                "destination": "Terraplén",
            }
        ],
        "material_entries": [],
        "water_entries": [],
        "machinery_entries": [],
        "personnel_entries": [],
        "notes": "Sin incidentes",
        "map_pins": None,
    }
    payload.update(overrides)
    return payload
