"""
Seed the first admin user and the default report catalogs.

Usage:
  ADMIN_PASSWORD=... python scripts/seed_initial_data.py

This script is idempotent: running it multiple times will upsert the same values.
"""
import os

from shift_reports.db import Base, SessionLocal, engine
from shift_reports.auth.security import get_password_hash
from shift_reports.models.models import User, CatalogItem


CATALOGS = {
    "material": [
        {"name": "Tepetate", "unit": "m3"},
        {"name": "Grava", "unit": "m3"},
        {"name": "Arena", "unit": "m3"},
        {"name": "Base hidráulica", "unit": "m3"},
        {"name": "Material de despalme", "unit": "m3"},
    ],
    "capacity": [
        {"name": "7 m3", "value": "7", "unit": "m3"},
        {"name": "14 m3", "value": "14", "unit": "m3"},
        {"name": "20 m3", "value": "20", "unit": "m3"},
    ],
    "origin": [{"name": "Banco de préstamo"}, {"name": "Corte"}],
    "destination": [{"name": "Terraplén"}, {"name": "Tiradero"}],
    "cargo_type": [{"name": "Material"}, {"name": "Agua"}],
    "vehicle_type": [
        {"name": "Camión de volteo"},
        {"name": "Pipa de agua"},
        {"name": "Excavadora"},
        {"name": "Motoconformadora"},
        {"name": "Compactador"},
    ],
    "personnel_role": [{"name": "Operador"}, {"name": "Chofer"}, {"name": "Ayudante general"}],
}


def seed_catalogs(db):
    for kind, items in CATALOGS.items():
        for index, data in enumerate(items):
            existing = db.query(CatalogItem).filter(
                CatalogItem.kind == kind,
                CatalogItem.name == data["name"],
            ).first()
            if existing:
                existing.value = data.get("value")
                existing.unit = data.get("unit")
                existing.sort_index = index
            else:
                db.add(CatalogItem(kind=kind, sort_index=index, **data))


def seed_admin(db):
    username = os.getenv("ADMIN_USERNAME", "admin")
    if db.query(User).filter(User.username == username).first():
        print(f"Admin user '{username}' already exists")
        return
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        raise SystemExit("ADMIN_PASSWORD must be set to create the admin user")
    db.add(User(
        username=username,
        name=os.getenv("ADMIN_NAME", "Administrador"),
        email=os.getenv("ADMIN_EMAIL"),
        password_hash=get_password_hash(password),
        role="admin",
    ))
    print(f"Admin user '{username}' created")


def seed_initial_data():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin(db)
        seed_catalogs(db)
        db.commit()
        print("Initial data seeded successfully!")
    except Exception as e:
        db.rollback()
        print(f"Error seeding initial data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_initial_data()
