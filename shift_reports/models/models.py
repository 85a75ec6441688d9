import uuid
from datetime import datetime, date as date_type
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Table,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


# Association table for many-to-many User<->Project (project members)
project_members = Table(
    "project_members",
    Base.metadata,
    Column("project_id", UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("project_id", "user_id", name="uq_project_member"),
)

# Association table for many-to-many Vehicle<->Project
vehicle_projects = Table(
    "vehicle_projects",
    Base.metadata,
    Column("vehicle_id", UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), primary_key=True),
    Column("project_id", UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("vehicle_id", "project_id", name="uq_vehicle_project"),
)

# Association table for many-to-many Personnel<->Project
personnel_projects = Table(
    "personnel_projects",
    Base.metadata,
    Column("personnel_id", UUID(as_uuid=True), ForeignKey("personnel.id", ondelete="CASCADE"), primary_key=True),
    Column("project_id", UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("personnel_id", "project_id", name="uq_personnel_project"),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="field_lead")  # admin|supervisor|field_lead
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    projects = relationship("Project", secondary=project_members, back_populates="members")


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    members = relationship("User", secondary=project_members, back_populates="projects")
    vehicles = relationship("Vehicle", secondary=vehicle_projects, back_populates="projects")


class Vehicle(Base):
    """Fleet Registry entry: a vehicle or machine and its hour-meter state"""
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    economic_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    capacity: Mapped[Optional[str]] = mapped_column(String(100))
    odometer_start: Mapped[float] = mapped_column(Float, nullable=False, default=0)  # Baseline hour-meter reading
    odometer_end: Mapped[Optional[float]] = mapped_column(Float)  # Latest reading seen in a report
    hours_operated: Mapped[float] = mapped_column(Float, nullable=False, default=0)  # Cumulative across reports
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    projects = relationship("Project", secondary=vehicle_projects, back_populates="vehicles")

    @property
    def project_ids(self) -> list:
        return [p.id for p in self.projects]


class Personnel(Base):
    __tablename__ = "personnel"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("catalog_items.id", ondelete="SET NULL"))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    projects = relationship("Project", secondary=personnel_projects)

    @property
    def project_ids(self) -> list:
        return [p.id for p in self.projects]


class CatalogItem(Base):
    """Lookup values offered by the report forms (materials, capacities, origins, ...)"""
    __tablename__ = "catalog_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    kind: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # material|capacity|origin|destination|cargo_type|vehicle_type|personnel_role
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(String(100))  # e.g. capacity in m3
    unit: Mapped[Optional[str]] = mapped_column(String(50))
    sort_index: Mapped[Optional[int]] = mapped_column(Integer)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("kind", "name", name="uq_catalog_kind_name"),
    )


class Report(Base):
    """One shift's activity record. Line-item sections are stored as JSON documents."""
    __tablename__ = "reports"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    author_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    author_name: Mapped[Optional[str]] = mapped_column(String(255))
    offline_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)  # Client-generated id for offline sync

    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    shift: Mapped[str] = mapped_column(String(20), nullable=False)  # first|second
    start_time: Mapped[Optional[str]] = mapped_column(String(10))
    end_time: Mapped[Optional[str]] = mapped_column(String(10))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    work_zone: Mapped[Optional[dict]] = mapped_column(JSON)  # {id, name}
    work_section: Mapped[Optional[dict]] = mapped_column(JSON)  # {id, name}
    front_supervisor_name: Mapped[Optional[str]] = mapped_column(String(255))
    overseer_name: Mapped[Optional[str]] = mapped_column(String(255))

    hauling_entries: Mapped[list] = mapped_column(JSON, default=list)
    material_entries: Mapped[list] = mapped_column(JSON, default=list)
    water_entries: Mapped[list] = mapped_column(JSON, default=list)
    machinery_entries: Mapped[list] = mapped_column(JSON, default=list)
    personnel_entries: Mapped[list] = mapped_column(JSON, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    map_pins: Mapped[Optional[list]] = mapped_column(JSON)  # [{pin_id, x, y, label, color}]

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    modifications = relationship(
        "ReportModification",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportModification.timestamp_utc",
    )
    machinery_usage = relationship(
        "ReportMachineryUsage",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportMachineryUsage.position",
    )

    __table_args__ = (
        Index("idx_report_project_date", "project_id", "date"),
    )


class ReportMachineryUsage(Base):
    """Vehicle usage derived from a report's machinery entries (rebuilt on every write)"""
    __tablename__ = "report_machinery_usage"

    id: Mapped[uuid.UUID] = uuid_pk()
    report_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)  # No FK: vehicles may be deleted
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # Index inside machinery_entries
    odometer_start: Mapped[Optional[float]] = mapped_column(Float)
    odometer_end: Mapped[float] = mapped_column(Float, nullable=False)
    hours_operated: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    report = relationship("Report", back_populates="machinery_usage")


class ReportModification(Base):
    """Append-only change history of a report"""
    __tablename__ = "report_modifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    report_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    acting_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), index=True)
    acting_user_name: Mapped[Optional[str]] = mapped_column(String(255))
    acting_user_role: Mapped[Optional[str]] = mapped_column(String(50))
    note: Mapped[Optional[str]] = mapped_column(Text)
    changes: Mapped[list] = mapped_column(JSON, nullable=False)  # [{field, before, after}] in canonical field order
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification

    report = relationship("Report", back_populates="modifications")
