import uuid
from datetime import date as date_type, datetime
from typing import Any, List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Shift(str, Enum):
    first = "first"
    second = "second"


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# Line items
class NamedRef(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class HaulingEntry(BaseModel):
    material: Optional[str] = None
    trip_count: int = 0
    capacity: Optional[float] = None
    loose_volume: Optional[float] = None  # Derived: trip_count * capacity
    layer_number: Optional[str] = None
    layer_elevation: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None

    @model_validator(mode="after")
    def _derive_volume(self):
        if self.capacity is not None:
            self.loose_volume = self.trip_count * self.capacity
        return self


class MaterialEntry(BaseModel):
    material: Optional[str] = None
    unit: Optional[str] = None
    quantity: Optional[float] = None
    zone: Optional[str] = None
    elevation: Optional[str] = None


class WaterEntry(BaseModel):
    economic_number: Optional[str] = None
    trip_count: int = 0
    capacity: Optional[float] = None
    volume: Optional[float] = None  # Derived: trip_count * capacity
    origin: Optional[str] = None
    destination: Optional[str] = None

    @model_validator(mode="after")
    def _derive_volume(self):
        if self.capacity is not None:
            self.volume = self.trip_count * self.capacity
        return self


class MachineryEntry(BaseModel):
    vehicle_id: Optional[uuid.UUID] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None
    economic_number: Optional[str] = None
    odometer_start: Optional[float] = None
    odometer_end: Optional[float] = None
    hours_operated: Optional[float] = None  # Derived: odometer_end - odometer_start
    operator_name: Optional[str] = None
    activity_description: Optional[str] = None

    _normalize_vehicle = field_validator("vehicle_id", mode="before")(_blank_to_none)

    @model_validator(mode="after")
    def _derive_hours(self):
        # Ordering (end >= start) is checked by the report engine so every bad row is reported at once
        if self.odometer_start is not None and self.odometer_end is not None:
            self.hours_operated = self.odometer_end - self.odometer_start
        return self


class PersonnelEntry(BaseModel):
    personnel_id: Optional[uuid.UUID] = None
    role_id: Optional[uuid.UUID] = None
    activity_description: Optional[str] = None
    hours_worked: Optional[float] = None
    notes: Optional[str] = None

    _normalize_ids = field_validator("personnel_id", "role_id", mode="before")(_blank_to_none)


class MapPin(BaseModel):
    pin_id: Optional[str] = None
    x: float = Field(ge=0, le=100)  # Percent of map width
    y: float = Field(ge=0, le=100)  # Percent of map height
    label: Optional[str] = None
    color: Optional[str] = None


# Reports
class ReportFields(BaseModel):
    """Every field of a report that is tracked by the change history."""
    model_config = ConfigDict(from_attributes=True)

    project_id: Optional[uuid.UUID] = None
    date: Optional[date_type] = None
    shift: Optional[Shift] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    work_zone: Optional[NamedRef] = None
    work_section: Optional[NamedRef] = None
    front_supervisor_name: Optional[str] = None
    overseer_name: Optional[str] = None
    hauling_entries: List[HaulingEntry] = Field(default_factory=list)
    material_entries: List[MaterialEntry] = Field(default_factory=list)
    water_entries: List[WaterEntry] = Field(default_factory=list)
    machinery_entries: List[MachineryEntry] = Field(default_factory=list)
    personnel_entries: List[PersonnelEntry] = Field(default_factory=list)
    notes: Optional[str] = None
    map_pins: Optional[List[MapPin]] = None

    @field_validator(
        "hauling_entries",
        "material_entries",
        "water_entries",
        "machinery_entries",
        "personnel_entries",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v


class ReportCreate(ReportFields):
    project_id: uuid.UUID
    date: date_type
    shift: Shift
    offline_id: Optional[str] = None


class ReportUpdate(BaseModel):
    """Partial update: only the fields the client sends are considered."""
    project_id: Optional[uuid.UUID] = None
    date: Optional[date_type] = None
    shift: Optional[Shift] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    work_zone: Optional[NamedRef] = None
    work_section: Optional[NamedRef] = None
    front_supervisor_name: Optional[str] = None
    overseer_name: Optional[str] = None
    hauling_entries: Optional[List[HaulingEntry]] = None
    material_entries: Optional[List[MaterialEntry]] = None
    water_entries: Optional[List[WaterEntry]] = None
    machinery_entries: Optional[List[MachineryEntry]] = None
    personnel_entries: Optional[List[PersonnelEntry]] = None
    notes: Optional[str] = None
    map_pins: Optional[List[MapPin]] = None
    modification_note: Optional[str] = None


class ReportResponse(ReportFields):
    id: uuid.UUID
    project_id: uuid.UUID
    author_user_id: Optional[uuid.UUID] = None
    author_name: Optional[str] = None
    offline_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class FieldChange(BaseModel):
    field: str
    before: Any = None
    after: Any = None


class ModificationEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    report_id: uuid.UUID
    acting_user_id: Optional[uuid.UUID] = None
    acting_user_name: Optional[str] = None
    acting_user_role: Optional[str] = None
    note: Optional[str] = None
    changes: List[FieldChange]
    timestamp_utc: datetime
    integrity_hash: Optional[str] = None


class ReportStatsResponse(BaseModel):
    total_reports: int
    distinct_projects: int
    distinct_authors: int
    total_hauling_entries: int
    total_material_entries: int
    total_water_entries: int
    total_machinery_entries: int
    total_personnel_entries: int
    total_hauled_volume: float
    total_water_volume: float
    total_machinery_hours: float
    date_from: Optional[date_type] = None
    date_to: Optional[date_type] = None
