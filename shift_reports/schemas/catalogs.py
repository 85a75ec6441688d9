import uuid
from datetime import datetime
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CatalogKind(str, Enum):
    material = "material"
    capacity = "capacity"
    origin = "origin"
    destination = "destination"
    cargo_type = "cargo_type"
    vehicle_type = "vehicle_type"
    personnel_role = "personnel_role"


# Catalog Schemas
class CatalogItemBase(BaseModel):
    name: str = Field(min_length=1)
    value: Optional[str] = None
    unit: Optional[str] = None
    sort_index: Optional[int] = None
    active: bool = True


class CatalogItemCreate(CatalogItemBase):
    pass


class CatalogItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    value: Optional[str] = None
    unit: Optional[str] = None
    sort_index: Optional[int] = None
    active: Optional[bool] = None


class CatalogItemResponse(CatalogItemBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: CatalogKind
    created_at: datetime


# Project Schemas
class ProjectBase(BaseModel):
    name: str = Field(min_length=1)
    location: Optional[str] = None
    description: Optional[str] = None
    active: bool = True


class ProjectCreate(ProjectBase):
    member_ids: Optional[List[uuid.UUID]] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None


class ProjectMembersUpdate(BaseModel):
    member_ids: List[uuid.UUID]


class ProjectResponse(ProjectBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime


# Personnel Schemas
class PersonnelBase(BaseModel):
    name: str = Field(min_length=1)
    role_id: Optional[uuid.UUID] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    active: bool = True


class PersonnelCreate(PersonnelBase):
    project_ids: Optional[List[uuid.UUID]] = None


class PersonnelUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    role_id: Optional[uuid.UUID] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    active: Optional[bool] = None
    project_ids: Optional[List[uuid.UUID]] = None


class PersonnelResponse(PersonnelBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_ids: List[uuid.UUID] = Field(default_factory=list)
    created_at: datetime
