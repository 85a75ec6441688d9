import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _upper_economic_number(v):
    return v.strip().upper() if isinstance(v, str) else v


# Vehicle Schemas
class VehicleBase(BaseModel):
    name: str
    type: str
    economic_number: str
    capacity: Optional[str] = None
    odometer_start: float = Field(default=0, ge=0)
    active: bool = True

    _normalize_number = field_validator("economic_number", mode="before")(_upper_economic_number)


class VehicleCreate(VehicleBase):
    odometer_end: Optional[float] = Field(default=None, ge=0)
    project_ids: Optional[List[uuid.UUID]] = None


class VehicleUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    economic_number: Optional[str] = None
    capacity: Optional[str] = None
    odometer_start: Optional[float] = Field(default=None, ge=0)
    active: Optional[bool] = None
    project_ids: Optional[List[uuid.UUID]] = None

    _normalize_number = field_validator("economic_number", mode="before")(_upper_economic_number)


class VehicleProjectsUpdate(BaseModel):
    project_ids: List[uuid.UUID]


class VehicleResponse(VehicleBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    odometer_end: Optional[float] = None
    hours_operated: float = 0
    project_ids: List[uuid.UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None


class VehicleUsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    report_id: uuid.UUID
    position: int
    odometer_start: Optional[float] = None
    odometer_end: float
    hours_operated: float
