import uuid
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    admin = "admin"
    supervisor = "supervisor"
    field_lead = "field_lead"


class LoginRequest(BaseModel):
    identifier: str  # username or email
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=100)
    name: str
    email: Optional[EmailStr] = None
    password: str = Field(min_length=8)
    role: Role = Role.field_lead
    project_ids: Optional[List[uuid.UUID]] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8)
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    project_ids: Optional[List[uuid.UUID]] = None


class MeResponse(BaseModel):
    id: str
    username: str
    name: str
    email: Optional[EmailStr] = None
    role: Role
    project_ids: List[str]
