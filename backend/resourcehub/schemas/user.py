"""User request/response schemas."""
import uuid
from typing import Literal, Optional
from datetime import datetime
from pydantic import Field, field_validator
from resourcehub.schemas.base import CamelModel, CamelORMModel

Branch = Literal["CSE", "ECE", "EEE", "MECH", "CIVIL", "IT", "OTHER"]


def _clean_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Please provide a valid email")
    return v


class UserCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    branch: Branch
    semester: int = Field(ge=1, le=8)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _clean_email(v)


class UserResponse(CamelORMModel):
    id: uuid.UUID
    name: str
    email: str
    branch: str
    semester: int
    role: str
    account_status: str
    last_active: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserSummary(CamelORMModel):
    id: uuid.UUID
    name: str
    branch: str
    semester: int


class ProfileUpdate(CamelModel):
    """Fields a user may change on their own profile. Omitted fields are left alone."""
    name: Optional[str] = None
    branch: Optional[Branch] = None
    semester: Optional[int] = Field(default=None, ge=1, le=8)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return v


class AdminUserUpdate(ProfileUpdate):
    email: Optional[str] = Field(default=None, min_length=3, max_length=320)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_email(v)


class PublicProfile(CamelORMModel):
    id: uuid.UUID
    name: str
    branch: str
    semester: int
    role: str
    last_active: Optional[datetime] = None
    created_at: datetime
