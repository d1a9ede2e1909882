import datetime as dt
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from gram_panchayat.services.lifecycle import ApplicationStatus
from gram_panchayat.services.roles import Role


def _strip(v):
    return v.strip() if isinstance(v, str) else v


# ---------- auth / accounts ----------

class RegisterIn(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = None
    password: str = Field(min_length=6)

    @field_validator("name", "address", mode="before")
    def strip_text(cls, v):
        return _strip(v)


class ProvisionIn(RegisterIn):
    role: Role = Role.STAFF


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    principal_id: str
    role: Role


class PrincipalOut(BaseModel):
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Role
    created_at: dt.datetime


class ProfileUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = None


class RoleChangeIn(BaseModel):
    role: Role


class DeletedOut(BaseModel):
    id: str
    applications_removed: int = 0


# ---------- services ----------

class ServiceIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    name: str = Field(min_length=1, max_length=120)
    description: str = ""
    category: str = Field(min_length=1, max_length=32)
    fee: int = Field(default=0, ge=0)
    requirements: str = ""
    is_active: bool = True


class ServiceUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=32)
    fee: Optional[int] = Field(default=None, ge=0)
    requirements: Optional[str] = None
    is_active: Optional[bool] = None


class ServiceOut(BaseModel):
    id: str
    name: str
    description: str
    category: str
    fee: int
    requirements: str
    is_active: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- applications ----------

class ApplicationIn(BaseModel):
    service_id: str = Field(min_length=1)
    reason: str

    @field_validator("reason", mode="before")
    def reason_not_blank(cls, v):
        v = _strip(v)
        if not v:
            raise ValueError("reason must not be empty")
        return v


class ApplicationOut(BaseModel):
    id: str
    application_number: str
    citizen_id: str
    service_id: str
    service_name: str
    fee: int
    reason: str
    status: ApplicationStatus
    remarks: str
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class StatusUpdateIn(BaseModel):
    status: ApplicationStatus
    remarks: Optional[str] = None


class RemarksIn(BaseModel):
    remarks: str


class CancelIn(BaseModel):
    remarks: Optional[str] = None


class BatchStatusIn(BaseModel):
    application_ids: List[str] = Field(min_length=1)
    status: ApplicationStatus
    remarks: Optional[str] = None


class BatchFailureOut(BaseModel):
    id: str
    code: str
    message: str


class BatchStatusOut(BaseModel):
    succeeded: List[str]
    failed: List[BatchFailureOut]


# ---------- reports ----------

class CitizenStatsOut(BaseModel):
    total_applications: int
    pending: int
    processing: int
    approved: int
    rejected: int
    cancelled: int


class StaffStatsOut(BaseModel):
    pending_applications: int
    processing_applications: int
    processed_today: int


class DashboardStatsOut(BaseModel):
    total_users: int
    users_by_role: dict[str, int]
    total_applications: int
    application_statuses: dict[str, int]
    active_services: int
    today_activity: int
