# telecare/modules/users/schemas.py
from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    SecretStr,
    StringConstraints,
    field_validator,
)


class Role(str, Enum):
    patient = "patient"
    doctor = "doctor"
    admin = "admin"


class Verification(str, Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]

PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d\S]{8,64}$")


def _check_zone(v: str) -> str:
    try:
        ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"unknown time zone: {v}")
    return v


class RegisterRequest(BaseModel):
    email: EmailStr = Field(...)
    password: SecretStr = Field(..., description="8–64 chars, at least one letter and one digit")
    first_name: NameStr
    last_name: NameStr
    role: Role = Role.patient
    timezone: Optional[str] = Field(default=None, description="IANA zone name; server default if omitted")

    # Doctor-only
    specialty: Optional[str] = Field(default=None, max_length=64)
    experience_years: Optional[int] = Field(default=None, ge=0, le=80)
    description: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: SecretStr) -> SecretStr:
        if not PASSWORD_RE.match(v.get_secret_value()):
            raise ValueError(
                "Password must be 8–64 chars and include at least one letter and one digit"
            )
        return v

    @field_validator("role")
    @classmethod
    def no_self_admin(cls, v: Role) -> Role:
        if v is Role.admin:
            raise ValueError("admin accounts cannot self-register")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_zone(v)


class _AccountBase(BaseModel):
    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    timezone: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PatientAccount(_AccountBase):
    role: Literal["patient"] = "patient"
    credits: int


class DoctorAccount(_AccountBase):
    role: Literal["doctor"] = "doctor"
    specialty: Optional[str] = None
    experience_years: Optional[int] = None
    description: Optional[str] = None
    verification_status: Verification = Verification.pending


class AdminAccount(_AccountBase):
    role: Literal["admin"] = "admin"


Account = Annotated[
    Union[PatientAccount, DoctorAccount, AdminAccount],
    Field(discriminator="role"),
]


class DoctorPublic(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    specialty: Optional[str] = None
    experience_years: Optional[int] = None
    description: Optional[str] = None
    timezone: str

    class Config:
        from_attributes = True


# --- Login ---

class LoginRequest(BaseModel):
    email: EmailStr
    password: SecretStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class TokenPair(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


LoginResponse = TokenPair


# --- Admin ---

class CreditGrantRequest(BaseModel):
    amount: int = Field(..., gt=0, le=1000)


class CreditBalance(BaseModel):
    user_id: UUID
    credits: int


class VerificationUpdateRequest(BaseModel):
    status: Verification


class DoctorList(BaseModel):
    items: List[DoctorPublic]
    total: int
