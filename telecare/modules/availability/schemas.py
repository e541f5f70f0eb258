# telecare/modules/availability/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class AvailabilityCreate(BaseModel):
    start_time: datetime = Field(..., description="ISO time with timezone")
    end_time:   datetime = Field(..., description="ISO time with timezone")
    status: Literal["available", "blocked"] = "available"
    timezone: Optional[str] = Field(
        default=None, description="IANA zone; defaults to the doctor's zone"
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("datetime must include a UTC offset")
        return v

    @field_validator("end_time")
    @classmethod
    def _end_after_start(cls, v, info):
        start = info.data.get("start_time")
        if start and v <= start:
            raise ValueError("end_time must be after start_time")
        return v

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown time zone: {v}")
        return v


class AvailabilityPublic(BaseModel):
    id: int
    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    status: str
    timezone: str

    class Config:
        from_attributes = True
