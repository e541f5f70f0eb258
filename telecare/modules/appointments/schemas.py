# telecare/modules/appointments/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from telecare.scheduling.domain import AppointmentStatus


class BookAppointmentRequest(BaseModel):
    """
    Payload to book a slot.
    - patient_id is taken from current_user (role patient), never from the client.
    """
    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    description: Optional[str] = Field(default=None, max_length=2000)

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


class AppointmentPublic(BaseModel):
    """
    DTO for one appointment. The video token is only returned by the join endpoint.
    """
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    notes: Optional[str] = None
    patient_description: Optional[str] = None
    video_session_id: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentListPage(BaseModel):
    items: List[AppointmentPublic]
    total: int
    limit: int
    offset: int
    has_next: bool


class SlotPublic(BaseModel):
    start_time: datetime
    end_time: datetime
    formatted: str = Field(..., description="Local start time, e.g. '9:30 AM'")
    day: str = Field(..., description="Local weekday, e.g. 'Monday'")


class AvailableDayPublic(BaseModel):
    date: date
    display_date: str
    slots: List[SlotPublic]


class CompleteRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=10000)


class NotesRequest(BaseModel):
    notes: str = Field(..., min_length=1, max_length=10000)


class VideoSessionPublic(BaseModel):
    video_session_id: str
    token: str
