# telecare/scheduling/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from telecare.scheduling.timewindow import TimeWindow


class BlockStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not AppointmentStatus.SCHEDULED


@dataclass(frozen=True)
class AvailabilityBlock:
    """A window a doctor has opened (or closed) for booking."""

    doctor_id: UUID
    window: TimeWindow
    status: BlockStatus = BlockStatus.AVAILABLE
    timezone: str = "UTC"
    id: Optional[int] = None


@dataclass(frozen=True)
class Appointment:
    patient_id: UUID
    doctor_id: UUID
    window: TimeWindow
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    id: Optional[UUID] = None
    notes: Optional[str] = None
    patient_description: Optional[str] = None
    video_session_id: Optional[str] = None
    video_session_token: Optional[str] = None

    @property
    def start_time(self) -> datetime:
        return self.window.start

    @property
    def end_time(self) -> datetime:
        return self.window.end

    @property
    def is_active(self) -> bool:
        return self.status is not AppointmentStatus.CANCELLED


@dataclass(frozen=True)
class Slot:
    """A bookable fixed-length piece of an availability block. Never persisted."""

    doctor_id: UUID
    window: TimeWindow

    @property
    def start_time(self) -> datetime:
        return self.window.start

    @property
    def end_time(self) -> datetime:
        return self.window.end


@dataclass(frozen=True)
class AvailableDay:
    date: date
    display_date: str
    slots: List[Slot] = field(default_factory=list)


@dataclass(frozen=True)
class BookingRequest:
    doctor_id: UUID
    patient_id: UUID
    window: TimeWindow
    patient_description: Optional[str] = None


@dataclass(frozen=True)
class BookingIntent:
    """
    Effects of an accepted booking. The storage layer must apply all of them
    as one atomic unit: debit `credit_delta`, insert `appointment`, and mark
    `appointment.window` inside the covering block as BOOKED.
    """

    appointment: Appointment
    credit_delta: int
