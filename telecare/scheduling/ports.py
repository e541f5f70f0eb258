# telecare/scheduling/ports.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence
from uuid import UUID

from telecare.scheduling.domain import Appointment, AppointmentStatus, AvailabilityBlock
from telecare.scheduling.results import Result
from telecare.scheduling.timewindow import TimeWindow


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant, timezone-aware."""
        ...


@dataclass(frozen=True)
class VideoSession:
    session_id: str
    token: str


class VideoSessionProvider(Protocol):
    def provision_session(
        self, appointment_id: UUID, *, session_id: Optional[str] = None
    ) -> VideoSession:
        ...


class SchedulingStore(Protocol):
    """
    System of record for availability and appointments.

    Implementations MUST serialize the check-free-and-create step of
    `create_appointment_atomic` per doctor (row lock, uniqueness constraint or
    equivalent) so that of two concurrent bookings for overlapping windows of
    the same doctor exactly one succeeds and the other gets STORAGE_CONFLICT.
    """

    async def get_availability_blocks(
        self, doctor_id: UUID, window: TimeWindow
    ) -> Sequence[AvailabilityBlock]:
        ...

    async def get_appointments(
        self, doctor_id: UUID, window: TimeWindow
    ) -> Sequence[Appointment]:
        """Non-cancelled appointments of the doctor overlapping `window`."""
        ...

    async def get_appointment(self, appointment_id: UUID) -> Optional[Appointment]:
        ...

    async def get_credits(self, patient_id: UUID) -> int:
        ...

    async def create_appointment_atomic(
        self, appointment: Appointment, credit_delta: int
    ) -> Result[Appointment]:
        """
        Debit credits, insert the appointment and book the covering block
        segment together, or do none of it.
        """
        ...

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        expected: AppointmentStatus,
        new: AppointmentStatus,
        *,
        actor_id: Optional[UUID] = None,
        **changes: Any,
    ) -> Result[Appointment]:
        """
        Compare-and-set on status; STORAGE_CONFLICT if it no longer matches.
        `actor_id` is recorded as the user behind the change.
        """
        ...

    async def attach_video_session(
        self, appointment_id: UUID, session: VideoSession
    ) -> Result[Appointment]:
        ...

    async def set_notes(self, appointment_id: UUID, notes: str) -> Result[Appointment]:
        """Notes on a SCHEDULED appointment; ALREADY_TERMINAL otherwise."""
        ...
