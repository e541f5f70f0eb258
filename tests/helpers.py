# tests/helpers.py
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

from telecare.scheduling.domain import (
    Appointment,
    AppointmentStatus,
    AvailabilityBlock,
    BlockStatus,
)
from telecare.scheduling.timewindow import TimeWindow

UTC = timezone.utc

# A Monday far enough ahead that nothing depends on the wall clock.
DAY = date(2030, 1, 7)


def at(hour: int, minute: int = 0, *, days: int = 0) -> datetime:
    return datetime.combine(DAY + timedelta(days=days), time(hour, minute), tzinfo=UTC)


def window(start: datetime, minutes: int = 30) -> TimeWindow:
    return TimeWindow(start, start + timedelta(minutes=minutes))


def block(
    doctor_id: UUID,
    start: datetime,
    end: datetime,
    status: BlockStatus = BlockStatus.AVAILABLE,
) -> AvailabilityBlock:
    return AvailabilityBlock(doctor_id=doctor_id, window=TimeWindow(start, end), status=status)


def appointment(
    doctor_id: UUID,
    start: datetime,
    minutes: int = 30,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    patient_id: Optional[UUID] = None,
) -> Appointment:
    return Appointment(
        id=uuid4(),
        patient_id=patient_id or uuid4(),
        doctor_id=doctor_id,
        window=window(start, minutes),
        status=status,
    )


class FixedClock:
    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant
