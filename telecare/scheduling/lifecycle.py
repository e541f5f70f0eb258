# telecare/scheduling/lifecycle.py
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from telecare.scheduling.domain import Appointment, AppointmentStatus
from telecare.scheduling.results import Accepted, ErrorKind, Rejected, Result

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def can_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    return new in TRANSITIONS[current]


def check_complete(appointment: Appointment, now: datetime) -> Optional[Rejected]:
    if appointment.status.is_terminal:
        return Rejected(ErrorKind.ALREADY_TERMINAL, f"appointment is {appointment.status.value}")
    if now < appointment.end_time:
        return Rejected(ErrorKind.NOT_YET_ENDABLE, "appointment has not ended yet")
    return None


def check_cancel(appointment: Appointment, now: datetime) -> Optional[Rejected]:
    if appointment.status.is_terminal:
        return Rejected(ErrorKind.ALREADY_TERMINAL, f"appointment is {appointment.status.value}")
    if now >= appointment.start_time:
        return Rejected(ErrorKind.ALREADY_STARTED, "appointment has already started")
    return None


def check_join(
    appointment: Appointment, now: datetime, join_window: timedelta
) -> Optional[Rejected]:
    """Video can be joined from `join_window` before start through the end."""
    if appointment.status is not AppointmentStatus.SCHEDULED:
        return Rejected(ErrorKind.NOT_JOINABLE, f"appointment is {appointment.status.value}")
    if not appointment.start_time - join_window <= now <= appointment.end_time:
        return Rejected(ErrorKind.NOT_JOINABLE, "outside the join window")
    return None


def complete(
    appointment: Appointment, now: datetime, notes: Optional[str] = None
) -> Result[Appointment]:
    rejected = check_complete(appointment, now)
    if rejected:
        return rejected
    changes = {"status": AppointmentStatus.COMPLETED}
    if notes is not None:
        changes["notes"] = notes
    return Accepted(replace(appointment, **changes))


def cancel(appointment: Appointment, now: datetime) -> Result[Appointment]:
    rejected = check_cancel(appointment, now)
    if rejected:
        return rejected
    return Accepted(replace(appointment, status=AppointmentStatus.CANCELLED))
