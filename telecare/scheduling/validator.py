# telecare/scheduling/validator.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from telecare.scheduling.domain import (
    Appointment,
    AppointmentStatus,
    AvailabilityBlock,
    BlockStatus,
    BookingIntent,
    BookingRequest,
)
from telecare.scheduling.policy import SchedulingPolicy
from telecare.scheduling.results import Accepted, ErrorKind, Rejected, Result
from telecare.scheduling.timewindow import TimeWindow, contains, overlaps


def on_slot_grid(block: AvailabilityBlock, window: TimeWindow, slot_length: timedelta) -> bool:
    """`window` is exactly one slot of `block`, aligned to the block start."""
    return (
        window.duration == slot_length
        and contains(block.window, window)
        and (window.start - block.window.start) % slot_length == timedelta(0)
    )


def is_slot_free(
    request: BookingRequest,
    blocks: Iterable[AvailabilityBlock],
    appointments: Iterable[Appointment],
    slot_length: timedelta,
) -> bool:
    covered = any(
        b.doctor_id == request.doctor_id
        and b.status is BlockStatus.AVAILABLE
        and on_slot_grid(b, request.window, slot_length)
        for b in blocks
    )
    if not covered:
        return False
    return not any(
        a.doctor_id == request.doctor_id
        and a.is_active
        and overlaps(a.window, request.window)
        for a in appointments
    )


def validate_booking(
    request: BookingRequest,
    *,
    credits: int,
    blocks: Iterable[AvailabilityBlock],
    appointments: Iterable[Appointment],
    now: datetime,
    policy: SchedulingPolicy,
) -> Result[BookingIntent]:
    """
    Decide whether `request` may be booked against live data.

    Checks run in order and the first failure wins:
    credits, then slot availability, then lead time. Only a single slot on
    the grid of its covering block can be booked.
    """
    if credits < policy.booking_cost:
        return Rejected(
            ErrorKind.INSUFFICIENT_CREDITS,
            f"booking costs {policy.booking_cost} credits, balance is {credits}",
        )

    if not is_slot_free(request, blocks, appointments, policy.slot_length):
        return Rejected(ErrorKind.SLOT_NOT_FREE, "requested window is not a free slot")

    if request.window.start <= now + policy.min_lead:
        return Rejected(
            ErrorKind.LEAD_TIME_VIOLATION, "requested window starts too soon"
        )

    appointment = Appointment(
        patient_id=request.patient_id,
        doctor_id=request.doctor_id,
        window=request.window,
        status=AppointmentStatus.SCHEDULED,
        patient_description=request.patient_description,
    )
    return Accepted(BookingIntent(appointment=appointment, credit_delta=-policy.booking_cost))
