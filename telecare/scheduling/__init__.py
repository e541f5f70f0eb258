"""
Slot computation and booking rules.

Pure functions over value objects; storage, clock and video provisioning are
reached only through the protocols in `ports`.
"""
from telecare.scheduling.domain import (
    Appointment,
    AppointmentStatus,
    AvailabilityBlock,
    AvailableDay,
    BlockStatus,
    BookingIntent,
    BookingRequest,
    Slot,
)
from telecare.scheduling.policy import SchedulingPolicy
from telecare.scheduling.results import Accepted, ErrorKind, Rejected, Result
from telecare.scheduling.timewindow import TimeWindow, contains, overlaps, split, subtract

__all__ = [
    "Accepted",
    "Appointment",
    "AppointmentStatus",
    "AvailabilityBlock",
    "AvailableDay",
    "BlockStatus",
    "BookingIntent",
    "BookingRequest",
    "ErrorKind",
    "Rejected",
    "Result",
    "SchedulingPolicy",
    "Slot",
    "TimeWindow",
    "contains",
    "overlaps",
    "split",
    "subtract",
]
