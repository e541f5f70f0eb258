# telecare/scheduling/resolver.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Union
from uuid import UUID
from zoneinfo import ZoneInfo

from telecare.scheduling.domain import (
    Appointment,
    AvailabilityBlock,
    AvailableDay,
    BlockStatus,
    Slot,
)
from telecare.scheduling.policy import SchedulingPolicy
from telecare.scheduling.timewindow import TimeWindow, overlaps, split, subtract


def _zone(tz: Union[str, ZoneInfo]) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def _day_start(day: date, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone)


def display_date(day: date) -> str:
    """e.g. 'Monday, October 19'"""
    return f"{day:%A}, {day:%B} {day.day}"


def horizon_days(now: datetime, tz: Union[str, ZoneInfo], days: int) -> List[date]:
    today = now.astimezone(_zone(tz)).date()
    return [today + timedelta(days=i) for i in range(days)]


def horizon_window(
    now: datetime, tz: Union[str, ZoneInfo], days: int
) -> TimeWindow:
    """Instant range covered by the horizon, from local midnight today."""
    zone = _zone(tz)
    calendar = horizon_days(now, zone, days)
    return TimeWindow(
        _day_start(calendar[0], zone),
        _day_start(calendar[-1] + timedelta(days=1), zone),
    )


def resolve_available_days(
    doctor_id: UUID,
    blocks: Iterable[AvailabilityBlock],
    appointments: Iterable[Appointment],
    *,
    now: datetime,
    policy: SchedulingPolicy,
    tz: Union[str, ZoneInfo] = "UTC",
) -> List[AvailableDay]:
    """
    Derive bookable slots for `doctor_id` over the policy horizon.

    Every calendar day of the horizon (in `tz`) appears in the result, in
    ascending order, even when it has no slots. Slots that start at or before
    `now + policy.min_lead` are left out.
    """
    zone = _zone(tz)
    calendar = horizon_days(now, zone, policy.horizon_days)
    horizon = horizon_window(now, zone, policy.horizon_days)
    earliest = now + policy.min_lead

    occupied = [
        a.window for a in appointments if a.doctor_id == doctor_id and a.is_active
    ]

    by_day: Dict[date, Dict[TimeWindow, Slot]] = {day: {} for day in calendar}
    for block in blocks:
        if block.doctor_id != doctor_id or block.status is not BlockStatus.AVAILABLE:
            continue
        if not overlaps(block.window, horizon):
            continue
        for free in subtract(block.window, occupied):
            for piece in split(free, policy.slot_length):
                if piece.start <= earliest:
                    continue
                day = piece.start.astimezone(zone).date()
                # overlapping blocks may yield the same piece twice
                if day in by_day:
                    by_day[day].setdefault(piece, Slot(doctor_id, piece))

    return [
        AvailableDay(
            date=day,
            display_date=display_date(day),
            slots=[by_day[day][w] for w in sorted(by_day[day])],
        )
        for day in calendar
    ]
