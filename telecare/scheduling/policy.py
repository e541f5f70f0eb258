# telecare/scheduling/policy.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any


@dataclass(frozen=True)
class SchedulingPolicy:
    booking_cost: int = 2
    slot_length: timedelta = timedelta(minutes=30)
    horizon_days: int = 4
    min_lead: timedelta = timedelta(0)
    join_window: timedelta = timedelta(minutes=30)

    def __post_init__(self):
        if self.booking_cost < 0:
            raise ValueError("booking_cost must be >= 0")
        if self.slot_length <= timedelta(0):
            raise ValueError("slot_length must be positive")
        if self.horizon_days < 1:
            raise ValueError("horizon_days must be >= 1")

    @classmethod
    def from_settings(cls, settings: Any) -> "SchedulingPolicy":
        return cls(
            booking_cost=settings.BOOKING_COST_CREDITS,
            slot_length=timedelta(minutes=settings.SLOT_MINUTES),
            horizon_days=settings.HORIZON_DAYS,
            min_lead=timedelta(minutes=settings.MIN_LEAD_MINUTES),
            join_window=timedelta(minutes=settings.JOIN_WINDOW_MINUTES),
        )
