# telecare/core/clock.py
from __future__ import annotations

from datetime import datetime, timezone


class SystemClock:
    """Wall clock in UTC. Only this class reads ambient time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
