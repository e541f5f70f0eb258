# telecare/scheduling/timewindow.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator, List


@dataclass(frozen=True, order=True)
class TimeWindow:
    """
    Half-open interval [start, end) between two timezone-aware instants.
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("TimeWindow requires timezone-aware datetimes")
        if not self.start < self.end:
            raise ValueError("TimeWindow start must be before end")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    # Touching endpoints do not overlap.
    return a.start < b.end and b.start < a.end


def contains(block: TimeWindow, window: TimeWindow) -> bool:
    return block.start <= window.start and window.end <= block.end


def subtract(block: TimeWindow, occupied: Iterable[TimeWindow]) -> List[TimeWindow]:
    """
    Return the free sub-intervals of `block` once every occupied window is removed.

    `occupied` may be unsorted and may contain overlapping or out-of-range windows.
    Zero-length gaps are dropped.
    """
    free: List[TimeWindow] = []
    cursor = block.start

    for window in sorted(w for w in occupied if overlaps(w, block)):
        if window.start > cursor:
            free.append(TimeWindow(cursor, window.start))
        # merge: the cursor only ever moves forward
        if window.end > cursor:
            cursor = window.end
        if cursor >= block.end:
            break

    if cursor < block.end:
        free.append(TimeWindow(cursor, block.end))
    return free


def split(window: TimeWindow, size: timedelta) -> Iterator[TimeWindow]:
    """
    Yield consecutive `size` pieces of `window`; a trailing remainder shorter
    than `size` is dropped.
    """
    if size <= timedelta(0):
        raise ValueError("size must be positive")
    start = window.start
    while start + size <= window.end:
        yield TimeWindow(start, start + size)
        start += size
