# telecare/scheduling/results.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    INSUFFICIENT_CREDITS = "insufficient_credits"
    SLOT_NOT_FREE = "slot_not_free"
    LEAD_TIME_VIOLATION = "lead_time_violation"
    NOT_YET_ENDABLE = "not_yet_endable"
    ALREADY_STARTED = "already_started"
    NOT_JOINABLE = "not_joinable"
    ALREADY_TERMINAL = "already_terminal"
    STORAGE_CONFLICT = "storage_conflict"


@dataclass(frozen=True)
class Accepted(Generic[T]):
    value: Optional[T] = None

    ok = True


@dataclass(frozen=True)
class Rejected:
    kind: ErrorKind
    message: str = ""

    ok = False

    @property
    def public_kind(self) -> ErrorKind:
        """
        Kind as reported to callers. A lost storage race reads the same as a
        taken slot: the only recovery is resubmitting with fresh data.
        """
        if self.kind is ErrorKind.STORAGE_CONFLICT:
            return ErrorKind.SLOT_NOT_FREE
        return self.kind


Result = Union[Accepted[T], Rejected]
