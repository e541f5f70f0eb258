# telecare/modules/appointments/models.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from telecare.db.base import Base, ReprMixin, TimestampMixin, UTCDateTime, UUIDPKMixin
from telecare.scheduling.domain import AppointmentStatus

# Value of `active_key` while an appointment holds its slot. Cancelled rows
# carry NULL, which never collides in a UNIQUE constraint.
ACTIVE = 1


class Appointment(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    Appointment between a patient and a doctor over [start_time, end_time).
    """

    __tablename__ = "appointments"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AppointmentStatus.SCHEDULED.value,
        server_default=AppointmentStatus.SCHEDULED.value,
    )
    active_key: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=ACTIVE)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    patient_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    video_session_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_appt_time_order"),
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')", name="ck_appt_status_valid"
        ),
        # Avoid double booking: one live appointment per doctor and start instant
        UniqueConstraint(
            "doctor_id", "start_time", "active_key",
            name="uq_appt_doctor_start_active",
        ),
        Index("ix_appt_doctor_start_end", "doctor_id", "start_time", "end_time"),
        Index("ix_appt_patient_start", "patient_id", "start_time"),
    )
