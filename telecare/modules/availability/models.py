# telecare/modules/availability/models.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from telecare.db.base import Base, ReprMixin, TimestampMixin, UTCDateTime
from telecare.scheduling.domain import BlockStatus


class AvailabilityBlock(TimestampMixin, ReprMixin, Base):
    """
    A doctor's declared time window. Booking splits the covered segment out
    into its own BOOKED row.
    """

    __tablename__ = "availability_blocks"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BlockStatus.AVAILABLE.value,
        server_default=BlockStatus.AVAILABLE.value,
    )
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_block_time_order"),
        CheckConstraint(
            "status IN ('available', 'booked', 'blocked')", name="ck_block_status_valid"
        ),
        Index("ix_block_doctor_start_status", "doctor_id", "start_time", "status"),
    )
