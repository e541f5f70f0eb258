# telecare/modules/availability/repository.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.modules.availability.models import AvailabilityBlock
from telecare.scheduling import domain
from telecare.scheduling.domain import BlockStatus
from telecare.scheduling.timewindow import TimeWindow


def to_domain(row: AvailabilityBlock) -> domain.AvailabilityBlock:
    return domain.AvailabilityBlock(
        id=row.id,
        doctor_id=row.doctor_id,
        window=TimeWindow(row.start_time, row.end_time),
        status=BlockStatus(row.status),
        timezone=row.timezone,
    )


async def create_block(
    db: AsyncSession,
    *,
    doctor_id: UUID,
    start_time: datetime,
    end_time: datetime,
    timezone: str,
    status: BlockStatus = BlockStatus.AVAILABLE,
) -> AvailabilityBlock:
    block = AvailabilityBlock(
        doctor_id=doctor_id,
        start_time=start_time,
        end_time=end_time,
        status=status.value,
        timezone=timezone,
    )
    db.add(block)
    await db.flush()
    await db.refresh(block)
    return block


async def get_block(db: AsyncSession, *, block_id: int) -> Optional[AvailabilityBlock]:
    return await db.get(AvailabilityBlock, block_id)


async def list_by_doctor(
    db: AsyncSession,
    *,
    doctor_id: UUID,
    window: Optional[TimeWindow] = None,
    statuses: Optional[Iterable[BlockStatus]] = None,
) -> Sequence[AvailabilityBlock]:
    """
    Blocks of a doctor ordered by start; optionally only those overlapping
    `window` and having one of `statuses`.
    """
    stmt = select(AvailabilityBlock).where(AvailabilityBlock.doctor_id == doctor_id)
    if window is not None:
        stmt = stmt.where(
            AvailabilityBlock.start_time < window.end,
            AvailabilityBlock.end_time > window.start,
        )
    if statuses is not None:
        stmt = stmt.where(AvailabilityBlock.status.in_([s.value for s in statuses]))
    rows = await db.execute(stmt.order_by(AvailabilityBlock.start_time, AvailabilityBlock.id))
    return rows.scalars().all()


async def has_overlap(db: AsyncSession, *, doctor_id: UUID, window: TimeWindow) -> bool:
    rows = await list_by_doctor(db, doctor_id=doctor_id, window=window)
    return len(rows) > 0


async def delete_available_block(db: AsyncSession, *, block_id: int) -> int:
    """Only AVAILABLE or BLOCKED blocks can be removed; BOOKED segments stay."""
    res = await db.execute(
        delete(AvailabilityBlock).where(
            AvailabilityBlock.id == block_id,
            AvailabilityBlock.status != BlockStatus.BOOKED.value,
        )
    )
    return res.rowcount or 0  # type: ignore


async def book_segment(db: AsyncSession, *, doctor_id: UUID, window: TimeWindow) -> bool:
    """
    Split the AVAILABLE block covering `window` into
    [before: AVAILABLE][window: BOOKED][after: AVAILABLE].
    Returns False when no AVAILABLE block covers the window.
    """
    stmt = (
        select(AvailabilityBlock)
        .where(
            AvailabilityBlock.doctor_id == doctor_id,
            AvailabilityBlock.status == BlockStatus.AVAILABLE.value,
            AvailabilityBlock.start_time <= window.start,
            AvailabilityBlock.end_time >= window.end,
        )
        .order_by(AvailabilityBlock.id)
        .limit(1)
        .with_for_update()
    )
    block = (await db.execute(stmt)).scalar_one_or_none()
    if block is None:
        return False

    before = TimeWindow(block.start_time, window.start) if block.start_time < window.start else None
    after = TimeWindow(window.end, block.end_time) if window.end < block.end_time else None

    block.start_time = window.start
    block.end_time = window.end
    block.status = BlockStatus.BOOKED.value
    for piece in (before, after):
        if piece is not None:
            db.add(
                AvailabilityBlock(
                    doctor_id=doctor_id,
                    start_time=piece.start,
                    end_time=piece.end,
                    status=BlockStatus.AVAILABLE.value,
                    timezone=block.timezone,
                )
            )
    await db.flush()
    return True


async def release_segment(db: AsyncSession, *, doctor_id: UUID, window: TimeWindow) -> bool:
    """Revert the BOOKED segment for `window` to AVAILABLE."""
    stmt = select(AvailabilityBlock).where(
        AvailabilityBlock.doctor_id == doctor_id,
        AvailabilityBlock.status == BlockStatus.BOOKED.value,
        AvailabilityBlock.start_time == window.start,
        AvailabilityBlock.end_time == window.end,
    )
    block = (await db.execute(stmt)).scalars().first()
    if block is None:
        return False
    block.status = BlockStatus.AVAILABLE.value
    await db.flush()
    return True
