# telecare/routers/availability.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.permission import require_roles
from telecare.db.sql import get_session
from telecare.modules.availability import repository as repo
from telecare.modules.availability.schemas import AvailabilityCreate, AvailabilityPublic
from telecare.modules.users.models import User
from telecare.scheduling.domain import BlockStatus
from telecare.scheduling.timewindow import TimeWindow

router = APIRouter(prefix="/availability", tags=["doctor-availability"])


@router.post(
    "",
    response_model=AvailabilityPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Doctor opens (or blocks) a time window",
)
async def create_block(
    payload: AvailabilityCreate,
    db: AsyncSession = Depends(get_session),
    user: User = Depends(require_roles("doctor")),
):
    window = TimeWindow(payload.start_time, payload.end_time)
    if await repo.has_overlap(db, doctor_id=user.id, window=window):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="availability_overlap",
        )
    return await repo.create_block(
        db,
        doctor_id=user.id,
        start_time=window.start,
        end_time=window.end,
        timezone=payload.timezone or user.timezone,
        status=BlockStatus(payload.status),
    )


@router.get(
    "/me",
    response_model=list[AvailabilityPublic],
    summary="Doctor lists their own blocks",
)
async def list_my_blocks(
    db: AsyncSession = Depends(get_session),
    user: User = Depends(require_roles("doctor")),
):
    return await repo.list_by_doctor(db, doctor_id=user.id)


@router.delete(
    "/{block_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Doctor removes an unbooked block",
)
async def delete_block(
    block_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_session),
    user: User = Depends(require_roles("doctor")),
):
    block = await repo.get_block(db, block_id=block_id)
    if block is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
    if block.doctor_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not_owner")
    if not await repo.delete_available_block(db, block_id=block_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="block_is_booked")
    return None
