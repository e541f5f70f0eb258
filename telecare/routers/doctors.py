# telecare/routers/doctors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.db.sql import get_session
from telecare.modules.users.schemas import DoctorList, DoctorPublic
from telecare.modules.users.service import DoctorNotFound, get_doctor, list_doctors

router = APIRouter(tags=["doctors"])


@router.get(
    "/doctors",
    response_model=DoctorList,
    summary="List verified doctors, optionally by specialty",
)
async def doctors_index(
    specialty: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    return await list_doctors(session, specialty=specialty, limit=limit, offset=offset)


@router.get(
    "/doctors/{doctor_id}",
    response_model=DoctorPublic,
    summary="Get a verified doctor's profile",
)
async def doctors_get(
    doctor_id: UUID,
    session: AsyncSession = Depends(get_session),
):
    try:
        return await get_doctor(session, doctor_id)
    except DoctorNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="doctor_not_found")
