# telecare/routers/admin.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.permission import require_roles
from telecare.db.sql import get_session
from telecare.modules.users.models import User, VerificationStatus
from telecare.modules.users.schemas import (
    CreditBalance,
    CreditGrantRequest,
    DoctorAccount,
    VerificationUpdateRequest,
)
from telecare.modules.users.service import (
    DoctorNotFound,
    UserNotFound,
    grant_credits,
    set_doctor_verification,
)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/users/{user_id}/credits",
    response_model=CreditBalance,
    summary="Grant credits to a user",
)
async def admin_grant_credits(
    user_id: UUID,
    payload: CreditGrantRequest,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles("admin")),
):
    try:
        return await grant_credits(
            session, user_id=user_id, amount=payload.amount, granted_by=admin.id
        )
    except UserNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user_not_found")


@router.post(
    "/doctors/{doctor_id}/verification",
    response_model=DoctorAccount,
    summary="Verify or reject a doctor",
)
async def admin_set_verification(
    doctor_id: UUID,
    payload: VerificationUpdateRequest,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_roles("admin")),
):
    try:
        doctor = await set_doctor_verification(
            session,
            doctor_id=doctor_id,
            status=VerificationStatus(payload.status.value),
            changed_by=admin.id,
        )
    except DoctorNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="doctor_not_found")
    return DoctorAccount.model_validate(doctor)
