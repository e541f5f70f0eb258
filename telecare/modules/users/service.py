# telecare/modules/users/service.py
from __future__ import annotations

import logging
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.config import settings
from telecare.core.security import create_access_token, hash_password, verify_password
from telecare.modules.log import write_audit_log
from telecare.modules.users import repository as users_repo
from telecare.modules.users.models import User, UserRole, VerificationStatus
from telecare.modules.users.schemas import (
    AdminAccount,
    CreditBalance,
    DoctorAccount,
    DoctorList,
    DoctorPublic,
    LoginRequest,
    LoginResponse,
    PatientAccount,
    RegisterRequest,
    Role,
)

logger = logging.getLogger(__name__)


# Service-level errors (map them to HTTP in the router)
class EmailAlreadyExists(Exception):
    pass


class InvalidCredentials(Exception):
    pass


class UserNotFound(Exception):
    pass


class DoctorNotFound(Exception):
    pass


def to_account(user: User) -> Union[PatientAccount, DoctorAccount, AdminAccount]:
    """
    Public view of a user, picked by the role discriminant.
    """
    if user.role == UserRole.DOCTOR.value:
        return DoctorAccount.model_validate(user)
    if user.role == UserRole.ADMIN.value:
        return AdminAccount.model_validate(user)
    return PatientAccount.model_validate(user)


async def register_user(session: AsyncSession, payload: RegisterRequest) -> User:
    """
    Registration flow:
      1) Check email uniqueness.
      2) Hash password.
      3) Persist; patients start with SIGNUP_CREDITS, doctors start 'pending'.
    """
    email = payload.email.strip().lower()

    if await users_repo.get_by_email(session, email):
        raise EmailAlreadyExists("email_already_exists")

    is_patient = payload.role is Role.patient
    try:
        user = await users_repo.create_user(
            session,
            email=email,
            password_hash=hash_password(payload.password.get_secret_value()),
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role.value,
            credits=settings.SIGNUP_CREDITS if is_patient else 0,
            timezone=payload.timezone or settings.DEFAULT_TIMEZONE,
            specialty=payload.specialty,
            experience_years=payload.experience_years,
            description=payload.description,
        )
    except users_repo.EmailAlreadyExistsError as exc:
        # lost a race with a concurrent registration
        raise EmailAlreadyExists("email_already_exists") from exc

    await write_audit_log(session, user.id, "REGISTER", f"role={user.role}")
    logger.info("Registered user %s as %s", user.id, user.role)
    return user


async def login_user(session: AsyncSession, payload: LoginRequest) -> LoginResponse:
    user = await users_repo.get_by_email(session, payload.email)
    if not user or not user.is_active:
        raise InvalidCredentials("invalid_credentials")

    if not verify_password(payload.password.get_secret_value(), user.password_hash):
        raise InvalidCredentials("invalid_credentials")

    access = create_access_token(subject=str(user.id), email=user.email, role=user.role)
    return LoginResponse(
        access_token=access,
        expires_in=settings.ACCESS_EXPIRES_MIN * 60,
    )


async def get_doctor(session: AsyncSession, doctor_id: UUID, *, verified_only: bool = True) -> User:
    doctor = await users_repo.get_by_id(session, doctor_id)
    if not doctor or not doctor.is_doctor or not doctor.is_active:
        raise DoctorNotFound("doctor_not_found")
    if verified_only and not doctor.is_verified_doctor:
        raise DoctorNotFound("doctor_not_found")
    return doctor


async def list_doctors(
    session: AsyncSession,
    *,
    specialty: Optional[str],
    limit: int,
    offset: int,
) -> DoctorList:
    doctors, total = await users_repo.list_doctors(
        session, specialty=specialty, limit=limit, offset=offset
    )
    return DoctorList(
        items=[DoctorPublic.model_validate(d) for d in doctors],
        total=total,
    )


async def grant_credits(
    session: AsyncSession, *, user_id: UUID, amount: int, granted_by: UUID
) -> CreditBalance:
    balance = await users_repo.add_credits(session, user_id=user_id, amount=amount)
    if balance is None:
        raise UserNotFound("user_not_found")
    await write_audit_log(session, granted_by, "GRANT_CREDITS", f"user={user_id} amount={amount}")
    return CreditBalance(user_id=user_id, credits=balance)


async def set_doctor_verification(
    session: AsyncSession,
    *,
    doctor_id: UUID,
    status: VerificationStatus,
    changed_by: UUID,
) -> User:
    doctor = await users_repo.set_verification(session, doctor_id=doctor_id, status=status)
    if doctor is None:
        raise DoctorNotFound("doctor_not_found")
    await write_audit_log(session, changed_by, "SET_VERIFICATION", f"doctor={doctor_id} status={status.value}")
    return doctor
