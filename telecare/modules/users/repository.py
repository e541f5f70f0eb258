# telecare/modules/users/repository.py
from __future__ import annotations

from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.modules.users.models import User, UserRole, VerificationStatus


class EmailAlreadyExistsError(Exception):
    """Raised when trying to insert a user with an email that already exists."""


class InvalidUserDataError(Exception):
    """Raised when DB-level constraints fail (e.g., bad CHECK constraints)."""


async def get_by_id(session: AsyncSession, user_id: UUID) -> Optional[User]:
    return await session.get(User, user_id)


async def get_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """
    Returns a User by email (normalized to lowercase) or None.
    """
    email = email.strip().lower()
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    password_hash: str,
    first_name: str,
    last_name: str,
    role: UserRole | str = UserRole.PATIENT,
    credits: int = 0,
    timezone: str = "UTC",
    specialty: Optional[str] = None,
    experience_years: Optional[int] = None,
    description: Optional[str] = None,
) -> User:
    """
    Inserts a new user row and returns the persisted ORM instance.

    Expects a *hashed* password. Doctors start with verification 'pending'.
    """
    role_value = role.value if isinstance(role, UserRole) else str(role)
    is_doctor = role_value == UserRole.DOCTOR.value

    user = User(
        email=email.strip().lower(),
        password_hash=password_hash,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role_value,
        credits=credits,
        timezone=timezone,
        specialty=specialty if is_doctor else None,
        experience_years=experience_years if is_doctor else None,
        description=description if is_doctor else None,
        verification_status=VerificationStatus.PENDING.value if is_doctor else None,
        is_active=True,
    )

    session.add(user)
    try:
        # Flush to force INSERT and surface constraint violations here
        await session.flush()
    except IntegrityError as exc:
        message = str(exc.orig).lower() if exc.orig else str(exc).lower()
        if "uq_users_email" in message or "unique" in message:
            raise EmailAlreadyExistsError("Email already registered") from exc
        raise InvalidUserDataError("Failed to insert user") from exc

    await session.refresh(user)
    return user


async def lock_user(session: AsyncSession, user_id: UUID) -> Optional[User]:
    """
    SELECT ... FOR UPDATE on the user row. Serializes writers on that user
    until the surrounding transaction ends (no-op on SQLite, which locks the
    whole database on write).
    """
    stmt = (
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def debit_credits(session: AsyncSession, *, user_id: UUID, amount: int) -> bool:
    """
    Conditional debit: succeeds only if the balance covers `amount`.
    """
    stmt = (
        update(User)
        .where(User.id == user_id, User.credits >= amount)
        .values(credits=User.credits - amount)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return (res.rowcount or 0) == 1  # type: ignore


async def add_credits(session: AsyncSession, *, user_id: UUID, amount: int) -> Optional[int]:
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(credits=User.credits + amount)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    if not res.rowcount:  # type: ignore
        return None
    return await get_credits(session, user_id)


async def get_credits(session: AsyncSession, user_id: UUID) -> Optional[int]:
    row = await session.execute(select(User.credits).where(User.id == user_id))
    return row.scalar_one_or_none()


async def set_verification(
    session: AsyncSession, *, doctor_id: UUID, status: VerificationStatus
) -> Optional[User]:
    doctor = await get_by_id(session, doctor_id)
    if not doctor or not doctor.is_doctor:
        return None
    doctor.verification_status = status.value
    await session.flush()
    await session.refresh(doctor)
    return doctor


async def list_doctors(
    session: AsyncSession,
    *,
    specialty: Optional[str] = None,
    verified_only: bool = True,
    limit: int = 50,
    offset: int = 0,
) -> tuple[Sequence[User], int]:
    conditions = [User.role == UserRole.DOCTOR.value, User.is_active.is_(True)]
    if verified_only:
        conditions.append(User.verification_status == VerificationStatus.VERIFIED.value)
    if specialty:
        conditions.append(func.lower(User.specialty) == specialty.strip().lower())

    total_stmt = select(func.count()).select_from(User).where(*conditions)
    total = (await session.execute(total_stmt)).scalar_one()

    stmt = (
        select(User)
        .where(*conditions)
        .order_by(User.last_name, User.first_name, User.id)  # tie-breaker for stable paging
        .limit(limit)
        .offset(offset)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return rows, total
