# telecare/modules/appointments/repository.py
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.modules.appointments.models import ACTIVE, Appointment
from telecare.modules.availability import repository as availability_repo
from telecare.modules.log import write_audit_log
from telecare.modules.users import repository as users_repo
from telecare.modules.users.models import UserRole
from telecare.scheduling import domain
from telecare.scheduling.domain import AppointmentStatus
from telecare.scheduling.lifecycle import can_transition
from telecare.scheduling.ports import VideoSession
from telecare.scheduling.results import Accepted, ErrorKind, Rejected, Result
from telecare.scheduling.timewindow import TimeWindow

logger = logging.getLogger(__name__)

_AUDIT_ACTIONS = {
    AppointmentStatus.CANCELLED: "CANCEL_APPOINTMENT",
    AppointmentStatus.COMPLETED: "COMPLETE_APPOINTMENT",
}


class _Abort(Exception):
    """Unwinds the current savepoint with a rejection."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


def to_domain(row: Appointment) -> domain.Appointment:
    return domain.Appointment(
        id=row.id,
        patient_id=row.patient_id,
        doctor_id=row.doctor_id,
        window=TimeWindow(row.start_time, row.end_time),
        status=AppointmentStatus(row.status),
        notes=row.notes,
        patient_description=row.patient_description,
        video_session_id=row.video_session_id,
        video_session_token=row.video_session_token,
    )


def _active_overlap_stmt(doctor_id: UUID, window: TimeWindow):
    return select(Appointment).where(
        Appointment.doctor_id == doctor_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.start_time < window.end,
        Appointment.end_time > window.start,
    )


class SqlSchedulingStore:
    """
    SQLAlchemy implementation of the scheduling store.

    Every write runs in a SAVEPOINT of the caller's transaction, so a
    rejected operation leaves nothing behind; the caller still owns the
    final COMMIT. Bookings for one doctor are serialized by locking that
    doctor's user row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ----- reads -----

    async def get_availability_blocks(
        self, doctor_id: UUID, window: TimeWindow
    ) -> List[domain.AvailabilityBlock]:
        rows = await availability_repo.list_by_doctor(
            self.session, doctor_id=doctor_id, window=window
        )
        return [availability_repo.to_domain(r) for r in rows]

    async def get_appointments(
        self, doctor_id: UUID, window: TimeWindow
    ) -> List[domain.Appointment]:
        stmt = _active_overlap_stmt(doctor_id, window).order_by(Appointment.start_time)
        rows = (await self.session.execute(stmt)).scalars().all()
        return [to_domain(r) for r in rows]

    async def get_appointment(self, appointment_id: UUID) -> Optional[domain.Appointment]:
        row = await self.session.get(Appointment, appointment_id, populate_existing=True)
        return to_domain(row) if row else None

    async def get_credits(self, patient_id: UUID) -> int:
        return await users_repo.get_credits(self.session, patient_id) or 0

    # ----- writes -----

    async def create_appointment_atomic(
        self, appointment: domain.Appointment, credit_delta: int
    ) -> Result[domain.Appointment]:
        session = self.session
        try:
            async with session.begin_nested():
                # per-doctor lock: concurrent bookings for this doctor queue here
                doctor = await users_repo.lock_user(session, appointment.doctor_id)
                if doctor is None or doctor.role != UserRole.DOCTOR.value:
                    raise _Abort(ErrorKind.SLOT_NOT_FREE, "doctor_not_found")

                overlap = await session.execute(
                    _active_overlap_stmt(appointment.doctor_id, appointment.window).limit(1)
                )
                if overlap.scalar_one_or_none() is not None:
                    raise _Abort(ErrorKind.STORAGE_CONFLICT, "slot taken concurrently")

                if credit_delta < 0:
                    debited = await users_repo.debit_credits(
                        session, user_id=appointment.patient_id, amount=-credit_delta
                    )
                    if not debited:
                        raise _Abort(ErrorKind.INSUFFICIENT_CREDITS, "balance changed concurrently")

                booked = await availability_repo.book_segment(
                    session, doctor_id=appointment.doctor_id, window=appointment.window
                )
                if not booked:
                    raise _Abort(ErrorKind.STORAGE_CONFLICT, "availability changed concurrently")

                row = Appointment(
                    patient_id=appointment.patient_id,
                    doctor_id=appointment.doctor_id,
                    start_time=appointment.start_time,
                    end_time=appointment.end_time,
                    status=AppointmentStatus.SCHEDULED.value,
                    active_key=ACTIVE,
                    patient_description=appointment.patient_description,
                )
                session.add(row)
                await session.flush()
                await write_audit_log(
                    session,
                    appointment.patient_id,
                    "BOOK_APPOINTMENT",
                    f"appointment={row.id} doctor={row.doctor_id} start={row.start_time.isoformat()}",
                )
        except _Abort as exc:
            logger.warning(
                "Booking for doctor %s at %s aborted: %s",
                appointment.doctor_id, appointment.start_time, exc.message,
            )
            return Rejected(exc.kind, exc.message)
        except IntegrityError as exc:
            logger.warning(
                "Booking for doctor %s at %s hit a constraint: %s",
                appointment.doctor_id, appointment.start_time, exc.orig,
            )
            return Rejected(ErrorKind.STORAGE_CONFLICT, "slot taken concurrently")

        await session.refresh(row)
        return Accepted(to_domain(row))

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        expected: AppointmentStatus,
        new: AppointmentStatus,
        *,
        actor_id: Optional[UUID] = None,
        **changes: Any,
    ) -> Result[domain.Appointment]:
        if not can_transition(expected, new):
            return Rejected(
                ErrorKind.ALREADY_TERMINAL, f"no transition from {expected.value} to {new.value}"
            )
        values = {"status": new.value, **changes}
        if new is AppointmentStatus.CANCELLED:
            values["active_key"] = None

        try:
            async with self.session.begin_nested():
                row = await self._compare_and_set(appointment_id, expected, values)
                if new is AppointmentStatus.CANCELLED:
                    await availability_repo.release_segment(
                        self.session,
                        doctor_id=row.doctor_id,
                        window=TimeWindow(row.start_time, row.end_time),
                    )
                await write_audit_log(
                    self.session, actor_id, _AUDIT_ACTIONS[new], f"appointment={appointment_id}"
                )
        except _Abort as exc:
            return Rejected(exc.kind, exc.message)
        return Accepted(to_domain(row))

    async def attach_video_session(
        self, appointment_id: UUID, session: VideoSession
    ) -> Result[domain.Appointment]:
        values = {
            "video_session_id": session.session_id,
            "video_session_token": session.token,
        }
        try:
            async with self.session.begin_nested():
                row = await self._compare_and_set(
                    appointment_id, AppointmentStatus.SCHEDULED, values
                )
        except _Abort as exc:
            return Rejected(ErrorKind.NOT_JOINABLE, exc.message)
        return Accepted(to_domain(row))

    async def set_notes(self, appointment_id: UUID, notes: str) -> Result[domain.Appointment]:
        try:
            async with self.session.begin_nested():
                row = await self._compare_and_set(
                    appointment_id, AppointmentStatus.SCHEDULED, {"notes": notes}
                )
        except _Abort as exc:
            return Rejected(ErrorKind.ALREADY_TERMINAL, exc.message)
        return Accepted(to_domain(row))

    async def _compare_and_set(
        self, appointment_id: UUID, expected: AppointmentStatus, values: dict
    ) -> Appointment:
        stmt = (
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        if res.rowcount != 1:  # type: ignore
            raise _Abort(ErrorKind.STORAGE_CONFLICT, f"appointment is no longer {expected.value}")
        return await self.session.get(Appointment, appointment_id, populate_existing=True)


async def list_for_user(
    session: AsyncSession,
    *,
    user_id: UUID,
    role: str,
    limit: int,
    offset: int,
) -> Tuple[Sequence[Appointment], int]:
    """
    - patient => appointments where user is patient
    - doctor => appointments where user is doctor
    - admin => all
    """
    if role == UserRole.PATIENT.value:
        conditions = [Appointment.patient_id == user_id]
    elif role == UserRole.DOCTOR.value:
        conditions = [Appointment.doctor_id == user_id]
    else:
        conditions = []

    total_stmt = select(func.count()).select_from(Appointment).where(*conditions)
    total = (await session.execute(total_stmt)).scalar_one()

    stmt = (
        select(Appointment)
        .where(*conditions)
        .order_by(Appointment.start_time.desc(), Appointment.id)
        .limit(limit)
        .offset(offset)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return rows, total
