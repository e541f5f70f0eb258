# telecare/modules/appointments/service.py
from __future__ import annotations

import logging
from typing import List, Optional, Union
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from telecare.modules.appointments import repository as appointments_repo
from telecare.modules.appointments.schemas import (
    AppointmentListPage,
    AppointmentPublic,
    AvailableDayPublic,
    SlotPublic,
)
from telecare.modules.users.models import User, UserRole
from telecare.scheduling import lifecycle
from telecare.scheduling.domain import (
    Appointment,
    AvailableDay,
    BookingRequest,
)
from telecare.scheduling.policy import SchedulingPolicy
from telecare.scheduling.ports import Clock, SchedulingStore, VideoSession, VideoSessionProvider
from telecare.scheduling.resolver import horizon_window, resolve_available_days
from telecare.scheduling.results import Accepted, ErrorKind, Rejected, Result
from telecare.scheduling.validator import validate_booking

logger = logging.getLogger(__name__)


class AppointmentNotFound(Exception):
    """
    No appointment found
    """


class AppointmentForbidden(Exception):
    """
    User does not have permission to operate this appointment
    """


# AVAILABLE SLOTS
async def get_available_days(
    store: SchedulingStore,
    *,
    doctor_id: UUID,
    tz: Union[str, ZoneInfo],
    clock: Clock,
    policy: SchedulingPolicy,
) -> List[AvailableDay]:
    """
    Bookable slots of a doctor over the policy horizon, grouped by day in `tz`.
    Reads live data on every call.
    """
    now = clock.now()
    horizon = horizon_window(now, tz, policy.horizon_days)
    blocks = await store.get_availability_blocks(doctor_id, horizon)
    appointments = await store.get_appointments(doctor_id, horizon)
    return resolve_available_days(
        doctor_id, blocks, appointments, now=now, policy=policy, tz=tz
    )


def to_day_public(day: AvailableDay, tz: Union[str, ZoneInfo]) -> AvailableDayPublic:
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    return AvailableDayPublic(
        date=day.date,
        display_date=day.display_date,
        slots=[_slot_public(s.start_time, s.end_time, zone) for s in day.slots],
    )


def _slot_public(start, end, zone: ZoneInfo) -> SlotPublic:
    local = start.astimezone(zone)
    return SlotPublic(
        start_time=start,
        end_time=end,
        formatted=_clock_label(local),
        day=f"{local:%A}",
    )


def _clock_label(moment) -> str:
    """e.g. '9:30 AM'"""
    return f"{moment.hour % 12 or 12}:{moment:%M} {moment:%p}"


# BOOK
async def book_appointment(
    store: SchedulingStore,
    request: BookingRequest,
    *,
    clock: Clock,
    policy: SchedulingPolicy,
) -> Result[Appointment]:
    """
    Validate `request` against freshly read credits, blocks and appointments,
    then hand the accepted intent to the store's atomic create.
    No retry on failure: the caller resubmits with fresh data.
    """
    credits = await store.get_credits(request.patient_id)
    blocks = await store.get_availability_blocks(request.doctor_id, request.window)
    appointments = await store.get_appointments(request.doctor_id, request.window)

    decision = validate_booking(
        request,
        credits=credits,
        blocks=blocks,
        appointments=appointments,
        now=clock.now(),
        policy=policy,
    )
    if isinstance(decision, Rejected):
        logger.info(
            "Booking rejected for patient %s with doctor %s at %s: %s",
            request.patient_id, request.doctor_id, request.window.start, decision.kind.value,
        )
        return decision

    intent = decision.value
    result = await store.create_appointment_atomic(intent.appointment, intent.credit_delta)
    if isinstance(result, Accepted):
        logger.info(
            "Booked appointment %s for patient %s with doctor %s",
            result.value.id, request.patient_id, request.doctor_id,
        )
    return result


# OWNERSHIP
async def load_appointment(
    store: SchedulingStore, appointment_id: UUID, actor: User, *, action: str
) -> Appointment:
    """
    Fetch an appointment and check that `actor` may perform `action` on it:
    - cancel: the patient, the doctor, or an admin
    - complete / notes: the doctor only
    - join: the patient or the doctor
    """
    appointment = await store.get_appointment(appointment_id)
    if appointment is None:
        raise AppointmentNotFound("appointment_not_found")

    is_patient = actor.role == UserRole.PATIENT.value and appointment.patient_id == actor.id
    is_doctor = actor.role == UserRole.DOCTOR.value and appointment.doctor_id == actor.id
    is_admin = actor.role == UserRole.ADMIN.value

    allowed = {
        "cancel": is_patient or is_doctor or is_admin,
        "complete": is_doctor,
        "notes": is_doctor,
        "join": is_patient or is_doctor,
    }.get(action, False)
    if not allowed:
        raise AppointmentForbidden("not_owner")
    return appointment


# CANCEL
async def cancel_appointment(
    store: SchedulingStore,
    appointment: Appointment,
    *,
    clock: Clock,
    actor_id: Optional[UUID] = None,
) -> Result[Appointment]:
    """
    SCHEDULED -> CANCELLED before start. Credits are not refunded.
    """
    decision = lifecycle.cancel(appointment, clock.now())
    if isinstance(decision, Rejected):
        return decision
    return await store.update_appointment_status(
        appointment.id, appointment.status, decision.value.status, actor_id=actor_id
    )


# COMPLETE
async def complete_appointment(
    store: SchedulingStore,
    appointment: Appointment,
    *,
    clock: Clock,
    notes: Optional[str] = None,
    actor_id: Optional[UUID] = None,
) -> Result[Appointment]:
    decision = lifecycle.complete(appointment, clock.now(), notes=notes)
    if isinstance(decision, Rejected):
        return decision
    done = decision.value
    changes = {"notes": done.notes} if notes is not None else {}
    return await store.update_appointment_status(
        appointment.id, appointment.status, done.status, actor_id=actor_id, **changes
    )


# NOTES
async def add_notes(
    store: SchedulingStore, appointment: Appointment, notes: str
) -> Result[Appointment]:
    if appointment.status.is_terminal:
        return Rejected(ErrorKind.ALREADY_TERMINAL, f"appointment is {appointment.status.value}")
    return await store.set_notes(appointment.id, notes)


# VIDEO
async def join_video_session(
    store: SchedulingStore,
    appointment: Appointment,
    *,
    clock: Clock,
    provider: VideoSessionProvider,
    policy: SchedulingPolicy,
) -> Result[VideoSession]:
    """
    Provision (or reuse) the appointment's video room inside the join window.
    """
    rejected = lifecycle.check_join(appointment, clock.now(), policy.join_window)
    if rejected:
        return rejected

    session = provider.provision_session(
        appointment.id, session_id=appointment.video_session_id
    )
    attached = await store.attach_video_session(appointment.id, session)
    if isinstance(attached, Rejected):
        return attached
    return Accepted(session)


# MY APPOINTMENTS
async def list_my_appointments(
    session: AsyncSession,
    current_user: User,
    limit: int,
    offset: int,
) -> AppointmentListPage:
    rows, total = await appointments_repo.list_for_user(
        session,
        user_id=current_user.id,
        role=current_user.role,
        limit=limit,
        offset=offset,
    )
    items = [AppointmentPublic.model_validate(appointments_repo.to_domain(r)) for r in rows]
    return AppointmentListPage(
        items=items,
        total=total,
        limit=limit,
        offset=offset,
        has_next=offset + limit < total,
    )
