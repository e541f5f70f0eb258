# telecare/routers/appointments.py
from __future__ import annotations

from typing import List, NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.permission import require_roles
from telecare.db.sql import get_session
from telecare.dependencies import (
    get_clock,
    get_current_user,
    get_policy,
    get_store,
    get_video_provider,
)
from telecare.modules.appointments.schemas import (
    AppointmentListPage,
    AppointmentPublic,
    AvailableDayPublic,
    BookAppointmentRequest,
    CompleteRequest,
    NotesRequest,
    VideoSessionPublic,
)
from telecare.modules.appointments.service import (
    AppointmentForbidden,
    AppointmentNotFound,
    add_notes,
    book_appointment,
    cancel_appointment,
    complete_appointment,
    get_available_days,
    join_video_session,
    list_my_appointments,
    load_appointment,
    to_day_public,
)
from telecare.modules.users.models import User
from telecare.modules.users.service import DoctorNotFound, get_doctor
from telecare.scheduling.domain import Appointment, BookingRequest
from telecare.scheduling.policy import SchedulingPolicy
from telecare.scheduling.ports import Clock, SchedulingStore, VideoSessionProvider
from telecare.scheduling.results import ErrorKind, Rejected
from telecare.scheduling.timewindow import TimeWindow

router = APIRouter(tags=["appointments"])

_HTTP_STATUS = {
    ErrorKind.INSUFFICIENT_CREDITS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.SLOT_NOT_FREE: status.HTTP_409_CONFLICT,
    ErrorKind.LEAD_TIME_VIOLATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.NOT_YET_ENDABLE: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_STARTED: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_JOINABLE: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_TERMINAL: status.HTTP_409_CONFLICT,
}


def _raise_rejected(rejected: Rejected) -> NoReturn:
    kind = rejected.public_kind
    raise HTTPException(status_code=_HTTP_STATUS[kind], detail=kind.value)


async def _load(store: SchedulingStore, appointment_id: UUID, user: User, action: str) -> Appointment:
    try:
        return await load_appointment(store, appointment_id, user, action=action)
    except AppointmentNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="appointment_not_found")
    except AppointmentForbidden as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e) or "forbidden")


@router.get(
    "/appointments/available-slots/{doctor_id}",
    response_model=List[AvailableDayPublic],
    summary="Bookable slots of a doctor, one entry per day of the horizon",
)
async def appointments_available_slots(
    doctor_id: UUID,
    session: AsyncSession = Depends(get_session),
    store: SchedulingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: SchedulingPolicy = Depends(get_policy),
):
    try:
        doctor = await get_doctor(session, doctor_id)
    except DoctorNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="doctor_not_found")

    days = await get_available_days(
        store, doctor_id=doctor_id, tz=doctor.timezone, clock=clock, policy=policy
    )
    return [to_day_public(day, doctor.timezone) for day in days]


@router.post(
    "/appointments/book",
    response_model=AppointmentPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Book a slot (charges the booking cost in credits)",
)
async def appointments_book(
    payload: BookAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    store: SchedulingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: SchedulingPolicy = Depends(get_policy),
    current_user: User = Depends(require_roles("patient")),
):
    try:
        await get_doctor(session, payload.doctor_id)
    except DoctorNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="doctor_not_found")

    request = BookingRequest(
        doctor_id=payload.doctor_id,
        patient_id=current_user.id,
        window=TimeWindow(payload.start_time, payload.end_time),
        patient_description=payload.description,
    )
    result = await book_appointment(store, request, clock=clock, policy=policy)
    if isinstance(result, Rejected):
        _raise_rejected(result)
    return AppointmentPublic.model_validate(result.value)


@router.get(
    "/appointments/my",
    response_model=AppointmentListPage,
    summary="Retrieve current user's appointments",
)
async def appointments_my(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await list_my_appointments(session, current_user, limit, offset)


@router.post(
    "/appointments/{appointment_id}/cancel",
    response_model=AppointmentPublic,
    summary="Cancel an appointment before it starts",
)
async def appointments_cancel(
    appointment_id: UUID,
    store: SchedulingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
):
    appointment = await _load(store, appointment_id, current_user, "cancel")
    result = await cancel_appointment(
        store, appointment, clock=clock, actor_id=current_user.id
    )
    if isinstance(result, Rejected):
        _raise_rejected(result)
    return AppointmentPublic.model_validate(result.value)


@router.post(
    "/appointments/{appointment_id}/complete",
    response_model=AppointmentPublic,
    summary="Doctor marks an appointment completed after it ends",
)
async def appointments_complete(
    appointment_id: UUID,
    payload: CompleteRequest,
    store: SchedulingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_roles("doctor")),
):
    appointment = await _load(store, appointment_id, current_user, "complete")
    result = await complete_appointment(
        store, appointment, clock=clock, notes=payload.notes, actor_id=current_user.id
    )
    if isinstance(result, Rejected):
        _raise_rejected(result)
    return AppointmentPublic.model_validate(result.value)


@router.post(
    "/appointments/{appointment_id}/notes",
    response_model=AppointmentPublic,
    summary="Doctor writes notes on an appointment",
)
async def appointments_notes(
    appointment_id: UUID,
    payload: NotesRequest,
    store: SchedulingStore = Depends(get_store),
    current_user: User = Depends(require_roles("doctor")),
):
    appointment = await _load(store, appointment_id, current_user, "notes")
    result = await add_notes(store, appointment, payload.notes)
    if isinstance(result, Rejected):
        _raise_rejected(result)
    return AppointmentPublic.model_validate(result.value)


@router.post(
    "/appointments/{appointment_id}/video-token",
    response_model=VideoSessionPublic,
    summary="Join credentials for the appointment's video room",
)
async def appointments_video_token(
    appointment_id: UUID,
    store: SchedulingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: SchedulingPolicy = Depends(get_policy),
    provider: VideoSessionProvider = Depends(get_video_provider),
    current_user: User = Depends(get_current_user),
):
    appointment = await _load(store, appointment_id, current_user, "join")
    result = await join_video_session(
        store, appointment, clock=clock, provider=provider, policy=policy
    )
    if isinstance(result, Rejected):
        _raise_rejected(result)
    return VideoSessionPublic(video_session_id=result.value.session_id, token=result.value.token)
