from datetime import timedelta

import pytest

from telecare.core.security import decode_token
from telecare.modules.appointments import service
from telecare.modules.appointments.repository import SqlSchedulingStore
from telecare.modules.availability import repository as availability_repo
from telecare.modules.users.models import UserRole
from telecare.modules.video import TokenVideoProvider
from telecare.scheduling.domain import AppointmentStatus, BookingRequest
from telecare.scheduling.policy import SchedulingPolicy
from telecare.scheduling.results import Accepted, ErrorKind, Rejected
from telecare.scheduling.timewindow import TimeWindow
from telecare.scheduling.validator import validate_booking
from tests.helpers import FixedClock, at, window

POLICY = SchedulingPolicy()
VIDEO_SECRET = "video-secret-for-tests"


@pytest.fixture
async def doctor(make_user):
    return await make_user(UserRole.DOCTOR)


@pytest.fixture
async def patient(make_user):
    return await make_user(UserRole.PATIENT, credits=2)


@pytest.fixture
async def store(session, doctor):
    await availability_repo.create_block(
        session, doctor_id=doctor.id, start_time=at(9), end_time=at(10), timezone="UTC"
    )
    await session.commit()
    return SqlSchedulingStore(session)


@pytest.fixture
def provider(clock):
    return TokenVideoProvider(
        api_key="telecare-test",
        api_secret=VIDEO_SECRET,
        ttl=timedelta(hours=2),
        clock=clock,
    )


def _request(doctor, patient, start, description=None):
    return BookingRequest(
        doctor_id=doctor.id,
        patient_id=patient.id,
        window=window(start),
        patient_description=description,
    )


async def _book(store, doctor, patient, start, clock):
    result = await service.book_appointment(
        store, _request(doctor, patient, start), clock=clock, policy=POLICY
    )
    assert isinstance(result, Accepted), result
    return result.value


async def _slot_starts(store, doctor, clock):
    days = await service.get_available_days(
        store, doctor_id=doctor.id, tz="UTC", clock=clock, policy=POLICY
    )
    return [slot.start_time for day in days for slot in day.slots]


async def test_booking_removes_slot_from_availability(store, doctor, patient, clock):
    assert await _slot_starts(store, doctor, clock) == [at(9), at(9, 30)]

    booked = await _book(store, doctor, patient, at(9), clock)

    assert booked.status is AppointmentStatus.SCHEDULED
    assert await store.get_credits(patient.id) == 0
    assert await _slot_starts(store, doctor, clock) == [at(9, 30)]


async def test_available_days_cover_the_horizon(store, doctor, clock):
    days = await service.get_available_days(
        store, doctor_id=doctor.id, tz="UTC", clock=clock, policy=POLICY
    )
    assert len(days) == POLICY.horizon_days
    assert days[0].display_date == "Monday, January 7"
    assert all(not d.slots for d in days[1:])


async def test_day_public_formats_local_clock(store, doctor, clock):
    [first, *_] = await service.get_available_days(
        store, doctor_id=doctor.id, tz="America/New_York", clock=clock, policy=POLICY
    )
    public = service.to_day_public(first, "America/New_York")
    assert [s.formatted for s in public.slots] == ["4:00 AM", "4:30 AM"]
    assert {s.day for s in public.slots} == {"Monday"}


async def test_second_patient_cannot_take_booked_slot(store, doctor, patient, make_user, clock):
    other = await make_user(UserRole.PATIENT, credits=2)
    await _book(store, doctor, patient, at(9), clock)

    result = await service.book_appointment(
        store, _request(doctor, other, at(9)), clock=clock, policy=POLICY
    )

    assert isinstance(result, Rejected)
    assert result.kind is ErrorKind.SLOT_NOT_FREE
    assert await store.get_credits(other.id) == 2


async def test_second_booking_runs_out_of_credits(store, doctor, patient, clock):
    await _book(store, doctor, patient, at(9), clock)

    result = await service.book_appointment(
        store, _request(doctor, patient, at(9, 30)), clock=clock, policy=POLICY
    )

    assert result.kind is ErrorKind.INSUFFICIENT_CREDITS
    assert await _slot_starts(store, doctor, clock) == [at(9, 30)]


async def test_booking_in_the_past_is_rejected(store, doctor, patient):
    result = await service.book_appointment(
        store, _request(doctor, patient, at(9)), clock=FixedClock(at(9)), policy=POLICY
    )
    assert result.kind is ErrorKind.LEAD_TIME_VIOLATION


async def test_racing_bookings_from_same_snapshot(store, doctor, patient, make_user, clock):
    """Both requests pass validation on the same read; only one may be stored."""
    other = await make_user(UserRole.PATIENT, credits=2)
    blocks = await store.get_availability_blocks(doctor.id, window(at(9), 60))
    appointments = await store.get_appointments(doctor.id, window(at(9), 60))

    intents = []
    for who in (patient, other):
        decision = validate_booking(
            _request(doctor, who, at(9)),
            credits=2,
            blocks=blocks,
            appointments=appointments,
            now=clock.now(),
            policy=POLICY,
        )
        assert decision.ok
        intents.append(decision.value)

    results = [
        await store.create_appointment_atomic(i.appointment, i.credit_delta) for i in intents
    ]

    assert [r.ok for r in results] == [True, False]
    assert results[1].kind is ErrorKind.STORAGE_CONFLICT
    assert results[1].public_kind is ErrorKind.SLOT_NOT_FREE
    assert await store.get_credits(patient.id) == 0
    assert await store.get_credits(other.id) == 2


async def test_cancel_before_start_frees_the_slot(store, doctor, patient, clock):
    booked = await _book(store, doctor, patient, at(9), clock)

    result = await service.cancel_appointment(
        store, booked, clock=FixedClock(at(9) - timedelta(minutes=1))
    )

    assert result.value.status is AppointmentStatus.CANCELLED
    assert await store.get_credits(patient.id) == 0
    assert await _slot_starts(store, doctor, clock) == [at(9), at(9, 30)]


async def test_cancel_after_start_is_rejected(store, doctor, patient, clock):
    booked = await _book(store, doctor, patient, at(9), clock)

    result = await service.cancel_appointment(store, booked, clock=FixedClock(at(9)))

    assert result.kind is ErrorKind.ALREADY_STARTED
    assert (await store.get_appointment(booked.id)).status is AppointmentStatus.SCHEDULED


async def test_cancel_with_stale_copy_conflicts(store, doctor, patient, clock):
    booked = await _book(store, doctor, patient, at(9), clock)
    await service.cancel_appointment(store, booked, clock=clock)

    again = await service.cancel_appointment(store, booked, clock=clock)
    assert again.kind is ErrorKind.STORAGE_CONFLICT


async def test_complete_after_end_with_notes(store, doctor, patient, clock):
    booked = await _book(store, doctor, patient, at(9), clock)

    early = await service.complete_appointment(store, booked, clock=FixedClock(at(9, 29)))
    done = await service.complete_appointment(
        store, booked, clock=FixedClock(at(9, 30)), notes="rest and fluids"
    )

    assert early.kind is ErrorKind.NOT_YET_ENDABLE
    assert done.value.status is AppointmentStatus.COMPLETED
    assert done.value.notes == "rest and fluids"

    terminal = await service.cancel_appointment(
        store, done.value, clock=FixedClock(at(8))
    )
    assert terminal.kind is ErrorKind.ALREADY_TERMINAL


async def test_add_notes(store, doctor, patient, clock):
    booked = await _book(store, doctor, patient, at(9), clock)

    result = await service.add_notes(store, booked, "allergic to penicillin")
    assert result.value.notes == "allergic to penicillin"

    cancelled = (await service.cancel_appointment(store, booked, clock=clock)).value
    assert (await service.add_notes(store, cancelled, "x")).kind is ErrorKind.ALREADY_TERMINAL


async def test_completed_appointment_notes_are_final(store, doctor, patient, clock):
    booked = await _book(store, doctor, patient, at(9), clock)
    done = await service.complete_appointment(
        store, booked, clock=FixedClock(at(10)), notes="final", actor_id=doctor.id
    )

    result = await service.add_notes(store, done.value, "rewritten after completion")
    stale = await service.add_notes(store, booked, "written from a stale copy")

    assert result.kind is ErrorKind.ALREADY_TERMINAL
    assert stale.kind is ErrorKind.ALREADY_TERMINAL
    assert (await store.get_appointment(booked.id)).notes == "final"


async def test_complete_without_notes_keeps_earlier_notes(store, doctor, patient, clock):
    booked = await _book(store, doctor, patient, at(9), clock)
    noted = (await service.add_notes(store, booked, "bring x-rays")).value

    done = await service.complete_appointment(store, noted, clock=FixedClock(at(10)))

    assert done.value.status is AppointmentStatus.COMPLETED
    assert done.value.notes == "bring x-rays"


async def test_booking_longer_than_a_slot_is_rejected(store, doctor, make_user, clock):
    rich = await make_user(UserRole.PATIENT, credits=10)
    request = BookingRequest(
        doctor_id=doctor.id, patient_id=rich.id, window=TimeWindow(at(9), at(10))
    )

    result = await service.book_appointment(store, request, clock=clock, policy=POLICY)

    assert result.kind is ErrorKind.SLOT_NOT_FREE
    assert await store.get_credits(rich.id) == 10
    assert await _slot_starts(store, doctor, clock) == [at(9), at(9, 30)]


async def test_join_issues_video_token_and_reuses_room(store, doctor, patient, clock, provider):
    booked = await _book(store, doctor, patient, at(9), clock)
    clock.instant = at(8, 45)

    first = await service.join_video_session(
        store, booked, clock=clock, provider=provider, policy=POLICY
    )
    assert isinstance(first, Accepted)
    claims = decode_token(first.value.token, secret=VIDEO_SECRET)
    assert claims["type"] == "video"
    assert claims["sub"] == first.value.session_id
    assert claims["appointment_id"] == str(booked.id)

    reloaded = await store.get_appointment(booked.id)
    assert reloaded.video_session_id == first.value.session_id
    second = await service.join_video_session(
        store, reloaded, clock=clock, provider=provider, policy=POLICY
    )
    assert second.value.session_id == first.value.session_id


async def test_join_outside_window_is_rejected(store, doctor, patient, clock, provider):
    booked = await _book(store, doctor, patient, at(9), clock)

    result = await service.join_video_session(
        store, booked, clock=clock, provider=provider, policy=POLICY
    )
    assert result.kind is ErrorKind.NOT_JOINABLE


async def test_load_appointment_checks_participants(store, doctor, patient, make_user, clock):
    booked = await _book(store, doctor, patient, at(9), clock)
    stranger = await make_user(UserRole.PATIENT)
    admin = await make_user(UserRole.ADMIN)

    assert (await service.load_appointment(store, booked.id, patient, action="cancel")).id == booked.id
    assert await service.load_appointment(store, booked.id, doctor, action="complete")
    assert await service.load_appointment(store, booked.id, admin, action="cancel")

    with pytest.raises(service.AppointmentForbidden):
        await service.load_appointment(store, booked.id, stranger, action="cancel")
    with pytest.raises(service.AppointmentForbidden):
        await service.load_appointment(store, booked.id, patient, action="complete")
    with pytest.raises(service.AppointmentForbidden):
        await service.load_appointment(store, booked.id, admin, action="join")
    with pytest.raises(service.AppointmentNotFound):
        await service.load_appointment(store, stranger.id, patient, action="cancel")


async def test_list_my_appointments_by_role(session, store, doctor, patient, make_user, clock):
    await _book(store, doctor, patient, at(9), clock)
    stranger = await make_user(UserRole.PATIENT)

    mine = await service.list_my_appointments(session, patient, limit=10, offset=0)
    theirs = await service.list_my_appointments(session, doctor, limit=10, offset=0)
    nobody = await service.list_my_appointments(session, stranger, limit=10, offset=0)

    assert mine.total == theirs.total == 1
    assert mine.items[0].status is AppointmentStatus.SCHEDULED
    assert nobody.total == 0
    assert not mine.has_next


async def test_two_credit_patient_racing_for_two_slots(store, doctor, patient, clock):
    """Two different windows validated on the same balance: only one is paid for."""
    blocks = await store.get_availability_blocks(doctor.id, window(at(9), 60))
    credits = await store.get_credits(patient.id)

    intents = [
        validate_booking(
            _request(doctor, patient, start),
            credits=credits,
            blocks=blocks,
            appointments=[],
            now=clock.now(),
            policy=POLICY,
        ).value
        for start in (at(9), at(9, 30))
    ]
    results = [
        await store.create_appointment_atomic(i.appointment, i.credit_delta) for i in intents
    ]

    assert results[0].ok
    assert results[1].kind is ErrorKind.INSUFFICIENT_CREDITS
    assert await store.get_credits(patient.id) == 0
    assert await _slot_starts(store, doctor, clock) == [at(9, 30)]
