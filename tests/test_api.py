from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from telecare.core.config import settings
from telecare.core.security import create_access_token
from telecare.db.sql import get_session
from telecare.dependencies import get_clock
from telecare.main import create_app
from telecare.modules.users.models import UserRole
from tests.helpers import at

API = settings.API_PREFIX


@pytest.fixture
async def client(session, clock):
    app = create_app()

    async def _session():
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def _auth(user) -> dict:
    token = create_access_token(subject=str(user.id), role=user.role, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def doctor(make_user):
    user = await make_user(UserRole.DOCTOR)
    return {"id": str(user.id), "headers": _auth(user)}


@pytest.fixture
async def patient(make_user):
    user = await make_user(UserRole.PATIENT, credits=2)
    return {"id": str(user.id), "headers": _auth(user)}


async def _open(client, doctor, start, end):
    resp = await client.post(
        f"{API}/availability",
        json={"start_time": start.isoformat(), "end_time": end.isoformat()},
        headers=doctor["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _book(client, doctor, patient, start, minutes=30):
    return await client.post(
        f"{API}/appointments/book",
        json={
            "doctor_id": doctor["id"],
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(minutes=minutes)).isoformat(),
            "description": "sore throat",
        },
        headers=patient["headers"],
    )


async def test_register_login_and_me(client):
    resp = await client.post(
        f"{API}/auth/register",
        json={
            "email": "Alice@Example.com",
            "password": "Secret123",
            "first_name": "Alice",
            "last_name": "Smith",
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["role"] == "patient"
    assert body["email"] == "alice@example.com"
    assert body["credits"] == settings.SIGNUP_CREDITS

    dup = await client.post(
        f"{API}/auth/register",
        json={
            "email": "alice@example.com",
            "password": "Secret123",
            "first_name": "Alice",
            "last_name": "Smith",
        },
    )
    assert dup.status_code == 409

    login = await client.post(
        f"{API}/auth/login", json={"email": "alice@example.com", "password": "Secret123"}
    )
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["id"]

    bad = await client.post(
        f"{API}/auth/login", json={"email": "alice@example.com", "password": "Wrong1234"}
    )
    assert bad.status_code == 401


async def test_admin_role_cannot_self_register(client):
    resp = await client.post(
        f"{API}/auth/register",
        json={
            "email": "root@example.com",
            "password": "Secret123",
            "first_name": "Root",
            "last_name": "User",
            "role": "admin",
        },
    )
    assert resp.status_code == 422


async def test_available_slots_and_booking_flow(client, doctor, patient):
    await _open(client, doctor, at(9), at(10))

    slots = await client.get(f"{API}/appointments/available-slots/{doctor['id']}")
    assert slots.status_code == 200
    days = slots.json()
    assert len(days) == settings.HORIZON_DAYS
    assert days[0]["display_date"] == "Monday, January 7"
    assert [s["formatted"] for s in days[0]["slots"]] == ["9:00 AM", "9:30 AM"]
    assert days[0]["slots"][0]["day"] == "Monday"

    booked = await _book(client, doctor, patient, at(9))
    assert booked.status_code == 201, booked.text
    appointment = booked.json()
    assert appointment["status"] == "scheduled"
    assert appointment["start_time"].startswith("2030-01-07T09:00:00")
    assert "video_session_token" not in appointment

    slots = await client.get(f"{API}/appointments/available-slots/{doctor['id']}")
    assert [s["formatted"] for s in slots.json()[0]["slots"]] == ["9:30 AM"]

    mine = await client.get(f"{API}/appointments/my", headers=patient["headers"])
    assert mine.json()["total"] == 1
    assert mine.json()["items"][0]["id"] == appointment["id"]


async def test_booking_errors_map_to_status_codes(client, doctor, patient, make_user):
    await _open(client, doctor, at(9), at(10))
    other = await make_user(UserRole.PATIENT, credits=2)
    other = {"id": str(other.id), "headers": _auth(other)}

    assert (await _book(client, doctor, patient, at(9))).status_code == 201

    taken = await _book(client, doctor, other, at(9))
    assert taken.status_code == 409
    assert taken.json()["detail"] == "slot_not_free"

    broke = await _book(client, doctor, patient, at(9, 30))
    assert broke.status_code == 402
    assert broke.json()["detail"] == "insufficient_credits"

    outside = await _book(client, doctor, other, at(12))
    assert outside.status_code == 409


async def test_only_single_grid_slots_can_be_booked(client, doctor, make_user):
    await _open(client, doctor, at(9), at(17))
    rich = await make_user(UserRole.PATIENT, credits=10)
    rich = {"id": str(rich.id), "headers": _auth(rich)}

    whole_day = await _book(client, doctor, rich, at(9), minutes=8 * 60)
    off_grid = await _book(client, doctor, rich, at(9, 7))
    assert whole_day.status_code == 409
    assert whole_day.json()["detail"] == "slot_not_free"
    assert off_grid.status_code == 409

    slots = await client.get(f"{API}/appointments/available-slots/{doctor['id']}")
    assert len(slots.json()[0]["slots"]) == 16
    assert (await _book(client, doctor, rich, at(9, 30))).status_code == 201


async def test_booking_in_the_past_is_unprocessable(client, doctor, patient, clock):
    await _open(client, doctor, at(9), at(10))
    clock.instant = at(9, 30)

    resp = await _book(client, doctor, patient, at(9, 30))
    assert resp.status_code == 422
    assert resp.json()["detail"] == "lead_time_violation"


async def test_only_patients_book(client, doctor):
    await _open(client, doctor, at(9), at(10))
    resp = await _book(client, doctor, doctor, at(9))
    assert resp.status_code == 403


async def test_unknown_doctor_has_no_slots(client, patient):
    resp = await client.get(f"{API}/appointments/available-slots/{patient['id']}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "doctor_not_found"


async def test_cancel_then_rebook(client, doctor, patient, make_user):
    await _open(client, doctor, at(9), at(10))
    appointment = (await _book(client, doctor, patient, at(9))).json()

    cancelled = await client.post(
        f"{API}/appointments/{appointment['id']}/cancel", headers=patient["headers"]
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    again = await client.post(
        f"{API}/appointments/{appointment['id']}/cancel", headers=patient["headers"]
    )
    assert again.status_code == 409
    assert again.json()["detail"] == "already_terminal"

    other = await make_user(UserRole.PATIENT, credits=2)
    rebooked = await _book(client, doctor, {"id": str(other.id), "headers": _auth(other)}, at(9))
    assert rebooked.status_code == 201


async def test_strangers_cannot_cancel(client, doctor, patient, make_user):
    await _open(client, doctor, at(9), at(10))
    appointment = (await _book(client, doctor, patient, at(9))).json()
    stranger = await make_user(UserRole.PATIENT)

    resp = await client.post(
        f"{API}/appointments/{appointment['id']}/cancel", headers=_auth(stranger)
    )
    assert resp.status_code == 403


async def test_video_token_and_completion(client, doctor, patient, clock):
    await _open(client, doctor, at(9), at(10))
    appointment = (await _book(client, doctor, patient, at(9))).json()
    url = f"{API}/appointments/{appointment['id']}"

    early = await client.post(f"{url}/video-token", headers=patient["headers"])
    assert early.status_code == 409
    assert early.json()["detail"] == "not_joinable"

    clock.instant = at(8, 40)
    joined = await client.post(f"{url}/video-token", headers=patient["headers"])
    assert joined.status_code == 200
    room = joined.json()["video_session_id"]
    doctor_joined = await client.post(f"{url}/video-token", headers=doctor["headers"])
    assert doctor_joined.json()["video_session_id"] == room

    not_yet = await client.post(f"{url}/complete", json={}, headers=doctor["headers"])
    assert not_yet.status_code == 409
    assert not_yet.json()["detail"] == "not_yet_endable"

    clock.instant = at(9, 30)
    done = await client.post(
        f"{url}/complete", json={"notes": "prescribed rest"}, headers=doctor["headers"]
    )
    assert done.status_code == 200
    assert done.json()["status"] == "completed"
    assert done.json()["notes"] == "prescribed rest"

    by_patient = await client.post(f"{url}/complete", json={}, headers=patient["headers"])
    assert by_patient.status_code == 403


async def test_availability_overlap_and_delete(client, doctor, patient):
    block = await _open(client, doctor, at(9), at(10))

    overlap = await client.post(
        f"{API}/availability",
        json={"start_time": at(9, 30).isoformat(), "end_time": at(11).isoformat()},
        headers=doctor["headers"],
    )
    assert overlap.status_code == 409

    await _book(client, doctor, patient, at(9))
    mine = (await client.get(f"{API}/availability/me", headers=doctor["headers"])).json()
    booked = next(b for b in mine if b["status"] == "booked")
    free = next(b for b in mine if b["status"] == "available")

    assert (await client.delete(f"{API}/availability/{booked['id']}", headers=doctor["headers"])).status_code == 409
    assert (await client.delete(f"{API}/availability/{free['id']}", headers=doctor["headers"])).status_code == 204
    assert block["id"] == booked["id"]


async def test_admin_grants_credits(client, patient, make_user):
    admin = await make_user(UserRole.ADMIN)
    resp = await client.post(
        f"{API}/admin/users/{patient['id']}/credits",
        json={"amount": 4},
        headers=_auth(admin),
    )
    assert resp.status_code == 200
    assert resp.json()["credits"] == 6

    forbidden = await client.post(
        f"{API}/admin/users/{patient['id']}/credits",
        json={"amount": 4},
        headers=patient["headers"],
    )
    assert forbidden.status_code == 403


async def test_health(client):
    resp = await client.get(f"{API}/health")
    assert resp.status_code == 200
