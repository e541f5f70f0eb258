# tests/conftest.py
import os

os.environ.setdefault("SQL_DSN", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("VIDEO_API_SECRET", "test-video-secret")

from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from telecare.db.base import Base  # noqa: E402
from telecare.db.sql import enable_sqlite_savepoints  # noqa: E402
from telecare.modules.appointments import models as _appointments  # noqa: E402,F401
from telecare.modules.availability import models as _availability  # noqa: E402,F401
from telecare.modules.users import repository as users_repo  # noqa: E402
from telecare.modules.users.models import UserRole, VerificationStatus  # noqa: E402
from tests.helpers import FixedClock, at  # noqa: E402


@pytest.fixture
def doctor_id() -> UUID:
    return uuid4()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(at(6))


@pytest_asyncio.fixture
async def engine(tmp_path):
    # one file per test; in-memory databases vanish when the pool recycles a connection
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'telecare.db'}")
    enable_sqlite_savepoints(eng)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session(engine):
    maker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with maker() as s:
        yield s


@pytest.fixture
def make_user(session):
    async def _make(
        role: UserRole = UserRole.PATIENT,
        *,
        credits: int = 0,
        tz: str = "UTC",
        verified: bool = True,
        specialty: str = "Cardiology",
    ):
        user = await users_repo.create_user(
            session,
            email=f"{role.value}-{uuid4().hex[:8]}@example.com",
            password_hash="not-a-real-hash",
            first_name="Test",
            last_name=role.value.title(),
            role=role,
            credits=credits,
            timezone=tz,
            specialty=specialty,
        )
        if role is UserRole.DOCTOR and verified:
            user.verification_status = VerificationStatus.VERIFIED.value
        await session.commit()
        return user

    return _make
