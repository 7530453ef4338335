# tests/conftest.py
from __future__ import annotations

import itertools
from uuid import UUID

import pytest
import pytest_asyncio

from careslot.db.sql import build_engine, build_session_factory, init_db
from careslot.modules.appointments.service import BookingTransactionManager
from careslot.modules.availability.calendar import AvailabilityCalendar
from careslot.modules.availability.locks import DayLocks
from careslot.modules.doctors import repository as doctors_repo
from careslot.modules.doctors.directory import DoctorDirectory
from careslot.modules.matching.matcher import SlotMatcher
from careslot.modules.users import repository as users_repo
from careslot.modules.users.schemas import Role, UserCreate

_emails = itertools.count(1)


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'careslot.db'}", echo=False)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def locks():
    return DayLocks()


@pytest.fixture
def calendar(session_factory, locks):
    return AvailabilityCalendar(session_factory, locks)


@pytest.fixture
def directory(session_factory):
    return DoctorDirectory(session_factory)


@pytest.fixture
def matcher(directory, calendar):
    return SlotMatcher(directory, calendar, window_days=7, tolerance_minutes=120, strategy="greedy")


@pytest.fixture
def booking(session_factory, locks):
    return BookingTransactionManager(session_factory, locks, reminders=None, max_attempts=3)


@pytest.fixture
def make_patient(session_factory):
    async def _make(first_name="Pat", last_name="Ient", phone="+15550001111", reminder_preference="sms") -> UUID:
        async with session_factory() as session:
            async with session.begin():
                user = await users_repo.create_user(
                    session,
                    UserCreate(
                        email=f"patient{next(_emails)}@example.com",
                        first_name=first_name,
                        last_name=last_name,
                        role=Role.patient,
                        phone=phone,
                        reminder_preference=reminder_preference,
                    ),
                )
                return user.id

    return _make


@pytest.fixture
def make_doctor(session_factory):
    async def _make(last_name: str, specialty: str = "Cardiologist", first_name: str = "Dana") -> UUID:
        async with session_factory() as session:
            async with session.begin():
                user = await users_repo.create_user(
                    session,
                    UserCreate(
                        email=f"doctor{next(_emails)}@example.com",
                        first_name=first_name,
                        last_name=last_name,
                        role=Role.doctor,
                    ),
                )
                await doctors_repo.upsert_profile(session, user_id=user.id, specialty=specialty)
                return user.id

    return _make
