# tests/test_calendar.py
import asyncio
import datetime as dt
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from careslot.core.errors import DoctorNotFound, ScheduleConflict, StoreError, ValidationError
from careslot.modules.availability import repository as availability_repo
from careslot.modules.availability.calendar import AvailabilityCalendar
from careslot.modules.availability.locks import DayLocks
from careslot.modules.availability.schemas import SlotIn
from careslot.modules.users import repository as users_repo
from careslot.modules.users.schemas import Role, UserCreate

from helpers import slots

DAY = dt.date(2030, 1, 7)


async def test_get_unknown_day_returns_none(calendar, make_doctor):
    doctor = await make_doctor("Adams")
    assert await calendar.get(doctor, DAY) is None
    assert await calendar.get(uuid.uuid4(), DAY) is None


async def test_put_then_get_sorted_and_free(calendar, make_doctor):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("10:00-10:30", "09:00-09:30"))

    record = await calendar.get(doctor, "2030-01-07")
    assert record.doctor_id == doctor
    assert record.date == DAY
    assert [(s.start_time, s.end_time) for s in record.slots] == [
        ("09:00", "09:30"),
        ("10:00", "10:30"),
    ]
    assert not any(s.is_booked for s in record.slots)
    assert all(s.appointment_id is None for s in record.slots)


async def test_put_accepts_slot_models(calendar, make_doctor):
    doctor = await make_doctor("Adams")
    record = await calendar.put(doctor, DAY, [SlotIn(start_time="08:00", end_time="08:15")])
    assert [s.start_time for s in record.slots] == ["08:00"]


async def test_put_replaces_unbooked_ranges(calendar, make_doctor):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("09:00-09:30", "09:30-10:00"))
    await calendar.put(doctor, DAY, slots("09:30-10:00", "14:00-14:30"))

    record = await calendar.get(doctor, DAY)
    assert [s.start_time for s in record.slots] == ["09:30", "14:00"]


async def test_put_empty_clears_free_day(calendar, make_doctor):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    record = await calendar.put(doctor, DAY, [])
    assert record.slots == []


async def test_put_keeps_booked_slot(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30", "09:30-10:00"))
    appt = await booking.book(patient, doctor, DAY, "09:00", "Checkup")

    record = await calendar.put(doctor, DAY, slots("09:00-09:30", "11:00-11:30"))

    by_start = {s.start_time: s for s in record.slots}
    assert set(by_start) == {"09:00", "11:00"}
    assert by_start["09:00"].is_booked
    assert by_start["09:00"].appointment_id == appt.id
    assert not by_start["11:00"].is_booked


async def test_put_dropping_booked_slot_conflicts(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30", "09:30-10:00"))
    await booking.book(patient, doctor, DAY, "09:00", "Checkup")

    with pytest.raises(ScheduleConflict):
        await calendar.put(doctor, DAY, slots("09:30-10:00"))

    # Nothing was changed by the rejected write
    record = await calendar.get(doctor, DAY)
    assert [(s.start_time, s.is_booked) for s in record.slots] == [
        ("09:00", True),
        ("09:30", False),
    ]


async def test_put_changing_booked_slot_end_conflicts(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    await booking.book(patient, doctor, DAY, "09:00", "Checkup")

    with pytest.raises(ScheduleConflict):
        await calendar.put(doctor, DAY, slots("09:00-09:45"))


@pytest.mark.parametrize(
    "payload, code",
    [
        ([{"start_time": "9:00", "end_time": "09:30"}], "invalid_time"),
        ([{"start_time": "24:00", "end_time": "24:30"}], "invalid_time"),
        ([{"start_time": "10:00", "end_time": "09:30"}], "slot_end_before_start"),
        ([{"start_time": "10:00", "end_time": "10:00"}], "slot_end_before_start"),
        (slots("09:00-09:30", "09:00-09:45"), "duplicate_slot_start"),
        (slots("09:00-09:30", "09:15-09:45"), "overlapping_slots"),
    ],
)
async def test_put_rejects_malformed_slot_sets(calendar, make_doctor, payload, code):
    doctor = await make_doctor("Adams")
    with pytest.raises(ValidationError) as exc:
        await calendar.put(doctor, DAY, payload)
    assert str(exc.value) == code
    assert await calendar.get(doctor, DAY) is None


async def test_put_rejects_bad_date(calendar, make_doctor):
    doctor = await make_doctor("Adams")
    with pytest.raises(ValidationError) as exc:
        await calendar.put(doctor, "2030-02-30", slots("09:00-09:30"))
    assert str(exc.value) == "invalid_date"


async def test_days_are_independent(calendar, make_doctor):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    await calendar.put(doctor, DAY + dt.timedelta(days=1), slots("13:00-13:30"))

    assert [s.start_time for s in (await calendar.get(doctor, DAY)).slots] == ["09:00"]
    nxt = await calendar.get(doctor, DAY + dt.timedelta(days=1))
    assert [s.start_time for s in nxt.slots] == ["13:00"]


async def test_put_requires_a_doctor(calendar, make_patient):
    patient = await make_patient()

    with pytest.raises(DoctorNotFound):
        await calendar.put(patient, DAY, slots("09:00-09:30"))
    with pytest.raises(DoctorNotFound):
        await calendar.put(uuid.uuid4(), DAY, slots("09:00-09:30"))

    assert await calendar.get(patient, DAY) is None


async def test_put_requires_a_doctor_profile(session_factory, calendar):
    async with session_factory() as session:
        async with session.begin():
            user = await users_repo.create_user(
                session,
                UserCreate(
                    email="noprofile@example.com",
                    first_name="No",
                    last_name="Profile",
                    role=Role.doctor,
                ),
            )

    with pytest.raises(DoctorNotFound):
        await calendar.put(user.id, DAY, slots("09:00-09:30"))


async def test_store_failures_surface_as_store_error(monkeypatch, calendar, make_doctor):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    calls = []

    async def broken_get_day(session, *, doctor_id, day):
        calls.append(day)
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(availability_repo, "get_day", broken_get_day)

    with pytest.raises(StoreError):
        await calendar.put(doctor, DAY, slots("10:00-10:30"))
    assert len(calls) == 3

    with pytest.raises(StoreError):
        await calendar.get(doctor, DAY)
    monkeypatch.undo()

    record = await calendar.get(doctor, DAY)
    assert [s.start_time for s in record.slots] == ["09:00"]


async def test_first_put_race_without_shared_lock(session_factory, make_doctor):
    doctor = await make_doctor("Adams")
    left = AvailabilityCalendar(session_factory, DayLocks())
    right = AvailabilityCalendar(session_factory, DayLocks())
    wanted = slots("09:00-09:30", "09:30-10:00")

    results = await asyncio.gather(
        left.put(doctor, DAY, wanted),
        right.put(doctor, DAY, wanted),
        return_exceptions=True,
    )

    assert not [r for r in results if isinstance(r, Exception)]
    record = await left.get(doctor, DAY)
    assert [s.start_time for s in record.slots] == ["09:00", "09:30"]
