# tests/test_booking.py
import asyncio
import datetime as dt
import logging
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from careslot.core.errors import (
    AppointmentNotFound,
    DoctorUnavailable,
    SlotUnavailable,
    StoreError,
    ValidationError,
)
from careslot.modules.appointments.models import Appointment, ApptStatus
from careslot.modules.appointments.service import BookingTransactionManager
from careslot.modules.availability import repository as availability_repo
from careslot.modules.availability.locks import DayLocks
from careslot.modules.reminders.scheduler import OutboxReminderScheduler

from helpers import slots

DAY = dt.date(2024, 1, 10)


async def test_second_patient_loses_the_slot(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    a = await make_patient("Ann")
    b = await make_patient("Bob")
    await calendar.put(doctor, DAY, slots("09:00-09:30", "09:30-10:00"))

    appt = await booking.book(a, doctor, DAY, "09:00", "Checkup")
    assert appt.status == ApptStatus.CONFIRMED.value
    assert appt.patient_id == a
    assert appt.doctor_id == doctor
    assert appt.scheduled_at == dt.datetime(2024, 1, 10, 9, 0)
    assert appt.appointment_date == DAY
    assert appt.time == "09:00"

    with pytest.raises(SlotUnavailable):
        await booking.book(b, doctor, DAY, "09:00", "Checkup")

    record = await calendar.get(doctor, DAY)
    by_start = {s.start_time: s for s in record.slots}
    assert by_start["09:00"].is_booked
    assert by_start["09:00"].appointment_id == appt.id
    assert not by_start["09:30"].is_booked

    assert [x.id for x in await booking.list_for_patient(a)] == [appt.id]
    assert await booking.list_for_patient(b) == []


async def test_concurrent_bookers_exactly_one_wins(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    patients = [await make_patient(f"P{i}") for i in range(50)]

    results = await asyncio.gather(
        *(booking.book(p, doctor, DAY, "09:00", "Checkup") for p in patients),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 49
    assert all(isinstance(r, SlotUnavailable) for r in losers)
    assert len(await booking.list_for_doctor(doctor)) == 1


async def test_managers_without_shared_lock_still_single_winner(
    session_factory, calendar, make_doctor, make_patient
):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    a = await make_patient("Ann")
    b = await make_patient("Bob")
    left = BookingTransactionManager(session_factory, DayLocks(), max_attempts=3)
    right = BookingTransactionManager(session_factory, DayLocks(), max_attempts=3)

    results = await asyncio.gather(
        left.book(a, doctor, DAY, "09:00", "Checkup"),
        right.book(b, doctor, DAY, "09:00", "Checkup"),
        return_exceptions=True,
    )

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert sum(1 for r in results if isinstance(r, SlotUnavailable)) == 1
    assert len(await left.list_for_doctor(doctor)) == 1


async def test_unpublished_day_is_doctor_unavailable(booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    with pytest.raises(DoctorUnavailable):
        await booking.book(patient, doctor, DAY, "09:00", "Checkup")


async def test_no_slot_at_time_is_slot_unavailable(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    with pytest.raises(SlotUnavailable):
        await booking.book(patient, doctor, DAY, "09:15", "Checkup")


@pytest.mark.parametrize(
    "patient, doctor, day, time, reason, code",
    [
        ("not-a-uuid", None, DAY, "09:00", "Checkup", "invalid_patient_id"),
        (None, "nope", DAY, "09:00", "Checkup", "invalid_doctor_id"),
        (None, None, "2024-13-01", "09:00", "Checkup", "invalid_date"),
        (None, None, DAY, "9am", "Checkup", "invalid_time"),
        (None, None, DAY, "09:00", "   ", "invalid_reason"),
    ],
)
async def test_malformed_requests_rejected(
    calendar, booking, make_doctor, make_patient, patient, doctor, day, time, reason, code
):
    doctor_id = await make_doctor("Adams")
    await calendar.put(doctor_id, DAY, slots("09:00-09:30"))
    patient = patient or await make_patient()
    doctor = doctor or doctor_id

    with pytest.raises(ValidationError) as exc:
        await booking.book(patient, doctor, day, time, reason)
    assert str(exc.value) == code

    record = await calendar.get(doctor_id, DAY)
    assert not record.slots[0].is_booked


async def test_unknown_patient_rejected(calendar, booking, make_doctor):
    doctor = await make_doctor("Adams")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    with pytest.raises(ValidationError) as exc:
        await booking.book(uuid.uuid4(), doctor, DAY, "09:00", "Checkup")
    assert str(exc.value) == "patient_not_found"


async def test_store_failure_retried_then_store_error(
    monkeypatch, calendar, booking, make_doctor, make_patient
):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    calls = []

    async def broken_get_day(session, *, doctor_id, day):
        calls.append(day)
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(availability_repo, "get_day", broken_get_day)

    with pytest.raises(StoreError):
        await booking.book(patient, doctor, DAY, "09:00", "Checkup")
    assert len(calls) == 3
    monkeypatch.undo()

    assert await booking.list_for_doctor(doctor) == []
    record = await calendar.get(doctor, DAY)
    assert not record.slots[0].is_booked


async def test_transient_failure_recovers(monkeypatch, calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    real_get_day = availability_repo.get_day
    failures = iter([True])

    async def flaky_get_day(session, *, doctor_id, day):
        if next(failures, False):
            raise OperationalError("SELECT", {}, Exception("database is locked"))
        return await real_get_day(session, doctor_id=doctor_id, day=day)

    monkeypatch.setattr(availability_repo, "get_day", flaky_get_day)

    appt = await booking.book(patient, doctor, DAY, "09:00", "Checkup")
    assert appt.status == ApptStatus.CONFIRMED.value


async def test_reminder_recorded_after_booking(session_factory, locks, calendar, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient("Ann")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    reminders = OutboxReminderScheduler(session_factory, lead_minutes=30)
    booking = BookingTransactionManager(session_factory, locks, reminders)

    appt = await booking.book(patient, doctor, DAY, "09:00", "Checkup")
    await booking.drain()

    rows = await reminders.list_for_user(patient)
    assert len(rows) == 1
    assert rows[0].appointment_id == appt.id
    assert rows[0].scheduled_time == dt.datetime(2024, 1, 10, 8, 30)
    assert rows[0].contact_method == "sms"
    assert rows[0].status == "pending"
    assert "Dr. Dana Adams" in rows[0].message


async def test_patient_without_phone_gets_no_reminder(
    session_factory, locks, calendar, make_doctor, make_patient, caplog
):
    doctor = await make_doctor("Adams")
    patient = await make_patient("Ann", phone=None)
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    reminders = OutboxReminderScheduler(session_factory)
    booking = BookingTransactionManager(session_factory, locks, reminders)

    with caplog.at_level(logging.WARNING):
        appt = await booking.book(patient, doctor, DAY, "09:00", "Checkup")
        await booking.drain()

    assert appt.status == ApptStatus.CONFIRMED.value
    assert await reminders.list_for_user(patient) == []
    assert "Could not schedule reminder" in caplog.text


class _BrokenReminders:
    async def schedule_appointment_reminder(self, *args, **kwargs):
        raise RuntimeError("sms gateway down")

    async def cancel_for_appointment(self, appointment_id):
        raise RuntimeError("sms gateway down")


async def test_reminder_failure_keeps_booking(
    session_factory, locks, calendar, make_doctor, make_patient, caplog
):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    booking = BookingTransactionManager(session_factory, locks, _BrokenReminders())

    with caplog.at_level(logging.ERROR):
        appt = await booking.book(patient, doctor, DAY, "09:00", "Checkup")
        await booking.drain()

    assert "booking kept" in caplog.text
    assert [a.id for a in await booking.list_for_doctor(doctor)] == [appt.id]
    record = await calendar.get(doctor, DAY)
    assert record.slots[0].is_booked

    # Cancellation also survives a broken reminder backend
    cancelled = await booking.cancel(appt.id)
    assert cancelled.status == ApptStatus.CANCELLED.value


async def test_cancel_releases_slot_and_is_idempotent(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    a = await make_patient("Ann")
    b = await make_patient("Bob")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    appt = await booking.book(a, doctor, DAY, "09:00", "Checkup")

    cancelled = await booking.cancel(appt.id)
    assert cancelled.status == ApptStatus.CANCELLED.value
    record = await calendar.get(doctor, DAY)
    assert not record.slots[0].is_booked
    assert record.slots[0].appointment_id is None

    again = await booking.cancel(str(appt.id))
    assert again.status == ApptStatus.CANCELLED.value
    assert again.updated_at == cancelled.updated_at

    rebooked = await booking.book(b, doctor, DAY, "09:00", "Checkup")
    assert rebooked.patient_id == b


async def test_cancel_unknown_appointment(booking):
    with pytest.raises(AppointmentNotFound):
        await booking.cancel(uuid.uuid4())
    with pytest.raises(ValidationError):
        await booking.cancel("garbage")


async def test_cancel_completed_appointment_rejected(
    session_factory, calendar, booking, make_doctor, make_patient
):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    appt = await booking.book(patient, doctor, DAY, "09:00", "Checkup")

    async with session_factory() as session:
        async with session.begin():
            row = await session.get(Appointment, appt.id)
            row.status = ApptStatus.COMPLETED.value

    with pytest.raises(ValidationError) as exc:
        await booking.cancel(appt.id)
    assert str(exc.value) == "appointment_completed"


async def test_cancel_withdraws_pending_reminder(
    session_factory, locks, calendar, make_doctor, make_patient
):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30"))
    reminders = OutboxReminderScheduler(session_factory)
    booking = BookingTransactionManager(session_factory, locks, reminders)

    appt = await booking.book(patient, doctor, DAY, "09:00", "Checkup")
    await booking.drain()
    await booking.cancel(appt.id)

    rows = await reminders.list_for_user(patient)
    assert [r.status for r in rows] == ["cancelled"]


async def test_listings_are_ordered_by_time(calendar, booking, make_doctor, make_patient):
    doctor = await make_doctor("Adams")
    patient = await make_patient()
    await calendar.put(doctor, DAY, slots("09:00-09:30", "14:00-14:30"))
    await calendar.put(doctor, DAY - dt.timedelta(days=1), slots("16:00-16:30"))

    late = await booking.book(patient, doctor, DAY, "14:00", "Follow-up")
    early = await booking.book(patient, doctor, DAY, "09:00", "Checkup")
    earliest = await booking.book(patient, doctor, DAY - dt.timedelta(days=1), "16:00", "Labs")

    listed = await booking.list_for_patient(patient)
    assert [a.id for a in listed] == [earliest.id, early.id, late.id]


async def test_only_patients_can_book(calendar, booking, make_doctor):
    doctor = await make_doctor("Adams")
    other_doctor = await make_doctor("Baker")
    await calendar.put(doctor, DAY, slots("09:00-09:30"))

    with pytest.raises(ValidationError) as exc:
        await booking.book(other_doctor, doctor, DAY, "09:00", "Second opinion")
    assert str(exc.value) == "patient_not_found"

    record = await calendar.get(doctor, DAY)
    assert not record.slots[0].is_booked
