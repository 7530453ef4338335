# careslot/modules/appointments/service.py
from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import NamedTuple, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careslot.core.config import settings
from careslot.core.dates import combine, parse_day, parse_hhmm
from careslot.core.errors import (
    AppointmentNotFound,
    DoctorUnavailable,
    SlotUnavailable,
    ValidationError,
)
from careslot.db.retry import with_retries
from careslot.modules.appointments.models import Appointment, ApptStatus
from careslot.modules.appointments.schemas import AppointmentPublic
from careslot.modules.availability import repository as availability_repo
from careslot.modules.availability.locks import DayLocks
from careslot.modules.doctors import repository as doctors_repo
from careslot.modules.reminders.scheduler import ReminderScheduler
from careslot.modules.users import repository as users_repo
from careslot.modules.users.models import UserRole

logger = logging.getLogger(__name__)


class _Booked(NamedTuple):
    appointment: AppointmentPublic
    doctor_name: str
    contact_method: Optional[str]


def _to_public(appt: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(appt)


def _as_uuid(value: UUID | str, code: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(code) from exc


class BookingTransactionManager:
    """
    Claims one slot and creates its appointment in a single transaction.

    Concurrent callers for the same slot are serialized by the (doctor, date)
    day lock; the conditional UPDATE on `is_booked` decides the winner when
    another process races us. Exactly one caller gets the slot, the others
    see SlotUnavailable.

    Reminder scheduling runs after commit as a background task. Its failures
    are logged and never touch the booking.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: DayLocks,
        reminders: Optional[ReminderScheduler] = None,
        *,
        max_attempts: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._locks = locks
        self._reminders = reminders
        self.max_attempts = max_attempts or settings.BOOKING_MAX_ATTEMPTS
        self._side_effects: set[asyncio.Task] = set()

    # BOOK
    async def book(
        self,
        patient_id: UUID | str,
        doctor_id: UUID | str,
        date: date | str,
        time: str,
        reason: str,
    ) -> AppointmentPublic:
        """
        Book `time` on `date` with `doctor_id` for `patient_id`.

        Raises:
        - ValidationError: malformed ids/date/time or empty reason (no storage touched)
        - DoctorUnavailable: the doctor published nothing for that date
        - SlotUnavailable: no slot starts at `time`, or it is already booked
        - StoreError: the database kept failing after the retry budget
        """
        patient_id = _as_uuid(patient_id, "invalid_patient_id")
        doctor_id = _as_uuid(doctor_id, "invalid_doctor_id")
        day = parse_day(date)
        time = parse_hhmm(time)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("invalid_reason")

        async with self._locks.hold(doctor_id, day):
            booked = await with_retries(
                "book",
                lambda: self._claim(patient_id, doctor_id, day, time, reason),
                attempts=self.max_attempts,
            )

        logger.info(
            "Booked appointment %s doctor=%s date=%s time=%s patient=%s",
            booked.appointment.id, doctor_id, day.isoformat(), time, patient_id,
        )
        self._after_commit(booked)
        return booked.appointment

    async def _claim(
        self,
        patient_id: UUID,
        doctor_id: UUID,
        day: date,
        time: str,
        reason: str,
    ) -> _Booked:
        async with self._session_factory() as session:
            async with session.begin():
                patient = await users_repo.get_by_id(session, patient_id)
                if patient is None or patient.role != UserRole.PATIENT.value:
                    raise ValidationError("patient_not_found")

                record = await availability_repo.get_day(session, doctor_id=doctor_id, day=day)
                if record is None:
                    raise DoctorUnavailable("doctor_unavailable")

                slot = next((s for s in record.slots if s.start_time == time), None)
                if slot is None or slot.is_booked:
                    raise SlotUnavailable("slot_unavailable")

                appt = Appointment(
                    patient_id=patient_id,
                    doctor_id=doctor_id,
                    scheduled_at=combine(day, time),
                    appointment_date=day,
                    time=time,
                    reason=reason,
                    status=ApptStatus.CONFIRMED.value,
                )
                session.add(appt)
                await session.flush()

                # The claim itself: rolls the appointment insert back if we lost
                claimed = await availability_repo.claim_slot(
                    session, slot_id=slot.id, appointment_id=appt.id
                )
                if claimed != 1:
                    raise SlotUnavailable("slot_unavailable")

                await session.refresh(appt)
                doctor_name = (
                    await doctors_repo.get_display_name(session, user_id=doctor_id)
                    or "your doctor"
                )
                contact_method = patient.reminder_preference if patient.phone else None
                return _Booked(_to_public(appt), doctor_name, contact_method)

    # CANCEL
    async def cancel(self, appointment_id: UUID | str) -> AppointmentPublic:
        """
        Cancel an appointment and give its slot back.
        Cancelling twice returns the cancelled appointment unchanged.
        """
        appointment_id = _as_uuid(appointment_id, "invalid_appointment_id")

        async with self._session_factory() as session:
            appt = await session.get(Appointment, appointment_id)
            if appt is None:
                raise AppointmentNotFound("appointment_not_found")
            doctor_id, day = appt.doctor_id, appt.appointment_date

        async with self._locks.hold(doctor_id, day):
            result, changed = await with_retries(
                "cancel", lambda: self._cancel(appointment_id), attempts=self.max_attempts
            )

        if changed:
            logger.info("Cancelled appointment %s, slot released", appointment_id)
            await self._cancel_reminders(appointment_id)
        return result

    async def _cancel(self, appointment_id: UUID) -> tuple[AppointmentPublic, bool]:
        async with self._session_factory() as session:
            async with session.begin():
                appt = await session.get(Appointment, appointment_id, populate_existing=True)
                if appt is None:
                    raise AppointmentNotFound("appointment_not_found")

                # If canceled, it can be considered idempotent and returned immediately.
                if appt.status == ApptStatus.CANCELLED.value:
                    return _to_public(appt), False
                if appt.status == ApptStatus.COMPLETED.value:
                    raise ValidationError("appointment_completed")

                appt.status = ApptStatus.CANCELLED.value
                await session.flush()
                await availability_repo.release_slot(session, appointment_id=appointment_id)
                await session.refresh(appt)
                return _to_public(appt), True

    # LISTINGS
    async def list_for_patient(self, patient_id: UUID) -> list[AppointmentPublic]:
        return await self._list(Appointment.patient_id == patient_id)

    async def list_for_doctor(self, doctor_id: UUID) -> list[AppointmentPublic]:
        return await self._list(Appointment.doctor_id == doctor_id)

    async def _list(self, cond) -> list[AppointmentPublic]:
        async with self._session_factory() as session:
            rows = await session.execute(
                select(Appointment).where(cond).order_by(Appointment.scheduled_at, Appointment.id)
            )
            return [_to_public(a) for a in rows.scalars().all()]

    # SIDE EFFECTS
    def _after_commit(self, booked: _Booked) -> None:
        if self._reminders is None:
            return
        if booked.contact_method is None:
            logger.warning(
                "Could not schedule reminder for patient %s: phone number or reminder preference missing",
                booked.appointment.patient_id,
            )
            return

        task = asyncio.create_task(self._schedule_reminder(booked))
        self._side_effects.add(task)
        task.add_done_callback(self._side_effects.discard)

    async def _schedule_reminder(self, booked: _Booked) -> None:
        appt = booked.appointment
        try:
            await self._reminders.schedule_appointment_reminder(
                appt.id,
                appt.scheduled_at,
                appt.patient_id,
                booked.doctor_name,
                booked.contact_method,
            )
        except Exception:
            logger.exception(
                "Reminder scheduling failed for appointment %s; booking kept", appt.id
            )

    async def _cancel_reminders(self, appointment_id: UUID) -> None:
        if self._reminders is None:
            return
        try:
            await self._reminders.cancel_for_appointment(appointment_id)
        except Exception:
            logger.exception("Could not cancel reminders for appointment %s", appointment_id)

    async def drain(self) -> None:
        """Wait for in-flight reminder tasks (shutdown, tests)."""
        while self._side_effects:
            await asyncio.gather(*list(self._side_effects), return_exceptions=True)

