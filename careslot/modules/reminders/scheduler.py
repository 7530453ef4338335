# careslot/modules/reminders/scheduler.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careslot.core.config import settings
from careslot.core.dates import to_utc_naive
from careslot.modules.appointments.models import Appointment
from careslot.modules.reminders.models import Reminder, ReminderStatus, ReminderType
from careslot.modules.reminders.schemas import ReminderCreate, ReminderPublic
from careslot.modules.users.models import User

logger = logging.getLogger(__name__)


class ReminderError(Exception):
    """The reminder could not be recorded (unknown patient, no phone, ...)."""


class ReminderScheduler(Protocol):
    """
    What the booking transaction needs from a reminder backend.
    Called after commit; failures never undo a booking.
    """

    async def schedule_appointment_reminder(
        self,
        appointment_id: UUID,
        appointment_at: datetime,
        patient_id: UUID,
        doctor_name: str,
        contact_method: str,
    ) -> object: ...

    async def cancel_for_appointment(self, appointment_id: UUID) -> int: ...


class OutboxReminderScheduler:
    """
    Records reminders as pending rows; ReminderDispatcher delivers them.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        lead_minutes: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.lead = timedelta(
            minutes=settings.REMINDER_LEAD_MINUTES if lead_minutes is None else lead_minutes
        )

    async def schedule_appointment_reminder(
        self,
        appointment_id: UUID,
        appointment_at: datetime,
        patient_id: UUID,
        doctor_name: str,
        contact_method: str,
    ) -> ReminderPublic:
        appointment_at = to_utc_naive(appointment_at)

        async with self._session_factory() as session:
            async with session.begin():
                patient = await session.get(User, patient_id)
                if patient is None or not patient.phone:
                    raise ReminderError("patient_not_found_or_phone_missing")

                message = (
                    f"Hello {patient.first_name}, this is a reminder for your appointment "
                    f"with {doctor_name} on {appointment_at:%a %b %d %Y} at "
                    f"{appointment_at:%H:%M}. Please be on time."
                )
                reminder = Reminder(
                    user_id=patient_id,
                    appointment_id=appointment_id,
                    type=ReminderType.APPOINTMENT.value,
                    message=message,
                    scheduled_time=appointment_at - self.lead,
                    contact_method=contact_method,
                    status=ReminderStatus.PENDING.value,
                    attempts=0,
                )
                session.add(reminder)
                await session.flush()

        logger.info(
            "Reminder scheduled for appointment %s via %s at %s",
            appointment_id, contact_method, reminder.scheduled_time.isoformat(),
        )
        return ReminderPublic.model_validate(reminder)

    async def create_reminder(self, payload: ReminderCreate) -> ReminderPublic:
        """
        Record a manually scheduled reminder (general, medication, or an
        extra appointment reminder). Delivery is left to the dispatcher.

        Raises ReminderError with "user_not_found", "appointment_not_found"
        or "phone_missing" (sms/call to a user without a phone).
        """
        scheduled_time = to_utc_naive(payload.scheduled_time)
        medication = payload.medication

        async with self._session_factory() as session:
            async with session.begin():
                user = await session.get(User, payload.user_id)
                if user is None:
                    raise ReminderError("user_not_found")
                if payload.contact_method.value in ("sms", "call") and not user.phone:
                    raise ReminderError("phone_missing")
                if payload.appointment_id is not None:
                    appt = await session.get(Appointment, payload.appointment_id)
                    if appt is None or user.id not in (appt.patient_id, appt.doctor_id):
                        raise ReminderError("appointment_not_found")

                reminder = Reminder(
                    user_id=payload.user_id,
                    appointment_id=payload.appointment_id,
                    type=ReminderType(payload.type.value).value,
                    message=payload.message,
                    scheduled_time=scheduled_time,
                    contact_method=payload.contact_method.value,
                    status=ReminderStatus.PENDING.value,
                    attempts=0,
                    medication_name=medication.name if medication else None,
                    dosage=medication.dosage if medication else None,
                    frequency=medication.frequency if medication else None,
                )
                session.add(reminder)
                await session.flush()

        logger.info(
            "%s reminder %s scheduled for user %s at %s",
            reminder.type.capitalize(), reminder.id, reminder.user_id,
            reminder.scheduled_time.isoformat(),
        )
        return ReminderPublic.model_validate(reminder)

    async def cancel_for_appointment(self, appointment_id: UUID) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                res = await session.execute(
                    update(Reminder)
                    .where(
                        Reminder.appointment_id == appointment_id,
                        Reminder.status == ReminderStatus.PENDING.value,
                    )
                    .values(status=ReminderStatus.CANCELLED.value)
                )
        return res.rowcount or 0  # type: ignore

    async def list_for_user(self, user_id: UUID) -> list[ReminderPublic]:
        async with self._session_factory() as session:
            rows = await session.execute(
                select(Reminder)
                .where(Reminder.user_id == user_id)
                .order_by(Reminder.scheduled_time.desc())
            )
            return [ReminderPublic.model_validate(r) for r in rows.scalars().all()]
