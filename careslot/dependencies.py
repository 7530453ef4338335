# careslot/dependencies.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careslot.modules.appointments.service import BookingTransactionManager
from careslot.modules.availability.calendar import AvailabilityCalendar
from careslot.modules.availability.locks import DayLocks
from careslot.modules.doctors.directory import DoctorDirectory
from careslot.modules.matching.matcher import SlotMatcher
from careslot.modules.reminders.dispatcher import ReminderChannel, ReminderDispatcher
from careslot.modules.reminders.scheduler import OutboxReminderScheduler


@dataclass
class Services:
    """Everything the routers need, built once per app."""

    session_factory: async_sessionmaker[AsyncSession]
    locks: DayLocks
    directory: DoctorDirectory
    calendar: AvailabilityCalendar
    matcher: SlotMatcher
    reminders: OutboxReminderScheduler
    booking: BookingTransactionManager
    dispatcher: ReminderDispatcher


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    channel: Optional[ReminderChannel] = None,
) -> Services:
    # Calendar writes and bookings must share one lock registry
    locks = DayLocks()
    directory = DoctorDirectory(session_factory)
    calendar = AvailabilityCalendar(session_factory, locks)
    reminders = OutboxReminderScheduler(session_factory)
    return Services(
        session_factory=session_factory,
        locks=locks,
        directory=directory,
        calendar=calendar,
        matcher=SlotMatcher(directory, calendar),
        reminders=reminders,
        booking=BookingTransactionManager(session_factory, locks, reminders),
        dispatcher=ReminderDispatcher(session_factory, channel),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_matcher(request: Request) -> SlotMatcher:
    return get_services(request).matcher


def get_booking(request: Request) -> BookingTransactionManager:
    return get_services(request).booking


def get_calendar(request: Request) -> AvailabilityCalendar:
    return get_services(request).calendar


def get_directory(request: Request) -> DoctorDirectory:
    return get_services(request).directory


def get_reminders(request: Request) -> OutboxReminderScheduler:
    return get_services(request).reminders
