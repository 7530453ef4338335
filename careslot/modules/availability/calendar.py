# careslot/modules/availability/calendar.py
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careslot.core.config import settings
from careslot.core.dates import minutes_of, parse_day, parse_hhmm
from careslot.core.errors import DoctorNotFound, ScheduleConflict, ValidationError
from careslot.db.retry import with_retries
from careslot.modules.availability import repository as repo
from careslot.modules.availability.locks import DayLocks
from careslot.modules.availability.models import AvailabilityDay
from careslot.modules.availability.schemas import AvailabilityDayPublic, SlotIn
from careslot.modules.doctors import repository as doctors_repo
from careslot.modules.users import repository as users_repo
from careslot.modules.users.models import UserRole

logger = logging.getLogger(__name__)


def _to_public(day: AvailabilityDay) -> AvailabilityDayPublic:
    return AvailabilityDayPublic.model_validate(day)


def _normalize_ranges(slots: Iterable[SlotIn | dict]) -> list[tuple[str, str]]:
    """
    Validate a submitted slot set and return it as sorted (start, end) pairs.
    Rejects bad "HH:MM" values, empty ranges, duplicate starts and overlaps.
    """
    ranges: list[tuple[str, str]] = []
    for slot in slots:
        if isinstance(slot, SlotIn):
            start, end = slot.start_time, slot.end_time
        else:
            start, end = slot.get("start_time"), slot.get("end_time")
        start, end = parse_hhmm(start), parse_hhmm(end)
        if minutes_of(end) <= minutes_of(start):
            raise ValidationError("slot_end_before_start")
        ranges.append((start, end))

    ranges.sort()
    for (prev_start, prev_end), (start, _end) in zip(ranges, ranges[1:]):
        if start == prev_start:
            raise ValidationError("duplicate_slot_start")
        if start < prev_end:
            raise ValidationError("overlapping_slots")
    return ranges


async def _require_doctor(session: AsyncSession, doctor_id: UUID) -> None:
    user = await users_repo.get_by_id(session, doctor_id)
    if user is None or user.role != UserRole.DOCTOR.value or not user.is_active:
        raise DoctorNotFound("doctor_not_found")
    if await doctors_repo.get_profile(session, user_id=doctor_id) is None:
        raise DoctorNotFound("doctor_not_found")


class AvailabilityCalendar:
    """
    Per-(doctor, date) slot sets.

    `put` replaces the published ranges for one day but keeps the booked
    state of ranges that survive the rewrite, and refuses to drop a range
    that is currently booked. Only active doctors with a profile can publish.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: DayLocks,
        *,
        max_attempts: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._locks = locks
        self.max_attempts = max_attempts or settings.STORE_MAX_ATTEMPTS

    async def get(self, doctor_id: UUID, day: date | str) -> Optional[AvailabilityDayPublic]:
        day = parse_day(day)
        return await with_retries(
            "availability get", lambda: self._read(doctor_id, day), attempts=self.max_attempts
        )

    async def _read(self, doctor_id: UUID, day: date) -> Optional[AvailabilityDayPublic]:
        async with self._session_factory() as session:
            record = await repo.get_day(session, doctor_id=doctor_id, day=day)
            return _to_public(record) if record else None

    async def put(
        self, doctor_id: UUID, day: date | str, slots: Iterable[SlotIn | dict]
    ) -> AvailabilityDayPublic:
        """
        Raises:
        - ValidationError: malformed slot set or date
        - DoctorNotFound: `doctor_id` is not an active doctor with a profile
        - ScheduleConflict: a booked slot would be dropped or reshaped
        - StoreError: the database kept failing after the retry budget
        """
        day = parse_day(day)
        ranges = _normalize_ranges(slots)

        async with self._locks.hold(doctor_id, day):
            record = await with_retries(
                "availability put",
                lambda: self._write(doctor_id, day, ranges),
                attempts=self.max_attempts,
            )

        logger.info(
            "Availability written doctor=%s date=%s slots=%d",
            doctor_id, day.isoformat(), len(record.slots),
        )
        return _to_public(record)

    async def _write(
        self, doctor_id: UUID, day: date, ranges: list[tuple[str, str]]
    ) -> AvailabilityDay:
        try:
            return await self._write_once(doctor_id, day, ranges)
        except IntegrityError:
            # Another process created the same day (or slot) first; merge into its rows
            logger.info(
                "Concurrent availability write doctor=%s date=%s, merging",
                doctor_id, day.isoformat(),
            )
        try:
            return await self._write_once(doctor_id, day, ranges)
        except IntegrityError as exc:
            raise ScheduleConflict("concurrent_write") from exc

    async def _write_once(
        self, doctor_id: UUID, day: date, ranges: list[tuple[str, str]]
    ) -> AvailabilityDay:
        async with self._session_factory() as session:
            async with session.begin():
                await _require_doctor(session, doctor_id)

                record = await repo.get_day(session, doctor_id=doctor_id, day=day)
                if record is None:
                    record = await repo.create_day(session, doctor_id=doctor_id, day=day)
                    await repo.add_slots(session, day_id=record.id, ranges=ranges)
                else:
                    await self._merge(session, record, ranges)

                return await repo.get_day(session, doctor_id=doctor_id, day=day)

    async def _merge(
        self,
        session: AsyncSession,
        record: AvailabilityDay,
        ranges: list[tuple[str, str]],
    ) -> None:
        wanted = set(ranges)
        drop: list[UUID] = []
        booked_removed: list[str] = []

        for slot in record.slots:
            key = (slot.start_time, slot.end_time)
            if key in wanted:
                wanted.discard(key)
            elif slot.is_booked:
                booked_removed.append(slot.start_time)
            else:
                drop.append(slot.id)

        if booked_removed:
            logger.warning(
                "Rejected availability rewrite doctor=%s date=%s: booked slots %s would be removed",
                record.doctor_id, record.date.isoformat(), ", ".join(booked_removed),
            )
            raise ScheduleConflict("booked_slot_removed")

        removed = await repo.delete_unbooked_slots(session, slot_ids=drop)
        if removed != len(drop):
            # A slot we meant to drop got booked by another process meanwhile
            raise ScheduleConflict("booked_slot_removed")

        await repo.add_slots(session, day_id=record.id, ranges=sorted(wanted))
