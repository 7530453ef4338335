# careslot/modules/matching/matcher.py
from __future__ import annotations

import heapq
import logging
from contextlib import aclosing
from datetime import date, datetime, timedelta
from enum import Enum
from typing import AsyncIterator, Optional, Sequence

from careslot.core.config import settings
from careslot.core.dates import minutes_of, to_utc_naive, utc_now
from careslot.core.errors import ValidationError
from careslot.modules.availability.calendar import AvailabilityCalendar
from careslot.modules.availability.schemas import SlotPublic
from careslot.modules.doctors.directory import DoctorDirectory
from careslot.modules.doctors.schemas import DoctorListing
from careslot.modules.matching.schemas import Offer
from careslot.modules.matching.urgency import SearchPolicy, UrgencyLevel, policy_for

logger = logging.getLogger(__name__)

Preferred = Optional[datetime | date | str]


class SearchStrategy(str, Enum):
    # First doctor/day with a usable slot wins (for the stopping tiers)
    GREEDY = "greedy"
    # Whole window merged by (date, start_time), caps applied after merging
    NEAREST = "nearest"


def _split_preferred(preferred: Preferred) -> tuple[date, Optional[int]]:
    """
    Returns (first search day, preferred minute-of-day or None).

    A datetime carries a time-of-day preference; a bare date or None does not.
    """
    if preferred is None:
        return utc_now().date(), None

    if isinstance(preferred, str):
        raw = preferred.strip()
        try:
            if len(raw) == 10:
                preferred = date.fromisoformat(raw)
            else:
                preferred = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError("invalid_preferred_datetime") from exc

    if isinstance(preferred, datetime):
        moment = to_utc_naive(preferred)
        return moment.date(), moment.hour * 60 + moment.minute

    if isinstance(preferred, date):
        return preferred, None

    raise ValidationError("invalid_preferred_datetime")


class SlotMatcher:
    """
    Multi-day, multi-doctor availability search.

    Read only: takes no locks and tolerates stale reads. A slot seen free
    here can still be lost at booking time.
    """

    def __init__(
        self,
        directory: DoctorDirectory,
        calendar: AvailabilityCalendar,
        *,
        window_days: Optional[int] = None,
        tolerance_minutes: Optional[int] = None,
        strategy: SearchStrategy | str | None = None,
    ):
        self._directory = directory
        self._calendar = calendar
        self.window_days = window_days or settings.SEARCH_WINDOW_DAYS
        self.tolerance_minutes = (
            settings.PREFERRED_TIME_TOLERANCE_MIN
            if tolerance_minutes is None
            else tolerance_minutes
        )
        self.strategy = SearchStrategy(strategy or settings.SEARCH_STRATEGY)

    async def find_available(
        self,
        specialty: str,
        urgency: UrgencyLevel | str,
        preferred: Preferred = None,
    ) -> list[Offer]:
        if not isinstance(specialty, str) or not specialty.strip():
            raise ValidationError("invalid_specialty")
        specialty = specialty.strip()
        urgency = UrgencyLevel.parse(urgency)
        policy = policy_for(urgency)
        start_day, preferred_minutes = _split_preferred(preferred)

        if self.strategy is SearchStrategy.NEAREST and policy.stop_after_first_offer:
            offers = await self._search_nearest(specialty, policy, start_day, preferred_minutes)
        else:
            offers = await self._search_greedy(specialty, policy, start_day, preferred_minutes)

        logger.debug(
            "Search specialty=%s urgency=%s from=%s -> %d offer(s)",
            specialty, urgency.value, start_day.isoformat(), len(offers),
        )
        return offers

    async def _candidates(
        self, specialty: str, start_day: date, preferred_minutes: Optional[int]
    ) -> AsyncIterator[tuple[date, DoctorListing, list[SlotPublic]]]:
        """
        Yields (day, doctor, relevant slots ascending) in scan order:
        days ascending, then doctors in directory order.
        """
        for offset in range(self.window_days):
            day = start_day + timedelta(days=offset)
            doctors = await self._directory.find_by_specialty(specialty)
            for doctor in doctors:
                record = await self._calendar.get(doctor.doctor_id, day)
                if record is None:
                    continue
                relevant = self._relevant_slots(record.slots, preferred_minutes)
                if relevant:
                    yield day, doctor, relevant

    def _relevant_slots(
        self, slots: Sequence[SlotPublic], preferred_minutes: Optional[int]
    ) -> list[SlotPublic]:
        free = [s for s in slots if not s.is_booked]
        if preferred_minutes is not None:
            free = [
                s for s in free
                if abs(minutes_of(s.start_time) - preferred_minutes) <= self.tolerance_minutes
            ]
        return sorted(free, key=lambda s: minutes_of(s.start_time))

    async def _search_greedy(
        self,
        specialty: str,
        policy: SearchPolicy,
        start_day: date,
        preferred_minutes: Optional[int],
    ) -> list[Offer]:
        offers: list[Offer] = []
        async with aclosing(self._candidates(specialty, start_day, preferred_minutes)) as candidates:
            async for day, doctor, relevant in candidates:
                offers.append(_offer(doctor, day, relevant[: policy.max_slots_per_offer]))
                if policy.stop_after_first_offer:
                    break
        return offers

    async def _search_nearest(
        self,
        specialty: str,
        policy: SearchPolicy,
        start_day: date,
        preferred_minutes: Optional[int],
    ) -> list[Offer]:
        streams = []
        seq = 0
        async for day, doctor, relevant in self._candidates(specialty, start_day, preferred_minutes):
            stream = []
            for slot in relevant:
                stream.append((day, minutes_of(slot.start_time), seq, doctor, slot))
                seq += 1
            streams.append(stream)

        picked = []
        for item in heapq.merge(*streams, key=lambda e: e[:3]):
            picked.append(item)
            if len(picked) == policy.max_slots_per_offer:
                break

        # Regroup the merged slots into per-(doctor, day) offers, first-seen order
        grouped: dict[tuple, tuple[DoctorListing, date, list[SlotPublic]]] = {}
        for day, _minute, _seq, doctor, slot in picked:
            key = (doctor.doctor_id, day)
            if key not in grouped:
                grouped[key] = (doctor, day, [])
            grouped[key][2].append(slot)
        return [_offer(doctor, day, slots) for doctor, day, slots in grouped.values()]


def _offer(doctor: DoctorListing, day: date, slots: list[SlotPublic]) -> Offer:
    return Offer(
        doctor_id=doctor.doctor_id,
        doctor_name=doctor.doctor_name,
        specialty=doctor.specialty,
        date=day,
        slots=slots,
    )
