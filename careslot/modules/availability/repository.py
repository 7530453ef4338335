# careslot/modules/availability/repository.py
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from careslot.modules.availability.models import AvailabilityDay, AvailabilitySlot


async def get_day(
    db: AsyncSession, *, doctor_id: UUID, day: date
) -> Optional[AvailabilityDay]:
    """
    Day row with its slots (ordered by start_time), or None.
    Always reloads from the database so rows touched by bulk UPDATE/DELETE are fresh.
    """
    row = await db.execute(
        select(AvailabilityDay)
        .where(AvailabilityDay.doctor_id == doctor_id, AvailabilityDay.date == day)
        .execution_options(populate_existing=True)
    )
    return row.scalar_one_or_none()


async def create_day(db: AsyncSession, *, doctor_id: UUID, day: date) -> AvailabilityDay:
    record = AvailabilityDay(doctor_id=doctor_id, date=day, slots=[])
    db.add(record)
    await db.flush()
    return record


async def add_slots(
    db: AsyncSession, *, day_id: UUID, ranges: Iterable[tuple[str, str]]
) -> None:
    db.add_all(
        AvailabilitySlot(day_id=day_id, start_time=start, end_time=end, is_booked=False)
        for start, end in ranges
    )
    await db.flush()


async def delete_unbooked_slots(db: AsyncSession, *, slot_ids: Sequence[UUID]) -> int:
    """
    Delete the given slots unless they got booked meanwhile.
    Returns the number of rows actually removed.
    """
    if not slot_ids:
        return 0
    res = await db.execute(
        delete(AvailabilitySlot).where(
            AvailabilitySlot.id.in_(slot_ids),
            AvailabilitySlot.is_booked.is_(False),
        )
    )
    return res.rowcount or 0  # type: ignore


async def claim_slot(db: AsyncSession, *, slot_id: UUID, appointment_id: UUID) -> int:
    """
    Compare-and-swap on the booked flag: only an unbooked slot can be claimed.
    Returns 1 when this caller won the slot, 0 otherwise.
    """
    res = await db.execute(
        update(AvailabilitySlot)
        .where(
            AvailabilitySlot.id == slot_id,
            AvailabilitySlot.is_booked.is_(False),
        )
        .values(is_booked=True, appointment_id=appointment_id)
    )
    return res.rowcount or 0  # type: ignore


async def release_slot(db: AsyncSession, *, appointment_id: UUID) -> int:
    """
    Flip the slot linked to an appointment back to free and clear the link.
    """
    res = await db.execute(
        update(AvailabilitySlot)
        .where(AvailabilitySlot.appointment_id == appointment_id)
        .values(is_booked=False, appointment_id=None)
    )
    return res.rowcount or 0  # type: ignore
