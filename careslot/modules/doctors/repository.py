# careslot/modules/doctors/repository.py
from __future__ import annotations

from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careslot.modules.doctors.models import DoctorProfile
from careslot.modules.users.models import User, UserRole


async def get_profile(db: AsyncSession, *, user_id: UUID) -> Optional[DoctorProfile]:
    row = await db.execute(
        select(DoctorProfile).where(DoctorProfile.user_id == user_id)
    )
    return row.scalar_one_or_none()


async def upsert_profile(
    db: AsyncSession,
    *,
    user_id: UUID,
    specialty: str,
    clinic_address: Optional[str] = None,
    contact_number: Optional[str] = None,
) -> DoctorProfile:
    profile = await get_profile(db, user_id=user_id)
    if profile is None:
        profile = DoctorProfile(user_id=user_id, specialty=specialty)
        db.add(profile)
    profile.specialty = specialty
    profile.clinic_address = clinic_address
    profile.contact_number = contact_number
    await db.flush()
    await db.refresh(profile)
    return profile


async def list_by_specialty(
    db: AsyncSession, *, specialty: str
) -> Sequence[DoctorProfile]:
    """
    Active doctors of one specialty, in a stable order (last name, then id).
    """
    rows = await db.execute(
        select(DoctorProfile)
        .join(User, User.id == DoctorProfile.user_id)
        .where(
            DoctorProfile.specialty == specialty,
            User.role == UserRole.DOCTOR.value,
            User.is_active.is_(True),
        )
        .order_by(User.last_name, User.id)
    )
    return rows.scalars().all()


async def get_display_name(db: AsyncSession, *, user_id: UUID) -> Optional[str]:
    user = await db.get(User, user_id)
    if user is None:
        return None
    return f"Dr. {user.full_name}"
