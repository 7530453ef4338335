# careslot/routers/doctors.py
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from careslot.core.errors import StoreError
from careslot.db.sql import get_session
from careslot.dependencies import get_directory
from careslot.modules.doctors import repository as repo
from careslot.modules.doctors.directory import DoctorDirectory
from careslot.modules.doctors.schemas import (
    DoctorListing,
    DoctorProfilePublic,
    DoctorProfileUpsert,
)
from careslot.modules.users.models import UserRole
from careslot.modules.users.repository import get_by_id

router = APIRouter(tags=["doctors"])


@router.get(
    "/doctors",
    response_model=List[DoctorListing],
    summary="List doctors of a specialty",
)
async def doctors_index(
    specialty: str = Query(..., min_length=1),
    directory: DoctorDirectory = Depends(get_directory),
):
    try:
        return await directory.find_by_specialty(specialty.strip())
    except StoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="store_unavailable",
        )


@router.put(
    "/doctors/{user_id}/profile",
    response_model=DoctorProfilePublic,
    summary="Create or update a doctor's profile",
)
async def doctors_profile_upsert(
    user_id: UUID,
    payload: DoctorProfileUpsert,
    session: AsyncSession = Depends(get_session),
):
    """
    Returns 404 if the user does not exist or is not role='doctor'.
    """
    user = await get_by_id(session, user_id)
    if user is None or user.role != UserRole.DOCTOR.value:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="doctor_not_found",
        )
    return await repo.upsert_profile(
        session,
        user_id=user_id,
        specialty=payload.specialty,
        clinic_address=payload.clinic_address,
        contact_number=payload.contact_number,
    )


@router.get(
    "/doctors/{user_id}/profile",
    response_model=DoctorProfilePublic,
    summary="Read a doctor's profile",
)
async def doctors_profile_get(
    user_id: UUID,
    session: AsyncSession = Depends(get_session),
):
    profile = await repo.get_profile(session, user_id=user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="doctor_profile_not_found",
        )
    return profile
