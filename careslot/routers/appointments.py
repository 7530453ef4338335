# careslot/routers/appointments.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from careslot.core.errors import (
    AppointmentNotFound,
    DoctorUnavailable,
    SlotUnavailable,
    StoreError,
    ValidationError,
)
from careslot.dependencies import get_booking, get_matcher
from careslot.modules.appointments.schemas import (
    AppointmentCreateRequest,
    AppointmentList,
    AppointmentPublic,
)
from careslot.modules.appointments.service import BookingTransactionManager
from careslot.modules.matching.matcher import SlotMatcher
from careslot.modules.matching.schemas import Offer
from careslot.modules.matching.urgency import UrgencyLevel

router = APIRouter(tags=["appointments"])


# Implement /appointments/search (GET)
@router.get(
    "/appointments/search",
    response_model=List[Offer],
    summary="Find doctors with free slots by specialty and urgency",
)
async def appointments_search(
    specialty: str = Query(..., min_length=1),
    urgency: UrgencyLevel = Query(...),
    preferred: Optional[str] = Query(
        None, description="ISO date or datetime; a time of day narrows to +/- 2h"
    ),
    matcher: SlotMatcher = Depends(get_matcher),
):
    try:
        return await matcher.find_available(specialty, urgency, preferred)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    except StoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="store_unavailable",
        )


# Implement /appointments/book (POST)
@router.post(
    "/appointments/book",
    response_model=AppointmentPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Book one slot (atomic claim)",
)
async def appointments_book(
    payload: AppointmentCreateRequest,
    booking: BookingTransactionManager = Depends(get_booking),
):
    try:
        return await booking.book(
            payload.patient_id,
            payload.doctor_id,
            payload.date,
            payload.time,
            payload.reason,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    except DoctorUnavailable:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="doctor_unavailable",
        )
    except SlotUnavailable:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="slot_unavailable",
        )
    except StoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="store_unavailable",
        )


# Implement /appointments/{id}/cancel (PUT)
@router.put(
    "/appointments/{appointment_id}/cancel",
    response_model=AppointmentPublic,
    summary="Cancel an appointment and release its slot",
)
async def appointments_cancel(
    appointment_id: UUID,
    booking: BookingTransactionManager = Depends(get_booking),
):
    try:
        return await booking.cancel(appointment_id)
    except AppointmentNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="appointment_not_found",
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except StoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="store_unavailable",
        )


@router.get(
    "/appointments/patient/{patient_id}",
    response_model=AppointmentList,
    summary="Appointment history of a patient",
)
async def appointments_for_patient(
    patient_id: UUID,
    booking: BookingTransactionManager = Depends(get_booking),
):
    items = await booking.list_for_patient(patient_id)
    return AppointmentList(items=items, total=len(items))


@router.get(
    "/appointments/doctor/{doctor_id}",
    response_model=AppointmentList,
    summary="Appointments of a doctor",
)
async def appointments_for_doctor(
    doctor_id: UUID,
    booking: BookingTransactionManager = Depends(get_booking),
):
    items = await booking.list_for_doctor(doctor_id)
    return AppointmentList(items=items, total=len(items))
