# careslot/routers/availability.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from careslot.core.errors import DoctorNotFound, ScheduleConflict, StoreError, ValidationError
from careslot.dependencies import get_calendar
from careslot.modules.availability.calendar import AvailabilityCalendar
from careslot.modules.availability.schemas import AvailabilityDayPublic, AvailabilityPut

router = APIRouter(prefix="/availability", tags=["doctor-availability"])


@router.put(
    "/{doctor_id}/{day}",
    response_model=AvailabilityDayPublic,
    summary="Publish the slot set of one day (booked slots are kept)",
)
async def put_day(
    doctor_id: UUID,
    day: date,
    payload: AvailabilityPut,
    calendar: AvailabilityCalendar = Depends(get_calendar),
):
    try:
        return await calendar.put(doctor_id, day, payload.slots)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ScheduleConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except DoctorNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="doctor_not_found")
    except StoreError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store_unavailable")


@router.get(
    "/{doctor_id}/{day}",
    response_model=AvailabilityDayPublic,
)
async def get_day(
    doctor_id: UUID,
    day: date,
    calendar: AvailabilityCalendar = Depends(get_calendar),
):
    try:
        record = await calendar.get(doctor_id, day)
    except StoreError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store_unavailable")
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
    return record
