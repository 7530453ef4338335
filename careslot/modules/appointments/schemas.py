# careslot/modules/appointments/schemas.py
from __future__ import annotations

import datetime as dt
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints

from careslot.core.dates import HHMM_RE

ReasonStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class AppointmentCreateRequest(BaseModel):
    """
    Payload to book one slot. `date` + `time` must name a published slot.
    """
    patient_id: UUID
    doctor_id: UUID
    date: dt.date
    time: str = Field(..., pattern=HHMM_RE.pattern, description='"HH:MM", 24-hour')
    reason: ReasonStr


class AppointmentPublic(BaseModel):
    """
    DTO returns a detailed appointment.
    """
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    scheduled_at: dt.datetime
    appointment_date: dt.date
    time: str
    reason: str
    status: str
    notes: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class AppointmentList(BaseModel):
    items: List[AppointmentPublic]
    total: int
