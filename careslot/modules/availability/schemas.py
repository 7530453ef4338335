# careslot/modules/availability/schemas.py
from __future__ import annotations

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from careslot.core.dates import HHMM_RE


class SlotIn(BaseModel):
    start_time: str = Field(..., description='"HH:MM", 24-hour')
    end_time: str = Field(..., description='"HH:MM", 24-hour')

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        v = v.strip()
        if not HHMM_RE.match(v):
            raise ValueError("time must be HH:MM (24-hour)")
        return v

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilityPut(BaseModel):
    slots: List[SlotIn]


class SlotPublic(BaseModel):
    start_time: str
    end_time: str
    is_booked: bool
    appointment_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class AvailabilityDayPublic(BaseModel):
    doctor_id: UUID
    date: dt.date
    slots: List[SlotPublic]

    class Config:
        from_attributes = True
