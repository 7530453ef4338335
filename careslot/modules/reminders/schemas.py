# careslot/modules/reminders/schemas.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, StringConstraints, model_validator

from careslot.modules.users.schemas import ReminderPreference

MessageStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]


class ReminderKind(str, Enum):
    appointment = "appointment"
    medication = "medication"
    general = "general"


class MedicationDetails(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
    dosage: Optional[str] = None
    frequency: Optional[str] = None


class ReminderCreate(BaseModel):
    """
    Manually scheduled reminder. `scheduled_time` without an offset is UTC.
    """
    user_id: UUID
    type: ReminderKind
    message: MessageStr
    scheduled_time: datetime
    contact_method: ReminderPreference
    appointment_id: Optional[UUID] = None
    medication: Optional[MedicationDetails] = None

    @model_validator(mode="after")
    def _medication_needs_details(self):
        if self.type is ReminderKind.medication and self.medication is None:
            raise ValueError("medication reminders need medication details")
        return self


class ReminderPublic(BaseModel):
    id: UUID
    user_id: UUID
    appointment_id: Optional[UUID] = None
    type: str
    message: str
    scheduled_time: datetime
    contact_method: str
    status: str
    attempts: int
    last_error: Optional[str] = None
    medication_name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None

    class Config:
        from_attributes = True
