# careslot/modules/users/schemas.py
from __future__ import annotations

from enum import Enum
from typing import Optional, Annotated
from uuid import UUID
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, StringConstraints


class Role(str, Enum):
    patient = "patient"
    doctor = "doctor"
    admin = "admin"


class ReminderPreference(str, Enum):
    sms = "sms"
    call = "call"
    email = "email"
    in_app = "in-app-notification"


NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
PhoneStr = Annotated[str, StringConstraints(pattern=r"^\+?[1-9]\d{1,14}$")]  # E.164 simple


class UserCreate(BaseModel):
    email: EmailStr = Field(...)
    first_name: NameStr
    last_name: NameStr
    role: Role = Role.patient
    phone: Optional[PhoneStr] = None
    reminder_preference: Optional[ReminderPreference] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserPublic(BaseModel):
    id: UUID
    email: EmailStr
    role: Role
    first_name: str
    last_name: str
    phone: Optional[str] = None
    reminder_preference: Optional[ReminderPreference] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
