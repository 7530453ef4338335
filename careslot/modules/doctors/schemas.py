# careslot/modules/doctors/schemas.py
from __future__ import annotations

from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, StringConstraints

SpecialtyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=80)]


class DoctorProfileUpsert(BaseModel):
    specialty: SpecialtyStr
    clinic_address: Optional[str] = None
    contact_number: Optional[str] = None


class DoctorProfilePublic(BaseModel):
    id: UUID
    user_id: UUID
    specialty: str
    clinic_address: Optional[str] = None
    contact_number: Optional[str] = None

    class Config:
        from_attributes = True


class DoctorListing(BaseModel):
    """
    What the directory hands to the matcher for one doctor.
    """
    doctor_id: UUID
    doctor_name: str
    specialty: str
