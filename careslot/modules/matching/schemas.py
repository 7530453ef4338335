# careslot/modules/matching/schemas.py
from __future__ import annotations

import datetime as dt
from typing import List
from uuid import UUID

from pydantic import BaseModel

from careslot.modules.availability.schemas import SlotPublic


class Offer(BaseModel):
    """
    One (doctor, date) candidate produced by a search. Never persisted.
    """
    doctor_id: UUID
    doctor_name: str
    specialty: str
    date: dt.date
    slots: List[SlotPublic]
