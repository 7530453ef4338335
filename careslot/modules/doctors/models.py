# careslot/modules/doctors/models.py
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from careslot.db.base import Base, UUIDPKMixin, TimestampMixin, ReprMixin
from careslot.modules.users.models import User


class DoctorProfile(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    Specialty and practice details for a user with role 'doctor'.
    One profile per user.
    """

    __tablename__ = "doctor_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    # e.g. 'General Practitioner', 'Cardiologist', 'Pediatrician'
    specialty: Mapped[str] = mapped_column(String(80), nullable=False)
    clinic_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    user: Mapped[User] = relationship("User", lazy="joined")

    __table_args__ = (
        Index("ix_doctor_profiles_specialty", "specialty"),
    )

    @property
    def display_name(self) -> str:
        return f"Dr. {self.user.full_name}"
