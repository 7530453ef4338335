# careslot/modules/users/models.py
from __future__ import annotations

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    String,
    Boolean,
    CheckConstraint,
    UniqueConstraint,
    Index,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from careslot.db.base import Base, UUIDPKMixin, TimestampMixin, ReprMixin


class UserRole(PyEnum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class User(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    Patients and doctors share this table; `role` tells them apart.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        index=True,
    )

    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    role: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=UserRole.PATIENT.value
    )

    # How the patient wants appointment reminders delivered (None = no reminders)
    reminder_preference: Mapped[Optional[str]] = mapped_column(
        String(32), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        CheckConstraint("email = lower(email)", name="ck_users_email_lowercase"),
        CheckConstraint(
            "role IN ('patient', 'doctor', 'admin')", name="ck_users_role_valid"
        ),
        Index("ix_users_role", "role"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
