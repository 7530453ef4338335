# careslot/modules/appointments/models.py
from __future__ import annotations

import uuid
import datetime as dt
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from careslot.db.base import Base, UUIDPKMixin, TimestampMixin, ReprMixin


class ApptStatus(PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Appointment(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    Appointment created by the booking transaction.
    Rows are never deleted; status changes are the history.
    """

    __tablename__ = "appointments"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # date + time combined, naive UTC
    scheduled_at: Mapped[dt.datetime] = mapped_column(nullable=False)
    appointment_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # "HH:MM", equal to the claimed slot's start_time
    time: Mapped[str] = mapped_column(String(5), nullable=False)

    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApptStatus.PENDING.value,
        server_default=ApptStatus.PENDING.value,
    )
    # Doctor's notes after the visit
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_appt_status_valid",
        ),
        Index("ix_appt_doctor_date_time", "doctor_id", "appointment_date", "time"),
        Index("ix_appt_patient_date", "patient_id", "appointment_date"),
    )
