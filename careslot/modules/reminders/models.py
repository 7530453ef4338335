# careslot/modules/reminders/models.py
from __future__ import annotations

import uuid
import datetime as dt
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from careslot.db.base import Base, UUIDPKMixin, TimestampMixin, ReprMixin


class ReminderType(PyEnum):
    APPOINTMENT = "appointment"
    MEDICATION = "medication"
    GENERAL = "general"


class ReminderStatus(PyEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Reminder(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    Outbox row: written next to a booking, delivered later by the dispatcher.
    """

    __tablename__ = "reminders"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Not every reminder belongs to an appointment (e.g. medication)
    appointment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=True,
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    # When it should go out, naive UTC
    scheduled_time: Mapped[dt.datetime] = mapped_column(nullable=False)
    contact_method: Mapped[str] = mapped_column(String(32), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReminderStatus.PENDING.value,
        server_default=ReminderStatus.PENDING.value,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Medication reminders only
    medication_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    dosage: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    frequency: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)

    __table_args__ = (
        Index("ix_reminders_due", "status", "scheduled_time"),
        Index("ix_reminders_user_type", "user_id", "type"),
        Index("ix_reminders_appointment", "appointment_id"),
    )
