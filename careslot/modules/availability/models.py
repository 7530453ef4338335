# careslot/modules/availability/models.py
from __future__ import annotations

import uuid
import datetime as dt
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from careslot.db.base import Base, UUIDPKMixin, TimestampMixin, ReprMixin


class AvailabilityDay(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    Every slot one doctor published for one UTC calendar date.
    The (doctor, date) pair is also the booking lock unit.
    """

    __tablename__ = "availability_days"

    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    slots: Mapped[List["AvailabilitySlot"]] = relationship(
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="AvailabilitySlot.start_time",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("doctor_id", "date", name="uq_availability_doctor_date"),
    )


class AvailabilitySlot(UUIDPKMixin, ReprMixin, Base):
    """
    One bookable [start_time, end_time) range. One row = one slot.
    """

    __tablename__ = "availability_slots"

    day_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("availability_days.id", ondelete="CASCADE"),
        nullable=False,
    )

    # "HH:MM" (24-hour, zero padded)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)

    is_booked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    appointment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        nullable=True,
    )

    day: Mapped[AvailabilityDay] = relationship(back_populates="slots")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_slot_time_order"),
        CheckConstraint(
            "(is_booked AND appointment_id IS NOT NULL) OR "
            "(NOT is_booked AND appointment_id IS NULL)",
            name="ck_slot_booked_link",
        ),
        UniqueConstraint("day_id", "start_time", name="uq_slot_day_start"),
        Index("ix_slot_appointment", "appointment_id"),
    )
