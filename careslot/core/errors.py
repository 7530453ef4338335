# careslot/core/errors.py
from __future__ import annotations


class SchedulingError(Exception):
    """
    Base class for every error raised by the scheduling core.
    The message is a short snake_case code that routers return as `detail`.
    """


class ValidationError(SchedulingError):
    """
    Malformed or missing specialty, urgency, date or time.
    Raised before any storage access.
    """


class DoctorUnavailable(SchedulingError):
    """No calendar entry for the requested doctor/day."""


class SlotUnavailable(SchedulingError):
    """The slot never existed or was already claimed (lost the race)."""


class ScheduleConflict(SchedulingError):
    """An availability write would drop a slot that is currently booked."""


class AppointmentNotFound(SchedulingError):
    pass


class StoreError(SchedulingError):
    """
    Transient persistence failure. Retryable, and kept apart from
    business failures so callers can tell "try again" from "no".
    """


class DoctorNotFound(SchedulingError):
    """The id does not belong to an active doctor with a profile."""
