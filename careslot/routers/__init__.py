# careslot/routers/__init__.py
from . import health, appointments, availability, doctors, reminders, users

__all__ = ["health", "appointments", "availability", "doctors", "reminders", "users"]
