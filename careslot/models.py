# careslot/models.py
# Import every ORM model so Base.metadata knows all tables (create_all, alembic)
from careslot.modules.users.models import User
from careslot.modules.doctors.models import DoctorProfile
from careslot.modules.appointments.models import Appointment
from careslot.modules.availability.models import AvailabilityDay, AvailabilitySlot
from careslot.modules.reminders.models import Reminder

__all__ = [
    "User",
    "DoctorProfile",
    "Appointment",
    "AvailabilityDay",
    "AvailabilitySlot",
    "Reminder",
]
