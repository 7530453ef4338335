# careslot/modules/doctors/directory.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careslot.core.config import settings
from careslot.db.retry import with_retries
from careslot.modules.doctors import repository as repo
from careslot.modules.doctors.schemas import DoctorListing


class DoctorDirectory:
    """
    Specialty -> doctor lookup used by the matcher.
    Each call runs in its own short read-only session.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.max_attempts = max_attempts or settings.STORE_MAX_ATTEMPTS

    async def find_by_specialty(self, specialty: str) -> list[DoctorListing]:
        return await with_retries(
            "doctor lookup", lambda: self._lookup(specialty), attempts=self.max_attempts
        )

    async def _lookup(self, specialty: str) -> list[DoctorListing]:
        async with self._session_factory() as session:
            profiles = await repo.list_by_specialty(session, specialty=specialty)
            return [
                DoctorListing(
                    doctor_id=p.user_id,
                    doctor_name=p.display_name,
                    specialty=p.specialty,
                )
                for p in profiles
            ]
