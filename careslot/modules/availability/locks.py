# careslot/modules/availability/locks.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator
from uuid import UUID


class DayLocks:
    """
    Sharded in-process locks keyed by (doctor_id, date).

    Booking, cancellation and calendar writes for the same doctor/day run one
    at a time inside this process. Two keys may share a shard; that only costs
    some parallelism. Cross-process safety comes from the conditional UPDATE
    in the repository, not from here.
    """

    def __init__(self, shards: int = 64):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards = [asyncio.Lock() for _ in range(shards)]

    def _lock_for(self, doctor_id: UUID, day: date) -> asyncio.Lock:
        return self._shards[hash((doctor_id, day)) % len(self._shards)]

    @asynccontextmanager
    async def hold(self, doctor_id: UUID, day: date) -> AsyncIterator[None]:
        async with self._lock_for(doctor_id, day):
            yield
