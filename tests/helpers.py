# tests/helpers.py
from __future__ import annotations


def slots(*ranges: str) -> list[dict]:
    """slots("09:00-09:30", "09:30-10:00") -> list of slot dicts"""
    out = []
    for r in ranges:
        start, end = r.split("-")
        out.append({"start_time": start, "end_time": end})
    return out


class CountingCalendar:
    """Wraps a calendar and records every (doctor_id, day) it is asked for."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    async def get(self, doctor_id, day):
        self.calls.append((doctor_id, day))
        return await self.inner.get(doctor_id, day)
