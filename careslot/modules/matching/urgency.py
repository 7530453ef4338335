# careslot/modules/matching/urgency.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from careslot.core.errors import ValidationError


class UrgencyLevel(str, Enum):
    EMERGENCY = "emergency"
    URGENT = "urgent"
    ROUTINE = "routine"

    @classmethod
    def parse(cls, value: "UrgencyLevel | str") -> "UrgencyLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValidationError("invalid_urgency") from exc


@dataclass(frozen=True)
class SearchPolicy:
    stop_after_first_offer: bool
    max_slots_per_offer: int


_POLICIES = {
    UrgencyLevel.EMERGENCY: SearchPolicy(stop_after_first_offer=True, max_slots_per_offer=1),
    UrgencyLevel.URGENT: SearchPolicy(stop_after_first_offer=True, max_slots_per_offer=3),
    UrgencyLevel.ROUTINE: SearchPolicy(stop_after_first_offer=False, max_slots_per_offer=5),
}


def policy_for(urgency: UrgencyLevel | str) -> SearchPolicy:
    """Search breadth and per-offer slot cap for an urgency tier."""
    return _POLICIES[UrgencyLevel.parse(urgency)]
