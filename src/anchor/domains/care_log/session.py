"""Caregiver session context passed explicitly into the engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


def calculate_age(date_of_birth: date | None, today: date | None = None) -> int | None:
    """Whole years between ``date_of_birth`` and ``today``."""
    if date_of_birth is None:
        return None
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


@dataclass(frozen=True)
class CareSession:
    """Identity and demographics for one caregiver editing one recipient's log.

    ``care_recipient_id`` may be None when the caregiver has no recipient
    association; saving and submitting are refused in that case.
    """

    caregiver_id: str
    care_recipient_id: str | None = None
    token: str = ""
    date_of_birth: date | None = None
    gender: str | None = None

    @property
    def has_recipient(self) -> bool:
        return bool(self.care_recipient_id)

    def age(self, today: date | None = None) -> int | None:
        return calculate_age(self.date_of_birth, today)
