"""Section descriptors and the registry the validator walks.

Each descriptor carries two rules over a ``CareLogDraft``:

* ``has_data`` — whether the caregiver has entered anything in the section.
* ``missing_fields`` — human-readable messages for every conditionally
  required field that is unmet. ``None`` marks a section as unconditionally
  optional.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from anchor.domains.care_log.models import CareLogDraft, SectionGroup, parse_clock

logger = logging.getLogger(__name__)

MissingFieldsRule = Callable[[CareLogDraft], list[str]]
HasDataRule = Callable[[CareLogDraft], bool]


@dataclass(frozen=True)
class SectionDescriptor:
    """Static configuration for one form section."""

    id: str
    title: str
    has_data: HasDataRule
    missing_fields: MissingFieldsRule | None = None
    groups: tuple[SectionGroup, ...] = field(default_factory=tuple)

    @property
    def optional(self) -> bool:
        return self.missing_fields is None


class SectionRegistry:
    """Ordered registry of section descriptors."""

    def __init__(self, sections: list[SectionDescriptor] | None = None) -> None:
        self._sections: dict[str, SectionDescriptor] = {}
        for section in sections or []:
            self.register(section)

    def register(self, section: SectionDescriptor) -> None:
        if section.id in self._sections:
            raise ValueError(f"Duplicate section id registered: {section.id!r}")
        self._sections[section.id] = section

    def unregister(self, section_id: str) -> None:
        self._sections.pop(section_id, None)

    def get(self, section_id: str) -> SectionDescriptor | None:
        return self._sections.get(section_id)

    def find_by_group(self, group: SectionGroup) -> list[SectionDescriptor]:
        return [s for s in self._sections.values() if group in s.groups]

    def all(self) -> list[SectionDescriptor]:
        return list(self._sections.values())

    def __len__(self) -> int:
        return len(self._sections)

    def copy(self) -> SectionRegistry:
        return SectionRegistry(self.all())


# ---------------------------------------------------------------------------
# has_data rules
# ---------------------------------------------------------------------------

def _morning_routine_data(d: CareLogDraft) -> bool:
    r = d.morning_routine
    return bool(r.wake_time or r.mood or r.shower_time or r.hair_wash)


def _medications_data(d: CareLogDraft) -> bool:
    return any(med.given or med.time for med in d.medications)


def _meals_data(d: CareLogDraft) -> bool:
    m = d.meals
    return (
        any(meal.has_data() for _, meal in m.entries())
        or bool(m.food_preferences or m.food_refusals)
    )


def _vitals_data(d: CareLogDraft) -> bool:
    # vitals_time alone is not a measurement
    return d.vitals.has_measurement()


def _toileting_data(d: CareLogDraft) -> bool:
    t = d.toileting
    return t.bowel.frequency > 0 or t.urination.frequency > 0 or (t.diaper_changes or 0) > 0


def _rest_sleep_data(d: CareLogDraft) -> bool:
    return d.afternoon_rest is not None or d.night_sleep is not None


def _fall_risk_data(d: CareLogDraft) -> bool:
    f = d.fall_risk
    return (
        f.balance_issues is not None
        or f.near_falls != "none"
        or f.actual_falls != "none"
        or bool(f.walking_pattern)
        or f.freezing_episodes != "none"
    )


def _unaccompanied_data(d: CareLogDraft) -> bool:
    return bool(d.unaccompanied_periods) or bool(d.unaccompanied_incidents)


def _safety_checks_data(d: CareLogDraft) -> bool:
    return any(check.checked for check in d.safety_checks.values())


def _spiritual_data(d: CareLogDraft) -> bool:
    s = d.spiritual
    return bool(
        s.prayer_start
        or s.prayer_end
        or s.prayer_expression
        or s.overall_mood is not None
        or s.communication_scale is not None
        or s.social_interaction
    )


def _physical_activity_data(d: CareLogDraft) -> bool:
    return (
        d.morning_exercise.has_data()
        or d.afternoon_exercise.has_data()
        or any(m.level or m.notes for m in d.movement_difficulties.values())
    )


def _special_concerns_data(d: CareLogDraft) -> bool:
    s = d.special_concerns
    return bool(
        s.priority_level
        or s.behavioural_changes
        or s.physical_changes
        or s.incident_description
        or s.actions_taken
        or s.notes
    )


def _notes_data(d: CareLogDraft) -> bool:
    n = d.caregiver_notes
    return bool(
        d.notes
        or d.emergency_flag
        or n.what_went_well
        or n.challenges_faced
        or n.recommendations_for_tomorrow
        or n.important_info_for_family
    )


# ---------------------------------------------------------------------------
# Conditional required-field rules
# ---------------------------------------------------------------------------

def _missing_medications(d: CareLogDraft) -> list[str]:
    return [f"Time for {med.name}" for med in d.medications if med.given and not med.time]


def _missing_meals(d: CareLogDraft) -> list[str]:
    missing: list[str] = []
    for label, meal in d.meals.entries():
        if not meal.time:
            continue
        if meal.appetite <= 0:
            missing.append(f"{label} appetite (1-5)")
        if meal.amount_eaten <= 0:
            missing.append(f"{label} amount eaten (%)")
    return missing


def _end_after_start(start: str, end: str) -> bool:
    s, e = parse_clock(start), parse_clock(end)
    return s is not None and e is not None and e > s


def _missing_rest_sleep(d: CareLogDraft) -> list[str]:
    missing: list[str] = []
    rest = d.afternoon_rest
    if rest is not None:
        if not rest.start_time:
            missing.append("Afternoon rest start time")
        if not rest.end_time:
            missing.append("Afternoon rest end time")
        if rest.start_time and rest.end_time and not _end_after_start(rest.start_time, rest.end_time):
            missing.append("Afternoon rest end time must be after start time")
        if not rest.quality:
            missing.append("Afternoon rest sleep quality")
    sleep = d.night_sleep
    if sleep is not None:
        if not sleep.bedtime:
            missing.append("Night sleep bedtime")
        if not sleep.quality:
            missing.append("Night sleep quality")
    return missing


def _missing_unaccompanied(d: CareLogDraft) -> list[str]:
    missing: list[str] = []
    for idx, period in enumerate(d.unaccompanied_periods, start=1):
        if not period.start_time:
            missing.append(f"Period {idx}: Start time")
        if not period.end_time:
            missing.append(f"Period {idx}: End time")
        if not period.reason.strip():
            missing.append(f"Period {idx}: Reason")
        if period.start_time and period.end_time:
            duration = period.duration_minutes
            if duration is None:
                missing.append(f"Period {idx}: Times must be HH:MM")
            elif duration <= 0:
                missing.append(f"Period {idx}: End time must be after start time")
    return missing


# ---------------------------------------------------------------------------
# Default registry (display order)
# ---------------------------------------------------------------------------

_MORNING = SectionGroup.MORNING
_AFTERNOON = SectionGroup.AFTERNOON
_EVENING = SectionGroup.EVENING
_SUMMARY = SectionGroup.DAILY_SUMMARY

DEFAULT_SECTIONS = SectionRegistry([
    SectionDescriptor("morning_routine", "Morning Routine", _morning_routine_data,
                      groups=(_MORNING,)),
    SectionDescriptor("medications", "Medications", _medications_data, _missing_medications,
                      groups=(_MORNING, _AFTERNOON, _EVENING)),
    SectionDescriptor("meals", "Meals & Nutrition", _meals_data, _missing_meals,
                      groups=(_MORNING, _AFTERNOON, _EVENING)),
    SectionDescriptor("vitals", "Vital Signs", _vitals_data,
                      groups=(_MORNING, _AFTERNOON)),
    SectionDescriptor("toileting", "Toileting", _toileting_data,
                      groups=(_SUMMARY,)),
    SectionDescriptor("rest_sleep", "Rest & Sleep", _rest_sleep_data, _missing_rest_sleep,
                      groups=(_AFTERNOON, _EVENING)),
    SectionDescriptor("fall_risk", "Fall Risk & Safety", _fall_risk_data,
                      groups=(_SUMMARY,)),
    SectionDescriptor("unaccompanied_time", "Unaccompanied Time", _unaccompanied_data,
                      _missing_unaccompanied, groups=(_SUMMARY,)),
    SectionDescriptor("safety_checks", "Safety Checks", _safety_checks_data,
                      groups=(_SUMMARY,)),
    SectionDescriptor("spiritual_emotional", "Spiritual & Emotional", _spiritual_data,
                      groups=(_SUMMARY,)),
    SectionDescriptor("physical_activity", "Physical Activity", _physical_activity_data,
                      groups=(_AFTERNOON,)),
    SectionDescriptor("special_concerns", "Special Concerns", _special_concerns_data,
                      groups=(_SUMMARY,)),
    SectionDescriptor("notes", "Notes & Submit", _notes_data,
                      groups=(_SUMMARY,)),
])
