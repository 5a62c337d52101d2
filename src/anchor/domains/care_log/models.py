"""Domain models for the daily care log draft.

Local field names are snake_case. The camelCase wire shape exists only in
the reconciler; nothing else in the engine sees server payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DraftStatus(str, Enum):
    """Lifecycle status of a care log document."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    INVALIDATED = "invalidated"


class SectionGroup(str, Enum):
    """Coarse groups a caregiver can share with family independently."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    DAILY_SUMMARY = "dailySummary"


class AlertLevel(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


# Fixed keys for the checklist-style groups (order is display order)
SAFETY_CHECK_KEYS = [
    "tripHazards",
    "cables",
    "sandals",
    "slipHazards",
    "mobilityAids",
    "emergencyEquipment",
]

EMERGENCY_PREP_KEYS = [
    "icePack",
    "wheelchair",
    "commode",
    "walkingStick",
    "walker",
    "bruiseOintment",
    "firstAidKit",
]

MOVEMENT_DIFFICULTY_KEYS = [
    "gettingOutOfBed",
    "gettingIntoBed",
    "sittingInChair",
    "gettingUpFromChair",
    "gettingInCar",
    "gettingOutOfCar",
]


def parse_clock(value: str | None) -> int | None:
    """Convert ``HH:MM`` to minutes after midnight, or None if unparseable."""
    if not value:
        return None
    hours, sep, minutes = value.strip().partition(":")
    if not sep:
        return None
    try:
        h, m = int(hours), int(minutes)
    except ValueError:
        return None
    if not (0 <= h < 24 and 0 <= m < 60):
        return None
    return h * 60 + m


# ---------------------------------------------------------------------------
# Section field groups
# ---------------------------------------------------------------------------

@dataclass
class MorningRoutine:
    wake_time: str = ""
    mood: str = ""  # alert | confused | sleepy | agitated | calm
    shower_time: str = ""
    hair_wash: bool = False


@dataclass
class MedicationEntry:
    """A scheduled or ad hoc medication. ``name`` is the identity key."""

    name: str
    given: bool = False
    time: str | None = None
    time_slot: str = ""  # before_breakfast | after_breakfast | afternoon | after_dinner | before_bedtime
    purpose: str = ""
    notes: str = ""


@dataclass
class MealEntry:
    time: str = ""
    appetite: int = 0  # 1-5, 0 = not recorded
    amount_eaten: int = 0  # percent, 0 = not recorded
    assistance: str = "none"  # none | some | full
    swallowing_issues: list[str] = field(default_factory=list)

    def has_data(self) -> bool:
        return bool(self.time) or self.appetite > 0 or self.amount_eaten > 0


@dataclass
class Meals:
    breakfast: MealEntry = field(default_factory=MealEntry)
    lunch: MealEntry = field(default_factory=MealEntry)
    tea_break: MealEntry = field(default_factory=MealEntry)
    dinner: MealEntry = field(default_factory=MealEntry)
    food_preferences: str = ""
    food_refusals: str = ""

    def entries(self) -> list[tuple[str, MealEntry]]:
        """Meals in day order, paired with their display label."""
        return [
            ("Breakfast", self.breakfast),
            ("Lunch", self.lunch),
            ("Tea break", self.tea_break),
            ("Dinner", self.dinner),
        ]


@dataclass
class FluidEntry:
    name: str = ""
    time: str = ""
    amount_ml: int = 0
    swallowing_issues: list[str] = field(default_factory=list)


@dataclass
class VitalsReading:
    """Vitals exactly as typed by the caregiver; evaluated transiently."""

    blood_pressure: str = ""  # "SYS/DIA"
    pulse_rate: str = ""
    oxygen_level: str = ""
    blood_sugar: str = ""  # mmol/L
    vitals_time: str = ""

    def has_measurement(self) -> bool:
        return bool(self.blood_pressure or self.pulse_rate or self.oxygen_level or self.blood_sugar)


@dataclass
class BowelMovements:
    frequency: int = 0
    times_used_toilet: int | None = None
    consistency: str | None = None  # normal | hard | soft | loose | diarrhea
    concerns: str = ""


@dataclass
class Urination:
    frequency: int = 0
    times_used_toilet: int | None = None
    urine_color: str | None = None  # light_clear | yellow | dark_yellow | brown | dark
    concerns: str = ""


@dataclass
class Toileting:
    diaper_changes: int | None = None
    diaper_status: str | None = None  # dry | wet | soiled
    accidents: str = "none"  # none | minor | major
    assistance: str = "none"  # none | partial | full
    pain: str = "no_pain"  # no_pain | some_pain | very_painful
    bowel: BowelMovements = field(default_factory=BowelMovements)
    urination: Urination = field(default_factory=Urination)


@dataclass
class AfternoonRest:
    start_time: str = ""
    end_time: str = ""
    quality: str = ""  # deep | light | restless | no_sleep
    notes: str = ""


@dataclass
class NightSleep:
    bedtime: str = ""
    quality: str = ""
    wakings: int = 0
    waking_reasons: list[str] = field(default_factory=list)
    behaviors: list[str] = field(default_factory=list)
    notes: str = ""


@dataclass
class FallRisk:
    balance_issues: int | None = None  # 1-5
    near_falls: str = "none"  # none | once_or_twice | multiple
    actual_falls: str = "none"  # none | minor | major
    walking_pattern: list[str] = field(default_factory=list)
    freezing_episodes: str = "none"  # none | mild | severe


@dataclass
class UnaccompaniedPeriod:
    start_time: str = ""
    end_time: str = ""
    reason: str = ""
    replacement_person: str = ""

    @property
    def duration_minutes(self) -> int | None:
        """End minus start in minutes; negative when the times are reversed."""
        start = parse_clock(self.start_time)
        end = parse_clock(self.end_time)
        if start is None or end is None:
            return None
        return end - start

    @property
    def is_valid(self) -> bool:
        duration = self.duration_minutes
        return duration is not None and duration > 0 and bool(self.reason.strip())


def total_unaccompanied_minutes(periods: list[UnaccompaniedPeriod]) -> int:
    """Sum of durations over valid periods only."""
    return sum(p.duration_minutes or 0 for p in periods if p.is_valid)


@dataclass
class SafetyCheck:
    checked: bool = False
    action: str = ""


@dataclass
class SpiritualEmotional:
    prayer_start: str = ""
    prayer_end: str = ""
    prayer_expression: str = ""
    overall_mood: int | None = None
    communication_scale: int | None = None
    social_interaction: str = ""


@dataclass
class ExerciseEntry:
    done: bool = False
    duration: int = 0
    participation: int = 0


@dataclass
class ExerciseSession:
    start_time: str = ""
    end_time: str = ""
    exercises: dict[str, ExerciseEntry] = field(default_factory=dict)
    notes: str = ""

    def has_data(self) -> bool:
        return bool(
            self.start_time
            or self.end_time
            or self.notes
            or any(e.done for e in self.exercises.values())
        )


@dataclass
class MovementDifficulty:
    level: str = ""
    notes: str = ""


@dataclass
class SpecialConcerns:
    priority_level: str = ""  # emergency | urgent | routine
    behavioural_changes: list[str] = field(default_factory=list)
    physical_changes: str = ""
    incident_description: str = ""
    actions_taken: str = ""
    notes: str = ""


@dataclass
class CaregiverNotes:
    what_went_well: str = ""
    challenges_faced: str = ""
    recommendations_for_tomorrow: str = ""
    important_info_for_family: str = ""
    caregiver_signature: str = ""


@dataclass
class CompletedSection:
    """Audit record of one share-with-family action."""

    submitted_at: str
    submitted_by: str


# ---------------------------------------------------------------------------
# The draft document
# ---------------------------------------------------------------------------

def _default_safety_checks() -> dict[str, SafetyCheck]:
    return {key: SafetyCheck() for key in SAFETY_CHECK_KEYS}


def _default_emergency_prep() -> dict[str, bool]:
    return {key: False for key in EMERGENCY_PREP_KEYS}


def _default_movement_difficulties() -> dict[str, MovementDifficulty]:
    return {key: MovementDifficulty() for key in MOVEMENT_DIFFICULTY_KEYS}


@dataclass
class CareLogDraft:
    """Today's care log for one care recipient.

    ``id`` stays None until the repository assigns one on first create.
    """

    care_recipient_id: str | None
    log_date: str  # YYYY-MM-DD
    id: str | None = None
    status: DraftStatus = DraftStatus.DRAFT

    morning_routine: MorningRoutine = field(default_factory=MorningRoutine)
    medications: list[MedicationEntry] = field(default_factory=list)
    meals: Meals = field(default_factory=Meals)
    fluids: list[FluidEntry] = field(default_factory=list)
    vitals: VitalsReading = field(default_factory=VitalsReading)
    toileting: Toileting = field(default_factory=Toileting)
    afternoon_rest: AfternoonRest | None = None
    night_sleep: NightSleep | None = None
    fall_risk: FallRisk = field(default_factory=FallRisk)
    unaccompanied_periods: list[UnaccompaniedPeriod] = field(default_factory=list)
    unaccompanied_incidents: str = ""
    safety_checks: dict[str, SafetyCheck] = field(default_factory=_default_safety_checks)
    emergency_prep: dict[str, bool] = field(default_factory=_default_emergency_prep)
    spiritual: SpiritualEmotional = field(default_factory=SpiritualEmotional)
    morning_exercise: ExerciseSession = field(default_factory=ExerciseSession)
    afternoon_exercise: ExerciseSession = field(default_factory=ExerciseSession)
    movement_difficulties: dict[str, MovementDifficulty] = field(
        default_factory=_default_movement_difficulties
    )
    special_concerns: SpecialConcerns = field(default_factory=SpecialConcerns)
    caregiver_notes: CaregiverNotes = field(default_factory=CaregiverNotes)
    notes: str = ""
    emergency_flag: bool = False
    emergency_note: str = ""

    completed_sections: dict[str, CompletedSection] = field(default_factory=dict)

    @property
    def is_locked(self) -> bool:
        """Submitted and invalidated documents accept no further writes."""
        return self.status != DraftStatus.DRAFT

    def medication(self, name: str) -> MedicationEntry | None:
        for med in self.medications:
            if med.name == name:
                return med
        return None


@dataclass(frozen=True)
class VitalAlert:
    """A severity-tagged finding for one vital metric."""

    level: AlertLevel
    message: str
    metric: str  # blood_pressure | pulse_rate | oxygen_level | blood_sugar

    def as_dict(self) -> dict[str, str]:
        return {"level": self.level.value, "message": self.message, "metric": self.metric}
