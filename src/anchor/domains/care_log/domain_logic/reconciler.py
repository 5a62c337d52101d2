"""Draft reconciler — translates between the server document and local state.

The server stores a nested camelCase document; locally the draft is a
``CareLogDraft`` of snake_case dataclasses. Each nested group has one
``_load_*`` / ``_dump_*`` pair below.

Loading only touches keys that are present in the payload, so the same code
serves both a full hydrate and a partial update merged onto an existing draft.
A nested group in the payload replaces the local group, except the keyed
maps (meals, medications, safety checks, emergency prep, movement
difficulties), which merge entry by entry.
Dumping omits empty optional fields entirely; nothing is sent as null. A
field the server already holds is cleared by sending its empty value (``""``,
``[]``, ``{}`` or ``false``), since updates replace top-level keys only.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Iterable

from anchor.domains.care_log.domain_logic.medication_template import MedicationTemplate
from anchor.domains.care_log.errors import CareLogError, ErrorKind
from anchor.domains.care_log.models import (
    AfternoonRest,
    BowelMovements,
    CareLogDraft,
    CompletedSection,
    DraftStatus,
    ExerciseEntry,
    ExerciseSession,
    FluidEntry,
    MealEntry,
    Meals,
    MedicationEntry,
    MovementDifficulty,
    NightSleep,
    SafetyCheck,
    Toileting,
    UnaccompaniedPeriod,
    Urination,
    parse_clock,
)

logger = logging.getLogger(__name__)

# Exercise keys (local) <-> display labels (wire)
EXERCISE_LABELS: dict[str, str] = {
    "eyeExercises": "Eye Exercises",
    "armShoulderStrengthening": "Arm Shoulder Strengthening",
    "legStrengthening": "Leg Strengthening",
    "balanceTraining": "Balance Training",
    "stretching": "Stretching",
    "armPedalling": "Arm Pedalling",
    "legPedalling": "Leg Pedalling",
    "physiotherapistExercises": "Physiotherapist Exercises",
}
EXERCISE_KEYS: dict[str, str] = {label: key for key, label in EXERCISE_LABELS.items()}


class ReconcileError(CareLogError):
    """Raised when a payload cannot be mapped onto a draft."""

    kind = ErrorKind.PARSE
    blocking = True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop None, empty strings and empty containers. ``False`` and ``0`` survive."""
    return {
        k: v for k, v in data.items()
        if v is not None and v != "" and not (isinstance(v, (list, dict)) and not v)
    }


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def _number(raw: str, cast: type) -> int | float | None:
    """Parse a typed vitals string for the wire; None when it is not a finite number."""
    if not raw or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if cast is int else value


def _vital_text(value: Any) -> str:
    return "" if value is None else str(value)


def _section(payload: dict[str, Any], key: str) -> dict[str, Any] | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ReconcileError(f"Expected an object for {key!r}, got {type(value).__name__}")
    return value


def _nested(data: dict[str, Any], key: str) -> dict[str, Any]:
    """An object nested inside a group; missing or null reads as empty."""
    return _section(data, key) or {}


# ---------------------------------------------------------------------------
# Medications (merged by name)
# ---------------------------------------------------------------------------

def _load_medication(entry: MedicationEntry, data: dict[str, Any]) -> MedicationEntry:
    updates: dict[str, Any] = {}
    if "given" in data:
        updates["given"] = bool(data["given"])
    if "time" in data:
        updates["time"] = data["time"] or None
    if "timeSlot" in data:
        updates["time_slot"] = _text(data["timeSlot"])
    if "purpose" in data:
        updates["purpose"] = _text(data["purpose"])
    if "notes" in data:
        updates["notes"] = _text(data["notes"])
    return replace(entry, **updates)


def _load_medications(draft: CareLogDraft, items: Any) -> None:
    if not isinstance(items, list):
        return
    merged = list(draft.medications)
    position = {med.name: idx for idx, med in enumerate(merged)}
    for data in items:
        if not isinstance(data, dict) or not data.get("name"):
            logger.debug("Skipping medication without a name: %r", data)
            continue
        name = str(data["name"])
        if name in position:
            idx = position[name]
            merged[idx] = _load_medication(merged[idx], data)
        else:
            position[name] = len(merged)
            merged.append(_load_medication(MedicationEntry(name=name), data))
    draft.medications = merged


def _dump_medications(medications: list[MedicationEntry], *, force: bool = False) -> list[dict[str, Any]]:
    # Once anything is recorded the whole list is sent; un-given entries carry given: false
    if not force and not any(med.given or med.time or med.notes for med in medications):
        return []
    return [
        _compact({
            "name": med.name,
            "given": med.given,
            "time": med.time,
            "timeSlot": med.time_slot,
            "purpose": med.purpose,
            "notes": med.notes,
        })
        for med in medications
    ]


# ---------------------------------------------------------------------------
# Meals
# ---------------------------------------------------------------------------

_MEAL_KEYS = (("breakfast", "breakfast"), ("lunch", "lunch"), ("tea_break", "teaBreak"), ("dinner", "dinner"))


def _load_meal(data: dict[str, Any]) -> MealEntry:
    return MealEntry(
        time=_text(data.get("time")),
        appetite=_int(data.get("appetite")),
        amount_eaten=_int(data.get("amountEaten")),
        assistance=data.get("assistance") or "none",
        swallowing_issues=_strings(data.get("swallowingIssues")),
    )


def _dump_meal(meal: MealEntry) -> dict[str, Any] | None:
    if not meal.time:
        return None
    return _compact({
        "time": meal.time,
        "appetite": meal.appetite or None,
        "amountEaten": meal.amount_eaten or None,
        "assistance": meal.assistance if meal.assistance != "none" else None,
        "swallowingIssues": list(meal.swallowing_issues),
    })


def _load_meals(meals: Meals, data: dict[str, Any]) -> Meals:
    updates: dict[str, Any] = {}
    for attr, wire in _MEAL_KEYS:
        if wire in data:
            updates[attr] = _load_meal(_nested(data, wire))
    if "foodPreferences" in data:
        updates["food_preferences"] = _text(data["foodPreferences"])
    if "foodRefusals" in data:
        updates["food_refusals"] = _text(data["foodRefusals"])
    return replace(meals, **updates)


def _dump_meals(meals: Meals) -> dict[str, Any] | None:
    out = _compact({
        **{wire: _dump_meal(getattr(meals, attr)) for attr, wire in _MEAL_KEYS},
        "foodPreferences": meals.food_preferences,
        "foodRefusals": meals.food_refusals,
    })
    return out or None


# ---------------------------------------------------------------------------
# Fluids and sleep
# ---------------------------------------------------------------------------

def _load_fluids(items: Any) -> list[FluidEntry]:
    if not isinstance(items, list):
        return []
    return [
        FluidEntry(
            name=_text(item.get("name")),
            time=_text(item.get("time")),
            amount_ml=_int(item.get("amountMl")),
            swallowing_issues=_strings(item.get("swallowingIssues")),
        )
        for item in items
        if isinstance(item, dict)
    ]


def _dump_fluids(fluids: list[FluidEntry]) -> list[dict[str, Any]]:
    return [
        _compact({
            "name": f.name,
            "time": f.time,
            "amountMl": f.amount_ml,
            "swallowingIssues": list(f.swallowing_issues),
        })
        for f in fluids
    ]


def _load_afternoon_rest(data: dict[str, Any] | None) -> AfternoonRest | None:
    if not data:
        return None
    return AfternoonRest(
        start_time=_text(data.get("startTime")),
        end_time=_text(data.get("endTime")),
        quality=_text(data.get("quality")),
        notes=_text(data.get("notes")),
    )


def _dump_afternoon_rest(rest: AfternoonRest | None) -> dict[str, Any] | None:
    # Only a complete, correctly ordered rest period is sent.
    if rest is None:
        return None
    start, end = parse_clock(rest.start_time), parse_clock(rest.end_time)
    if start is None or end is None or end <= start:
        return None
    return _compact({
        "startTime": rest.start_time,
        "endTime": rest.end_time,
        "quality": rest.quality,
        "notes": rest.notes,
    })


def _load_night_sleep(data: dict[str, Any] | None) -> NightSleep | None:
    if not data:
        return None
    return NightSleep(
        bedtime=_text(data.get("bedtime")),
        quality=_text(data.get("quality")),
        wakings=_int(data.get("wakings")),
        waking_reasons=_strings(data.get("wakingReasons")),
        behaviors=_strings(data.get("behaviors")),
        notes=_text(data.get("notes")),
    )


def _dump_night_sleep(sleep: NightSleep | None) -> dict[str, Any] | None:
    if sleep is None:
        return None
    return _compact({
        "bedtime": sleep.bedtime,
        "quality": sleep.quality,
        "wakings": sleep.wakings,
        "wakingReasons": list(sleep.waking_reasons),
        "behaviors": list(sleep.behaviors),
        "notes": sleep.notes,
    })


# ---------------------------------------------------------------------------
# Toileting (shared + bowel + urination)
# ---------------------------------------------------------------------------

def _load_toileting(data: dict[str, Any]) -> Toileting:
    bowel = _nested(data, "bowelMovements")
    urine = _nested(data, "urination")
    return Toileting(
        diaper_changes=_optional_int(data.get("diaperChanges")),
        diaper_status=data.get("diaperStatus") or None,
        accidents=data.get("accidents") or "none",
        assistance=data.get("assistance") or "none",
        pain=data.get("pain") or "no_pain",
        bowel=BowelMovements(
            frequency=_int(bowel.get("frequency")),
            times_used_toilet=_optional_int(bowel.get("timesUsedToilet")),
            consistency=bowel.get("consistency") or None,
            concerns=_text(bowel.get("concerns")),
        ),
        urination=Urination(
            frequency=_int(urine.get("frequency")),
            times_used_toilet=_optional_int(urine.get("timesUsedToilet")),
            urine_color=urine.get("urineColor") or None,
            concerns=_text(urine.get("concerns")),
        ),
    )


def _dump_toileting(t: Toileting) -> dict[str, Any] | None:
    if not (t.bowel.frequency > 0 or t.urination.frequency > 0 or t.diaper_changes):
        return None
    bowel = None
    if t.bowel.frequency > 0:
        bowel = _compact({
            "frequency": t.bowel.frequency,
            "timesUsedToilet": t.bowel.times_used_toilet,
            "consistency": t.bowel.consistency,
            "concerns": t.bowel.concerns,
        })
    urination = None
    if t.urination.frequency > 0:
        urination = _compact({
            "frequency": t.urination.frequency,
            "timesUsedToilet": t.urination.times_used_toilet,
            "urineColor": t.urination.urine_color,
            "concerns": t.urination.concerns,
        })
    return _compact({
        "diaperChanges": t.diaper_changes,
        "diaperStatus": t.diaper_status,
        "accidents": t.accidents if t.accidents != "none" else None,
        "assistance": t.assistance if t.assistance != "none" else None,
        "pain": t.pain if t.pain != "no_pain" else None,
        "bowelMovements": bowel,
        "urination": urination,
    })


# ---------------------------------------------------------------------------
# Unaccompanied time
# ---------------------------------------------------------------------------

def _load_unaccompanied(items: Any) -> list[UnaccompaniedPeriod]:
    if not isinstance(items, list):
        return []
    return [
        UnaccompaniedPeriod(
            start_time=_text(item.get("startTime")),
            end_time=_text(item.get("endTime")),
            reason=_text(item.get("reason")),
            replacement_person=_text(item.get("replacementPerson")),
        )
        for item in items
        if isinstance(item, dict)
    ]


def _dump_unaccompanied(periods: list[UnaccompaniedPeriod]) -> list[dict[str, Any]]:
    return [
        _compact({
            "startTime": p.start_time,
            "endTime": p.end_time,
            "reason": p.reason,
            "replacementPerson": p.replacement_person,
            "durationMinutes": p.duration_minutes,
        })
        for p in periods
        if p.is_valid
    ]


# ---------------------------------------------------------------------------
# Safety, spiritual, exercise, concerns, notes
# ---------------------------------------------------------------------------

def _load_safety_checks(current: dict[str, SafetyCheck], data: dict[str, Any]) -> dict[str, SafetyCheck]:
    merged = dict(current)
    for key, value in data.items():
        if isinstance(value, dict):
            merged[key] = SafetyCheck(checked=bool(value.get("checked")), action=_text(value.get("action")))
    return merged


def _dump_safety_checks(checks: dict[str, SafetyCheck]) -> dict[str, Any] | None:
    if not any(check.checked for check in checks.values()):
        return None
    return {key: _compact({"checked": c.checked, "action": c.action}) for key, c in checks.items()}


def _load_spiritual(draft: CareLogDraft, data: dict[str, Any]) -> None:
    s = draft.spiritual
    prayer = _nested(data, "prayerTime")
    s.prayer_start = _text(prayer.get("start"))
    s.prayer_end = _text(prayer.get("end"))
    s.prayer_expression = _text(data.get("prayerExpression"))
    s.overall_mood = _optional_int(data.get("overallMood"))
    s.communication_scale = _optional_int(data.get("communicationScale"))
    s.social_interaction = _text(data.get("socialInteraction"))


def _dump_spiritual(draft: CareLogDraft) -> dict[str, Any] | None:
    s = draft.spiritual
    prayer = None
    if s.prayer_start and s.prayer_end:
        prayer = {"start": s.prayer_start, "end": s.prayer_end}
    out = _compact({
        "prayerTime": prayer,
        "prayerExpression": s.prayer_expression,
        "overallMood": s.overall_mood,
        "communicationScale": s.communication_scale,
        "socialInteraction": s.social_interaction,
    })
    return out or None


def _load_exercise_session(data: dict[str, Any]) -> ExerciseSession:
    items = data.get("exercises") or []
    if not isinstance(items, list):
        raise ReconcileError(f"Expected a list for 'exercises', got {type(items).__name__}")
    exercises: dict[str, ExerciseEntry] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        key = EXERCISE_KEYS.get(_text(item.get("type")))
        if key is None:
            logger.debug("Ignoring unknown exercise type %r", item.get("type"))
            continue
        exercises[key] = ExerciseEntry(
            done=bool(item.get("done")),
            duration=_int(item.get("duration")),
            participation=_int(item.get("participation")),
        )
    return ExerciseSession(
        start_time=_text(data.get("startTime")),
        end_time=_text(data.get("endTime")),
        exercises=exercises,
        notes=_text(data.get("notes")),
    )


def _dump_exercise_session(session: ExerciseSession) -> dict[str, Any] | None:
    if not session.has_data():
        return None
    exercises = [
        {
            "type": EXERCISE_LABELS[key],
            "done": entry.done,
            "duration": entry.duration,
            "participation": entry.participation,
        }
        for key, entry in session.exercises.items()
        if entry.done and key in EXERCISE_LABELS
    ]
    return _compact({
        "startTime": session.start_time,
        "endTime": session.end_time,
        "exercises": exercises,
        "notes": session.notes,
    })


def _load_movement(current: dict[str, MovementDifficulty], data: dict[str, Any]) -> dict[str, MovementDifficulty]:
    merged = dict(current)
    for key, value in data.items():
        if isinstance(value, dict):
            merged[key] = MovementDifficulty(level=_text(value.get("level")), notes=_text(value.get("notes")))
    return merged


def _dump_movement(difficulties: dict[str, MovementDifficulty]) -> dict[str, Any] | None:
    out = {
        key: _compact({"level": d.level, "notes": d.notes})
        for key, d in difficulties.items()
        if d.level or d.notes
    }
    return out or None


def _load_special_concerns(draft: CareLogDraft, data: dict[str, Any]) -> None:
    sc = draft.special_concerns
    # Older documents used the short keys
    sc.priority_level = _text(data.get("priorityLevel") or data.get("priority"))
    sc.behavioural_changes = _strings(data.get("behaviouralChanges"))
    sc.physical_changes = _text(data.get("physicalChanges"))
    sc.incident_description = _text(data.get("incidentDescription") or data.get("incident"))
    sc.actions_taken = _text(data.get("actionsTaken"))
    sc.notes = _text(data.get("notes"))


def _dump_special_concerns(draft: CareLogDraft) -> dict[str, Any] | None:
    sc = draft.special_concerns
    out = _compact({
        "priorityLevel": sc.priority_level,
        "behaviouralChanges": list(sc.behavioural_changes),
        "physicalChanges": sc.physical_changes,
        "incidentDescription": sc.incident_description,
        "actionsTaken": sc.actions_taken,
        "notes": sc.notes,
    })
    return out or None


_CAREGIVER_NOTE_KEYS = (
    ("what_went_well", "whatWentWell"),
    ("challenges_faced", "challengesFaced"),
    ("recommendations_for_tomorrow", "recommendationsForTomorrow"),
    ("important_info_for_family", "importantInfoForFamily"),
    ("caregiver_signature", "caregiverSignature"),
)


def _load_caregiver_notes(draft: CareLogDraft, data: dict[str, Any]) -> None:
    for attr, wire in _CAREGIVER_NOTE_KEYS:
        setattr(draft.caregiver_notes, attr, _text(data.get(wire)))


def _dump_caregiver_notes(draft: CareLogDraft) -> dict[str, Any] | None:
    out = _compact({wire: getattr(draft.caregiver_notes, attr) for attr, wire in _CAREGIVER_NOTE_KEYS})
    return out or None


def load_completed_sections(data: Any) -> dict[str, CompletedSection]:
    """Parse a ``completedSections`` map as returned by the server."""
    if not isinstance(data, dict):
        return {}
    return {
        str(group): CompletedSection(
            submitted_at=_text(entry.get("submittedAt")),
            submitted_by=_text(entry.get("submittedBy")),
        )
        for group, entry in data.items()
        if isinstance(entry, dict)
    }


def dump_completed_sections(sections: dict[str, CompletedSection]) -> dict[str, dict[str, str]]:
    return {
        group: {"submittedAt": entry.submitted_at, "submittedBy": entry.submitted_by}
        for group, entry in sections.items()
    }


# ---------------------------------------------------------------------------
# Top-level scalars
# ---------------------------------------------------------------------------

_ROUTINE_KEYS = (("wake_time", "wakeTime"), ("mood", "mood"), ("shower_time", "showerTime"))
_FALL_RISK_CHOICES = (
    ("near_falls", "nearFalls"),
    ("actual_falls", "actualFalls"),
    ("freezing_episodes", "freezingEpisodes"),
)
_VITAL_KEYS = (
    ("blood_pressure", "bloodPressure"),
    ("pulse_rate", "pulseRate"),
    ("oxygen_level", "oxygenLevel"),
    ("blood_sugar", "bloodSugar"),
    ("vitals_time", "vitalsTime"),
)

# Keys that are sent as [] or {} when cleared; other cleared keys go out as ""
_LIST_KEYS = frozenset({"medications", "fluids", "walkingPattern", "unaccompaniedTime"})
_GROUP_KEYS = frozenset({
    "meals",
    "afternoonRest",
    "nightSleep",
    "toileting",
    "safetyChecks",
    "emergencyPrep",
    "spiritualEmotional",
    "morningExerciseSession",
    "afternoonExerciseSession",
    "movementDifficulties",
    "specialConcerns",
    "caregiverNotes",
})
_IDENTITY_KEYS = frozenset({"careRecipientId", "logDate"})


def _cleared_value(key: str) -> Any:
    if key == "hairWash":
        return False
    if key in _LIST_KEYS:
        return []
    if key in _GROUP_KEYS:
        return {}
    return ""


def apply_payload(draft: CareLogDraft, payload: dict[str, Any]) -> CareLogDraft:
    """Merge the keys present in ``payload`` onto ``draft`` in place.

    Args:
        draft: Local draft to update.
        payload: Full or partial server-shaped document.

    Returns:
        The same ``draft`` for chaining.

    Raises:
        ReconcileError: If a nested group has the wrong shape.
    """
    if "id" in payload and payload["id"]:
        draft.id = str(payload["id"])
    if "status" in payload and payload["status"]:
        draft.status = DraftStatus(payload["status"])
    if "careRecipientId" in payload and payload["careRecipientId"]:
        draft.care_recipient_id = str(payload["careRecipientId"])
    if "logDate" in payload and payload["logDate"]:
        draft.log_date = str(payload["logDate"])[:10]

    # Morning routine
    for attr, wire in _ROUTINE_KEYS:
        if wire in payload:
            setattr(draft.morning_routine, attr, _text(payload[wire]))
    if "hairWash" in payload:
        draft.morning_routine.hair_wash = bool(payload["hairWash"])

    if "medications" in payload:
        _load_medications(draft, payload["medications"])

    meals = _section(payload, "meals")
    if meals is not None:
        draft.meals = _load_meals(draft.meals, meals)
    if "fluids" in payload:
        draft.fluids = _load_fluids(payload["fluids"])

    for attr, wire in _VITAL_KEYS:
        if wire in payload:
            setattr(draft.vitals, attr, _vital_text(payload[wire]))

    toileting = _section(payload, "toileting")
    if toileting is not None:
        draft.toileting = _load_toileting(toileting)

    if "afternoonRest" in payload:
        draft.afternoon_rest = _load_afternoon_rest(_section(payload, "afternoonRest"))
    if "nightSleep" in payload:
        draft.night_sleep = _load_night_sleep(_section(payload, "nightSleep"))

    # Fall risk (flat on the document)
    if "balanceIssues" in payload:
        draft.fall_risk.balance_issues = _optional_int(payload["balanceIssues"])
    for attr, wire in _FALL_RISK_CHOICES:
        if wire in payload:
            setattr(draft.fall_risk, attr, payload[wire] or "none")
    if "walkingPattern" in payload:
        draft.fall_risk.walking_pattern = _strings(payload["walkingPattern"])

    if "unaccompaniedTime" in payload:
        draft.unaccompanied_periods = _load_unaccompanied(payload["unaccompaniedTime"])
    if "unaccompaniedIncidents" in payload:
        draft.unaccompanied_incidents = _text(payload["unaccompaniedIncidents"])

    safety = _section(payload, "safetyChecks")
    if safety is not None:
        draft.safety_checks = _load_safety_checks(draft.safety_checks, safety)
    prep = _section(payload, "emergencyPrep")
    if prep is not None:
        draft.emergency_prep = {**draft.emergency_prep, **{k: bool(v) for k, v in prep.items()}}

    spiritual = _section(payload, "spiritualEmotional")
    if spiritual is not None:
        _load_spiritual(draft, spiritual)

    morning = _section(payload, "morningExerciseSession")
    if morning is not None:
        draft.morning_exercise = _load_exercise_session(morning)
    afternoon = _section(payload, "afternoonExerciseSession")
    if afternoon is not None:
        draft.afternoon_exercise = _load_exercise_session(afternoon)
    movement = _section(payload, "movementDifficulties")
    if movement is not None:
        draft.movement_difficulties = _load_movement(draft.movement_difficulties, movement)

    concerns = _section(payload, "specialConcerns")
    if concerns is not None:
        _load_special_concerns(draft, concerns)
    notes = _section(payload, "caregiverNotes")
    if notes is not None:
        _load_caregiver_notes(draft, notes)

    if "emergencyFlag" in payload:
        draft.emergency_flag = bool(payload["emergencyFlag"])
    if "emergencyNote" in payload:
        draft.emergency_note = _text(payload["emergencyNote"])
    if "notes" in payload:
        draft.notes = _text(payload["notes"])

    if "completedSections" in payload:
        draft.completed_sections = load_completed_sections(payload["completedSections"])

    return draft


def hydrate_draft(
    payload: dict[str, Any] | None,
    *,
    template: MedicationTemplate,
    care_recipient_id: str | None,
    log_date: str,
) -> CareLogDraft:
    """Build a local draft from a server document.

    Template medications come first in template order; persisted entries
    override them by name and entries unknown to the template follow in
    stored order.

    Args:
        payload: The server document, or None when no draft exists yet.
        template: Scheduled medications to pre-fill.
        care_recipient_id: Recipient the draft belongs to.
        log_date: ISO date of the log.

    Returns:
        A hydrated ``CareLogDraft``; empty with no id when ``payload`` is None.
    """
    draft = CareLogDraft(
        care_recipient_id=care_recipient_id,
        log_date=log_date,
        medications=template.entries(),
    )
    if payload is None:
        return draft
    return apply_payload(draft, payload)


def dump_draft(draft: CareLogDraft, *, clear: Iterable[str] = ()) -> dict[str, Any]:
    """Produce the outgoing create/update body for ``draft``.

    Server-owned fields (id, status, completedSections) are never sent.

    Args:
        draft: The local draft.
        clear: Keys the server already holds. Any of them that is now empty
            locally is sent as its empty value so the update overwrites it.

    Returns:
        The camelCase body, with no null values.
    """
    held = set(clear)
    routine = draft.morning_routine
    vitals = draft.vitals
    fall = draft.fall_risk
    body = {
        "careRecipientId": draft.care_recipient_id,
        "logDate": draft.log_date,
        "wakeTime": routine.wake_time,
        "mood": routine.mood,
        "showerTime": routine.shower_time,
        "hairWash": routine.hair_wash or None,
        "medications": _dump_medications(draft.medications, force="medications" in held),
        "meals": _dump_meals(draft.meals),
        "fluids": _dump_fluids(draft.fluids),
        "afternoonRest": _dump_afternoon_rest(draft.afternoon_rest),
        "nightSleep": _dump_night_sleep(draft.night_sleep),
        "bloodPressure": vitals.blood_pressure.strip(),
        "pulseRate": _number(vitals.pulse_rate, int),
        "oxygenLevel": _number(vitals.oxygen_level, int),
        "bloodSugar": _number(vitals.blood_sugar, float),
        "vitalsTime": vitals.vitals_time,
        "toileting": _dump_toileting(draft.toileting),
        "balanceIssues": fall.balance_issues,
        "nearFalls": fall.near_falls if fall.near_falls != "none" else None,
        "actualFalls": fall.actual_falls if fall.actual_falls != "none" else None,
        "walkingPattern": list(fall.walking_pattern),
        "freezingEpisodes": fall.freezing_episodes if fall.freezing_episodes != "none" else None,
        "unaccompaniedTime": _dump_unaccompanied(draft.unaccompanied_periods),
        "unaccompaniedIncidents": draft.unaccompanied_incidents,
        "safetyChecks": _dump_safety_checks(draft.safety_checks),
        "emergencyPrep": dict(draft.emergency_prep) if any(draft.emergency_prep.values()) else None,
        "spiritualEmotional": _dump_spiritual(draft),
        "morningExerciseSession": _dump_exercise_session(draft.morning_exercise),
        "afternoonExerciseSession": _dump_exercise_session(draft.afternoon_exercise),
        "movementDifficulties": _dump_movement(draft.movement_difficulties),
        "specialConcerns": _dump_special_concerns(draft),
        "caregiverNotes": _dump_caregiver_notes(draft),
        "emergencyNote": draft.emergency_note,
        "notes": draft.notes,
    }
    out = _compact(body)
    for key in body:
        if key in held and key not in out and key not in _IDENTITY_KEYS:
            out[key] = _cleared_value(key)
    out["emergencyFlag"] = draft.emergency_flag
    return out
