"""Deterministic vitals risk classification.

Raw readings (as typed by the caregiver) plus optional demographics map to
an ordered list of severity-tagged alerts:

    blood pressure -> pulse -> oxygen -> blood sugar

Each metric yields at most one alert; branches are exclusive and the first
match wins. Readings that do not parse as positive numbers are skipped
without raising.
"""

from __future__ import annotations

import math
from functools import lru_cache

from anchor.domains.care_log.errors import VitalsParseError
from anchor.domains.care_log.models import AlertLevel, VitalAlert, VitalsReading

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

BP_CRISIS_SYSTOLIC = 180
BP_CRISIS_DIASTOLIC = 120
BP_LOW_SYSTOLIC = 90
BP_LOW_DIASTOLIC = 60
BP_ELEVATED_MARGIN = 10

BASE_BP_TARGET = (130, 80)
SENIOR_BP_TARGET = (135, 85)  # 65-79
ELDERLY_BP_TARGET = (140, 90)  # 80+
PREMENOPAUSAL_SYSTOLIC_OFFSET = 5  # female, under 55

PULSE_CRITICAL_HIGH = 120
PULSE_CRITICAL_LOW = 40
PULSE_WARNING_HIGH = 100
PULSE_WARNING_LOW = 50

OXYGEN_CRITICAL = 90
OXYGEN_WARNING = 95

SUGAR_CRITICAL_HIGH = 15.0
SUGAR_CRITICAL_LOW = 3.9
SUGAR_WARNING_HIGH = 11.1
SUGAR_WARNING_LOW = 4.4


def _parse_positive(raw: str | float | int | None) -> float:
    """Read a positive finite number or raise VitalsParseError."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise VitalsParseError("empty reading")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise VitalsParseError(f"not a number: {raw!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise VitalsParseError(f"not a positive reading: {raw!r}")
    return value


def _fmt(value: float) -> str:
    return f"{value:g}"


def blood_pressure_target(age: int | None, gender: str | None) -> tuple[int, int]:
    """Age/gender-adjusted (systolic, diastolic) target.

    Under 65 (or unknown age) uses 130/80, 65-79 uses 135/85 and 80+ uses
    140/90. Women under 55 get a systolic target 5 mmHg lower.
    """
    systolic, diastolic = BASE_BP_TARGET
    if age is not None:
        if age >= 80:
            systolic, diastolic = ELDERLY_BP_TARGET
        elif age >= 65:
            systolic, diastolic = SENIOR_BP_TARGET

    if gender == "female" and age is not None and age < 55:
        systolic -= PREMENOPAUSAL_SYSTOLIC_OFFSET

    return systolic, diastolic


# ---------------------------------------------------------------------------
# Per-metric classifiers
# ---------------------------------------------------------------------------

def classify_blood_pressure(
    raw: str, age: int | None = None, gender: str | None = None
) -> VitalAlert | None:
    parts = raw.split("/") if raw else []
    if len(parts) != 2:
        return None
    try:
        systolic = _parse_positive(parts[0])
        diastolic = _parse_positive(parts[1])
    except VitalsParseError:
        return None

    reading = raw.strip()
    if systolic >= BP_CRISIS_SYSTOLIC or diastolic >= BP_CRISIS_DIASTOLIC:
        return VitalAlert(
            AlertLevel.CRITICAL,
            f"Blood pressure {reading} is dangerously high (hypertensive crisis)",
            "blood_pressure",
        )
    if systolic < BP_LOW_SYSTOLIC or diastolic < BP_LOW_DIASTOLIC:
        return VitalAlert(
            AlertLevel.CRITICAL,
            f"Blood pressure {reading} is dangerously low (hypotension)",
            "blood_pressure",
        )

    target_sys, target_dia = blood_pressure_target(age, gender)
    note = ""
    if age is not None:
        note = f" (target for {age}yo {gender or 'patient'}: <{target_sys}/{target_dia})"

    if (
        systolic >= target_sys + BP_ELEVATED_MARGIN
        or diastolic >= target_dia + BP_ELEVATED_MARGIN
    ):
        return VitalAlert(
            AlertLevel.WARNING, f"Blood pressure {reading} is elevated{note}", "blood_pressure"
        )
    if systolic >= target_sys or diastolic >= target_dia:
        return VitalAlert(
            AlertLevel.WARNING,
            f"Blood pressure {reading} is slightly elevated{note}",
            "blood_pressure",
        )
    return None


def classify_pulse(raw: str) -> VitalAlert | None:
    try:
        pulse = _parse_positive(raw)
    except VitalsParseError:
        return None

    bpm = _fmt(pulse)
    if pulse > PULSE_CRITICAL_HIGH:
        return VitalAlert(
            AlertLevel.CRITICAL,
            f"Pulse {bpm} bpm is dangerously high (severe tachycardia)",
            "pulse_rate",
        )
    if pulse < PULSE_CRITICAL_LOW:
        return VitalAlert(
            AlertLevel.CRITICAL,
            f"Pulse {bpm} bpm is dangerously low (severe bradycardia)",
            "pulse_rate",
        )
    if pulse > PULSE_WARNING_HIGH:
        return VitalAlert(
            AlertLevel.WARNING, f"Pulse {bpm} bpm is elevated (tachycardia)", "pulse_rate"
        )
    if pulse < PULSE_WARNING_LOW:
        return VitalAlert(AlertLevel.WARNING, f"Pulse {bpm} bpm is low (bradycardia)", "pulse_rate")
    return None


def classify_oxygen(raw: str) -> VitalAlert | None:
    try:
        oxygen = _parse_positive(raw)
    except VitalsParseError:
        return None

    if oxygen < OXYGEN_CRITICAL:
        return VitalAlert(
            AlertLevel.CRITICAL,
            f"Oxygen level {_fmt(oxygen)}% is dangerously low (severe hypoxemia), "
            "seek immediate medical attention",
            "oxygen_level",
        )
    if oxygen < OXYGEN_WARNING:
        return VitalAlert(
            AlertLevel.WARNING,
            f"Oxygen level {_fmt(oxygen)}% is below normal (mild hypoxemia)",
            "oxygen_level",
        )
    return None


def classify_blood_sugar(raw: str) -> VitalAlert | None:
    try:
        sugar = _parse_positive(raw)
    except VitalsParseError:
        return None

    mmol = _fmt(sugar)
    if sugar > SUGAR_CRITICAL_HIGH:
        return VitalAlert(
            AlertLevel.CRITICAL,
            f"Blood sugar {mmol} mmol/L is dangerously high (severe hyperglycemia)",
            "blood_sugar",
        )
    if sugar < SUGAR_CRITICAL_LOW:
        return VitalAlert(
            AlertLevel.CRITICAL,
            f"Blood sugar {mmol} mmol/L is dangerously low (hypoglycemia)",
            "blood_sugar",
        )
    if sugar > SUGAR_WARNING_HIGH:
        return VitalAlert(
            AlertLevel.WARNING,
            f"Blood sugar {mmol} mmol/L is elevated (hyperglycemia)",
            "blood_sugar",
        )
    if sugar < SUGAR_WARNING_LOW:
        return VitalAlert(
            AlertLevel.WARNING, f"Blood sugar {mmol} mmol/L is slightly low (caution)", "blood_sugar"
        )
    return None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

@lru_cache(maxsize=256)
def _classify(
    blood_pressure: str,
    pulse_rate: str,
    oxygen_level: str,
    blood_sugar: str,
    age: int | None,
    gender: str | None,
) -> tuple[VitalAlert, ...]:
    candidates = (
        classify_blood_pressure(blood_pressure, age, gender),
        classify_pulse(pulse_rate),
        classify_oxygen(oxygen_level),
        classify_blood_sugar(blood_sugar),
    )
    return tuple(alert for alert in candidates if alert is not None)


def classify_vitals(
    reading: VitalsReading,
    *,
    age: int | None = None,
    gender: str | None = None,
) -> list[VitalAlert]:
    """Classify the current vitals reading.

    Args:
        reading: Raw vitals as typed.
        age: Care recipient age in whole years, if known.
        gender: Care recipient gender, if known.

    Returns:
        Alerts in metric order; empty when everything is in range or unparseable.
    """
    return list(
        _classify(
            str(reading.blood_pressure or ""),
            str(reading.pulse_rate or ""),
            str(reading.oxygen_level or ""),
            str(reading.blood_sugar or ""),
            age,
            gender,
        )
    )
