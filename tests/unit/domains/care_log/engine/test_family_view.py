"""Tests for the family-facing projection of a care log."""

from __future__ import annotations

from anchor.domains.care_log.engine.editor import build_family_view

_SHARED = {"submittedAt": "2026-10-19T09:00:00Z", "submittedBy": "caregiver-1"}


def _document(**overrides):
    document = {
        "id": "log-1",
        "careRecipientId": "recipient-1",
        "logDate": "2026-10-19",
        "status": "draft",
        "wakeTime": "07:00",
        "mood": "calm",
        "bloodPressure": "128/78",
        "nightSleep": {"bedtime": "21:30", "quality": "deep"},
        "caregiverNotes": {"whatWentWell": "Good appetite"},
        "meals": {
            "breakfast": {"time": "08:00", "appetite": 4, "amountEaten": 80},
            "dinner": {"time": "18:30", "appetite": 3, "amountEaten": 60},
        },
        "medications": [
            {"name": "Glucophage 500mg", "given": True, "time": "07:30", "timeSlot": "before_breakfast"},
            {"name": "Ozempic 0.5mg", "given": True, "time": "14:00", "timeSlot": "afternoon"},
            {"name": "Paracetamol 500mg", "given": True, "time": "11:00"},
        ],
        "completedSections": {},
    }
    document.update(overrides)
    return document


class TestFamilyView:
    def test_none_document(self):
        assert build_family_view(None) is None

    def test_unshared_draft_is_hidden(self):
        assert build_family_view(_document()) is None

    def test_invalidated_log_is_hidden(self):
        document = _document(status="invalidated", completedSections={"morning": _SHARED})
        assert build_family_view(document) is None

    def test_submitted_log_is_visible_in_full(self):
        view = build_family_view(_document(status="submitted"))
        assert view["caregiverNotes"] == {"whatWentWell": "Good appetite"}
        assert view["visibleSections"] == ["morning", "afternoon", "evening", "dailySummary"]

    def test_shared_morning_only(self):
        view = build_family_view(_document(completedSections={"morning": _SHARED}))
        assert view["visibleSections"] == ["morning"]
        assert view["wakeTime"] == "07:00"
        assert view["bloodPressure"] == "128/78"
        assert view["meals"] == {"breakfast": {"time": "08:00", "appetite": 4, "amountEaten": 80}}
        assert [m["name"] for m in view["medications"]] == ["Glucophage 500mg"]
        assert "nightSleep" not in view
        assert "caregiverNotes" not in view

    def test_daily_summary_shows_ad_hoc_medications(self):
        view = build_family_view(_document(completedSections={"dailySummary": _SHARED}))
        assert [m["name"] for m in view["medications"]] == ["Paracetamol 500mg"]
        assert view["caregiverNotes"] == {"whatWentWell": "Good appetite"}
        assert "wakeTime" not in view
        assert "meals" not in view

    def test_groups_combine(self):
        view = build_family_view(
            _document(completedSections={"morning": _SHARED, "evening": _SHARED})
        )
        assert view["visibleSections"] == ["morning", "evening"]
        assert set(view["meals"]) == {"breakfast", "dinner"}
        assert view["nightSleep"]["quality"] == "deep"
        assert view["completedSections"] == {"morning": _SHARED, "evening": _SHARED}
