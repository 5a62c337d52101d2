"""Tests for CareLogStore — encrypted CRUD and lifecycle rules on in-memory SQLite."""

from __future__ import annotations

import pytest

from anchor.core.storage.repository import (
    CareLogConflictError,
    CareLogNotFoundError,
    CareLogStateError,
    StoreError,
)


def _payload(**overrides):
    payload = {"careRecipientId": "r-1", "logDate": "2026-10-19", "wakeTime": "07:00"}
    payload.update(overrides)
    return payload


class TestCreate:
    def test_create_returns_draft(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        assert len(log.id) == 36
        assert log.status == "draft"
        assert log.caregiver_id == "c-1"
        assert log.document == {"wakeTime": "07:00"}
        assert log.completed_sections == {}

    def test_document_is_encrypted_at_rest(self, care_log_store, care_log_db):
        log = care_log_store.create("c-1", _payload(notes="Private observation"))
        row = care_log_db.connection.execute(
            "SELECT document_enc FROM care_logs WHERE id = ?", (log.id,)
        ).fetchone()
        assert "Private observation" not in row["document_enc"]

    def test_column_keys_not_duplicated_in_document(self, care_log_store):
        log = care_log_store.create("c-1", _payload(status="submitted", id="forged"))
        assert log.status == "draft"
        assert log.id != "forged"
        assert "careRecipientId" not in log.document

    def test_log_date_is_truncated(self, care_log_store):
        log = care_log_store.create("c-1", _payload(logDate="2026-10-19T08:00:00Z"))
        assert log.log_date == "2026-10-19"

    def test_requires_recipient_and_date(self, care_log_store):
        with pytest.raises(StoreError, match="required"):
            care_log_store.create("c-1", {"logDate": "2026-10-19"})
        with pytest.raises(StoreError, match="required"):
            care_log_store.create("c-1", {"careRecipientId": "r-1"})

    def test_second_live_log_conflicts(self, care_log_store):
        first = care_log_store.create("c-1", _payload())
        with pytest.raises(CareLogConflictError) as exc_info:
            care_log_store.create("c-2", _payload())
        assert exc_info.value.existing_id == first.id

    def test_other_day_is_fine(self, care_log_store):
        care_log_store.create("c-1", _payload())
        care_log_store.create("c-1", _payload(logDate="2026-10-20"))


class TestUpdate:
    def test_top_level_keys_replace(self, care_log_store):
        log = care_log_store.create("c-1", _payload(meals={"breakfast": {"time": "08:00"}}))
        updated = care_log_store.update(log.id, {"meals": {"lunch": {"time": "12:00"}}, "mood": "calm"})
        assert updated.document == {
            "wakeTime": "07:00",
            "meals": {"lunch": {"time": "12:00"}},
            "mood": "calm",
        }

    def test_missing_log(self, care_log_store):
        with pytest.raises(CareLogNotFoundError):
            care_log_store.update("nope", {"mood": "calm"})

    def test_submitted_log_rejects_update(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        care_log_store.submit(log.id)
        with pytest.raises(CareLogStateError, match="Only draft"):
            care_log_store.update(log.id, {"mood": "calm"})


class TestSections:
    def test_share_records_who_and_when(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        completed = care_log_store.submit_section(log.id, "morning", submitted_by="c-1")
        assert completed["morning"]["submittedBy"] == "c-1"
        assert care_log_store.require(log.id).completed_sections == completed

    def test_reshare_keeps_other_groups(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        care_log_store.submit_section(log.id, "morning", submitted_by="c-1")
        evening = care_log_store.submit_section(log.id, "evening", submitted_by="c-1")["evening"]
        completed = care_log_store.submit_section(log.id, "morning", submitted_by="c-2")
        assert set(completed) == {"morning", "evening"}
        assert completed["evening"] == evening
        assert completed["morning"]["submittedBy"] == "c-2"

    def test_share_after_submit_rejected(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        care_log_store.submit(log.id)
        with pytest.raises(CareLogStateError):
            care_log_store.submit_section(log.id, "morning", submitted_by="c-1")


class TestSubmitAndInvalidate:
    def test_submit(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        submitted = care_log_store.submit(log.id)
        assert submitted.status == "submitted"
        assert submitted.submitted_at

    def test_submit_twice_rejected(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        care_log_store.submit(log.id)
        with pytest.raises(CareLogStateError):
            care_log_store.submit(log.id)

    def test_invalidate_requires_reason(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        care_log_store.submit(log.id)
        with pytest.raises(StoreError, match="reason"):
            care_log_store.invalidate(log.id, reason="  ", invalidated_by="family-1")

    def test_invalidate_draft_rejected(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        with pytest.raises(CareLogStateError, match="Only submitted"):
            care_log_store.invalidate(log.id, reason="Wrong day", invalidated_by="family-1")

    def test_invalidate_frees_the_day(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        care_log_store.submit(log.id)
        invalidated = care_log_store.invalidate(log.id, reason="Wrong BP", invalidated_by="family-1")
        assert invalidated.status == "invalidated"
        assert invalidated.invalidation_reason == "Wrong BP"
        assert invalidated.document == {"wakeTime": "07:00"}

        assert care_log_store.find_live("r-1", "2026-10-19") is None
        fresh = care_log_store.create("c-1", _payload(wakeTime="07:15"))
        assert care_log_store.find_live("r-1", "2026-10-19").id == fresh.id
        assert care_log_store.require(log.id).status == "invalidated"


class TestReads:
    def test_find_for_caregiver_returns_latest(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        assert care_log_store.find_for_caregiver("c-1", "2026-10-19").id == log.id
        assert care_log_store.find_for_caregiver("c-2", "2026-10-19") is None

    def test_list_for_recipient_newest_day_first(self, care_log_store):
        care_log_store.create("c-1", _payload(logDate="2026-10-17"))
        care_log_store.create("c-1", _payload(logDate="2026-10-19"))
        care_log_store.create("c-1", _payload(logDate="2026-10-18"))
        days = [log.log_date for log in care_log_store.list_for_recipient("r-1")]
        assert days == ["2026-10-19", "2026-10-18", "2026-10-17"]

    def test_list_filters_status(self, care_log_store):
        first = care_log_store.create("c-1", _payload(logDate="2026-10-17"))
        care_log_store.create("c-1", _payload(logDate="2026-10-18"))
        care_log_store.submit(first.id)
        submitted = care_log_store.list_for_recipient("r-1", status="submitted")
        assert [log.id for log in submitted] == [first.id]

    def test_to_wire(self, care_log_store):
        log = care_log_store.create("c-1", _payload())
        care_log_store.submit_section(log.id, "morning", submitted_by="c-1")
        wire = care_log_store.require(log.id).to_wire()
        assert wire["id"] == log.id
        assert wire["careRecipientId"] == "r-1"
        assert wire["wakeTime"] == "07:00"
        assert set(wire["completedSections"]) == {"morning"}
        assert "submittedAt" not in wire
