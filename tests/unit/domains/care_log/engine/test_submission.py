"""Tests for progressive submission — section shares and the final submit gate."""

from __future__ import annotations

import asyncio

import pytest

from anchor.domains.care_log.engine.autosave import AutosaveScheduler
from anchor.domains.care_log.engine.repository import (
    RepositoryAuthError,
    RepositoryConnectionError,
)
from anchor.domains.care_log.engine.submission import ProgressiveSubmissionController
from anchor.domains.care_log.errors import (
    IdentityError,
    IncompleteDraftError,
    SubmissionError,
)
from anchor.domains.care_log.models import (
    CareLogDraft,
    CompletedSection,
    DraftStatus,
    MedicationEntry,
    SectionGroup,
)
from conftest import RECIPIENT_ID


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _controller(repo, session, draft=None):
    draft = draft or CareLogDraft(care_recipient_id=RECIPIENT_ID, log_date="2026-10-19")
    autosave = AutosaveScheduler(repo, session, draft, interval=3600, debounce=3600)
    return ProgressiveSubmissionController(repo, session, autosave), autosave


class TestShareSection:
    def test_share_creates_draft_first(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)
        completed = _run(controller.submit_section("morning"))

        assert [name for name, _ in fake_repo.calls] == ["create", "submit_section"]
        assert fake_repo.calls[1][1] == ("log-1", "morning")
        assert set(completed) == {"morning"}
        assert autosave.draft.completed_sections["morning"].submitted_by == "caregiver-1"

    def test_share_flushes_pending_edits(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)

        async def _go():
            await autosave.flush()
            autosave.draft.morning_routine.wake_time = "06:45"
            autosave.mark_dirty()
            await controller.submit_section(SectionGroup.MORNING)
            autosave.stop()

        _run(_go())
        assert [name for name, _ in fake_repo.calls] == ["create", "update", "submit_section"]
        assert fake_repo.payloads("update")[0]["wakeTime"] == "06:45"

    def test_server_map_replaces_local_map(self, fake_repo, session):
        draft = CareLogDraft(
            care_recipient_id=RECIPIENT_ID,
            log_date="2026-10-19",
            id="log-1",
            completed_sections={"evening": CompletedSection("2026-10-18T20:00:00Z", "someone")},
        )
        fake_repo.documents["log-1"] = {"id": "log-1", "status": "draft"}
        fake_repo.section_response = {
            "completedSections": {
                "morning": {"submittedAt": "2026-10-19T09:00:00Z", "submittedBy": "caregiver-1"},
            }
        }
        controller, autosave = _controller(fake_repo, session, draft)
        completed = _run(controller.submit_section("morning"))
        assert set(completed) == {"morning"}
        assert set(autosave.draft.completed_sections) == {"morning"}

    def test_reshare_updates_only_that_key(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)

        async def _go():
            await controller.submit_section("morning")
            await controller.submit_section("afternoon")
            first_afternoon = autosave.draft.completed_sections["afternoon"]
            await controller.submit_section("morning")
            return first_afternoon

        first_afternoon = _run(_go())
        completed = autosave.draft.completed_sections
        assert set(completed) == {"morning", "afternoon"}
        assert completed["afternoon"] == first_afternoon
        assert completed["morning"].submitted_at == "2026-10-19T08:00:03Z"

    def test_unknown_section(self, fake_repo, session):
        controller, _ = _controller(fake_repo, session)
        with pytest.raises(SubmissionError, match="Unknown section"):
            _run(controller.submit_section("lunchtime"))
        assert fake_repo.calls == []

    def test_locked_draft_is_noop(self, fake_repo, session):
        draft = CareLogDraft(
            care_recipient_id=RECIPIENT_ID,
            log_date="2026-10-19",
            id="log-1",
            status=DraftStatus.SUBMITTED,
            completed_sections={"morning": CompletedSection("t", "caregiver-1")},
        )
        controller, _ = _controller(fake_repo, session, draft)
        completed = _run(controller.submit_section("evening"))
        assert set(completed) == {"morning"}
        assert fake_repo.calls == []

    def test_no_recipient(self, fake_repo, no_recipient_session):
        controller, _ = _controller(
            fake_repo, no_recipient_session, CareLogDraft(None, "2026-10-19")
        )
        with pytest.raises(IdentityError):
            _run(controller.submit_section("morning"))

    def test_network_failure_is_submission_error(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)
        fake_repo.fail_with = RepositoryConnectionError("offline")
        with pytest.raises(SubmissionError) as exc_info:
            _run(controller.submit_section("morning"))
        assert exc_info.value.blocking
        assert autosave.draft.completed_sections == {}

    def test_auth_failure_is_identity_error(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)
        _run(autosave.flush())
        fake_repo.fail_with = RepositoryAuthError("expired", status_code=401)
        with pytest.raises(IdentityError):
            _run(controller.submit_section("morning"))


class TestFinalSubmit:
    def test_incomplete_draft_refused(self, fake_repo, session):
        draft = CareLogDraft(
            care_recipient_id=RECIPIENT_ID,
            log_date="2026-10-19",
            medications=[MedicationEntry(name="Forxiga 10mg", given=True)],
        )
        controller, autosave = _controller(fake_repo, session, draft)
        with pytest.raises(IncompleteDraftError) as exc_info:
            _run(controller.submit())
        assert exc_info.value.missing == {"medications": ["Time for Forxiga 10mg"]}
        assert autosave.draft.status == DraftStatus.DRAFT
        assert fake_repo.calls == []

    def test_submit_locks_draft(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)
        log_id = _run(controller.submit())
        assert log_id == "log-1"
        assert [name for name, _ in fake_repo.calls] == ["create", "submit"]
        assert autosave.draft.status == DraftStatus.SUBMITTED
        assert not autosave.enabled

    def test_edits_after_submit_are_not_saved(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)

        async def _go():
            await controller.submit()
            autosave.draft.notes = "late"
            autosave.mark_dirty()
            return await autosave.tick()

        assert _run(_go()) is False
        assert fake_repo.count("update") == 0

    def test_second_submit_refused(self, fake_repo, session):
        controller, _ = _controller(fake_repo, session)
        _run(controller.submit())
        with pytest.raises(SubmissionError, match="already submitted"):
            _run(controller.submit())

    def test_failed_submit_leaves_draft_editable(self, fake_repo, session):
        controller, autosave = _controller(fake_repo, session)
        _run(autosave.flush())
        fake_repo.fail_with = RepositoryConnectionError("offline")
        with pytest.raises(SubmissionError):
            _run(controller.submit())
        assert autosave.draft.status == DraftStatus.DRAFT
        assert autosave.enabled
