"""Shared test fixtures for Anchor care log tests."""

from __future__ import annotations

import asyncio
import copy
import sys
from datetime import date
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPOSITORY_BACKEND", "http")
    monkeypatch.setenv("ANCHOR_API_URL", "http://127.0.0.1:9/api")
    monkeypatch.setenv("ANCHOR_API_TOKEN", "")
    monkeypatch.setenv("CAREGIVER_ID", "")
    monkeypatch.setenv("CARE_RECIPIENT_ID", "")
    monkeypatch.setenv("CARE_RECIPIENT_DOB", "")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("MEDICATION_TEMPLATE_PATH", "")
    # Timers never fire on their own during tests
    monkeypatch.setenv("AUTOSAVE_INTERVAL_SECONDS", "3600")
    monkeypatch.setenv("AUTOSAVE_DEBOUNCE_SECONDS", "3600")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from anchor.domains.care_log.domain_logic.medication_template import (  # noqa: E402
    MedicationTemplate,
)
from anchor.domains.care_log.engine.repository import (  # noqa: E402
    RepositoryConflictError,
    RepositoryNotFoundError,
)
from anchor.domains.care_log.models import MedicationEntry  # noqa: E402
from anchor.domains.care_log.session import CareSession  # noqa: E402

TODAY = date(2026, 10, 19)
RECIPIENT_ID = "recipient-1"
CAREGIVER_ID = "caregiver-1"


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ---------------------------------------------------------------------------
# Fake draft repository
# ---------------------------------------------------------------------------

class FakeDraftRepository:
    """In-memory ``DraftRepository`` that records every call.

    ``fail_with`` makes the next calls raise; ``delay`` makes every call
    yield to the event loop so overlapping calls can be observed.
    """

    def __init__(self, today_document: dict[str, Any] | None = None) -> None:
        self.today_document = today_document
        self.documents: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_with: Exception | None = None
        self.delay = 0.0
        self.section_response: dict[str, Any] | None = None
        self.active = 0
        self.max_active = 0
        self._next_id = 0
        self._share_count = 0
        if today_document and today_document.get("id"):
            self.documents[today_document["id"]] = copy.deepcopy(today_document)

    async def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_with is not None:
                raise self.fail_with
        finally:
            self.active -= 1

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def payloads(self, name: str) -> list[dict[str, Any]]:
        return [args[-1] for call, args in self.calls if call == name]

    def _require(self, log_id: str) -> dict[str, Any]:
        if log_id not in self.documents:
            raise RepositoryNotFoundError(f"Care log not found: {log_id}", status_code=404)
        return self.documents[log_id]

    def _require_draft(self, log_id: str) -> dict[str, Any]:
        document = self._require(log_id)
        if document.get("status", "draft") != "draft":
            raise RepositoryConflictError(
                f"Care log {log_id} is {document['status']}", status_code=400
            )
        return document

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        await self._call("create", copy.deepcopy(payload))
        self._next_id += 1
        log_id = f"log-{self._next_id}"
        self.documents[log_id] = {
            **copy.deepcopy(payload),
            "id": log_id,
            "status": "draft",
            "completedSections": {},
        }
        return copy.deepcopy(self.documents[log_id])

    async def update(self, log_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        await self._call("update", log_id, copy.deepcopy(payload))
        document = self._require_draft(log_id)
        document.update(copy.deepcopy(payload))
        return copy.deepcopy(document)

    async def get_today(self) -> dict[str, Any] | None:
        await self._call("get_today")
        return copy.deepcopy(self.today_document)

    async def get_by_recipient_date(
        self, care_recipient_id: str, log_date: str
    ) -> dict[str, Any] | None:
        await self._call("get_by_recipient_date", care_recipient_id, log_date)
        for document in self.documents.values():
            if (
                document.get("careRecipientId") == care_recipient_id
                and document.get("logDate") == log_date
                and document.get("status") != "invalidated"
            ):
                return copy.deepcopy(document)
        return None

    async def submit(self, log_id: str) -> dict[str, Any]:
        await self._call("submit", log_id)
        document = self._require_draft(log_id)
        document["status"] = "submitted"
        return {"success": True, "message": "Care log submitted successfully", "id": log_id}

    async def submit_section(self, log_id: str, section: str) -> dict[str, Any]:
        await self._call("submit_section", log_id, section)
        if self.section_response is not None:
            return copy.deepcopy(self.section_response)
        document = self._require_draft(log_id)
        self._share_count += 1
        completed = dict(document.get("completedSections") or {})
        completed[section] = {
            "submittedAt": f"2026-10-19T08:00:{self._share_count:02d}Z",
            "submittedBy": CAREGIVER_ID,
        }
        document["completedSections"] = completed
        return {"completedSections": copy.deepcopy(completed)}

    async def history(self, log_id: str) -> list[dict[str, Any]]:
        await self._call("history", log_id)
        self._require(log_id)
        return [
            {"action": name, "careLogId": log_id}
            for name, args in self.calls
            if args and args[0] == log_id and name != "history"
        ]

    async def invalidate(
        self, log_id: str, reason: str, *, invalidated_by: str
    ) -> dict[str, Any]:
        await self._call("invalidate", log_id, reason)
        document = self._require(log_id)
        if document.get("status") != "submitted":
            raise RepositoryConflictError("Only submitted logs can be invalidated", status_code=400)
        document["status"] = "invalidated"
        document["invalidatedBy"] = invalidated_by
        document["invalidationReason"] = reason
        self.today_document = copy.deepcopy(document)
        return copy.deepcopy(document)


# ---------------------------------------------------------------------------
# Session, template, repository
# ---------------------------------------------------------------------------

@pytest.fixture
def session() -> CareSession:
    """A caregiver session for a 70 year old woman."""
    return CareSession(
        caregiver_id=CAREGIVER_ID,
        care_recipient_id=RECIPIENT_ID,
        date_of_birth=date(1956, 3, 2),
        gender="female",
    )


@pytest.fixture
def no_recipient_session() -> CareSession:
    return CareSession(caregiver_id=CAREGIVER_ID, care_recipient_id=None)


@pytest.fixture
def template() -> MedicationTemplate:
    return MedicationTemplate([
        MedicationEntry(name="Glucophage 500mg", time_slot="before_breakfast"),
        MedicationEntry(name="Forxiga 10mg", time_slot="after_breakfast"),
        MedicationEntry(name="Ozempic 0.5mg", time_slot="afternoon"),
    ])


@pytest.fixture
def fake_repo() -> FakeDraftRepository:
    return FakeDraftRepository()


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def care_log_db():
    """Create an in-memory CareLogDatabase for testing."""
    from anchor.core.storage.database import CareLogDatabase

    db = CareLogDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def document_encryptor():
    """Create a DocumentEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from anchor.core.storage.encryption import DocumentEncryptor

    return DocumentEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def care_log_store(care_log_db, document_encryptor):
    """Create a CareLogStore backed by in-memory SQLite."""
    from anchor.core.storage.repository import CareLogStore

    return CareLogStore(care_log_db, document_encryptor)


@pytest.fixture
def history_logger(care_log_db):
    """Create a HistoryLogger backed by in-memory SQLite."""
    from anchor.core.audit.history import HistoryLogger

    return HistoryLogger(care_log_db)


@pytest.fixture
def local_repo(care_log_store, history_logger):
    """A LocalDraftRepository for CAREGIVER_ID with today pinned to TODAY."""
    from anchor.core.storage.local import LocalDraftRepository

    return LocalDraftRepository(
        care_log_store,
        history_logger,
        caregiver_id=CAREGIVER_ID,
        today=lambda: TODAY,
    )
