"""Local draft repository — the care log API semantics on the SQLite store.

Bound to one caregiver. Every successful mutation is appended to the
history table; a mutation rejected because of the log's status is recorded
too, with ``status='failure'``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Iterator

from anchor.core.audit.history import HistoryLogger
from anchor.core.storage.database import DatabaseError
from anchor.core.storage.encryption import EncryptionError
from anchor.core.storage.models import StoredCareLog
from anchor.core.storage.repository import (
    CareLogConflictError,
    CareLogNotFoundError,
    CareLogStateError,
    CareLogStore,
    StoreError,
)
from anchor.domains.care_log.engine.repository import (
    DraftRepositoryError,
    RepositoryAuthError,
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryResponseError,
)
from anchor.domains.care_log.models import SectionGroup

logger = logging.getLogger(__name__)

_SECTION_GROUPS = frozenset(group.value for group in SectionGroup)


@contextmanager
def _store_errors() -> Iterator[None]:
    """Translate store failures into repository errors."""
    try:
        yield
    except CareLogNotFoundError as exc:
        raise RepositoryNotFoundError(str(exc), status_code=404) from exc
    except CareLogConflictError as exc:
        raise RepositoryConflictError(str(exc), status_code=409) from exc
    except CareLogStateError as exc:
        raise RepositoryConflictError(str(exc), status_code=400) from exc
    except StoreError as exc:
        raise RepositoryResponseError(str(exc), status_code=400) from exc
    except (DatabaseError, EncryptionError) as exc:
        raise DraftRepositoryError(f"Local store failure: {exc}") from exc


class LocalDraftRepository:
    """``DraftRepository`` over a ``CareLogStore`` for one caregiver."""

    def __init__(
        self,
        store: CareLogStore,
        history: HistoryLogger,
        *,
        caregiver_id: str,
        today: Callable[[], date] = date.today,
    ) -> None:
        if not caregiver_id:
            raise ValueError("caregiver_id is required for the local repository")
        self._store = store
        self._history = history
        self._caregiver_id = caregiver_id
        self._today = today

    def _require_owned(self, log_id: str) -> StoredCareLog:
        log = self._store.require(log_id)
        if log.caregiver_id != self._caregiver_id:
            raise RepositoryAuthError(
                f"Care log {log_id} belongs to another caregiver", status_code=403
            )
        return log

    def _record_rejection(self, log_id: str, action: str, exc: Exception) -> None:
        self._history.record(
            log_id,
            action,
            actor_id=self._caregiver_id,
            status="failure",
            metadata={"error": type(exc).__name__},
        )

    # ------------------------------------------------------------------
    # DraftRepository
    # ------------------------------------------------------------------

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        with _store_errors():
            log = self._store.create(self._caregiver_id, payload)
        self._history.record(log.id, "create", actor_id=self._caregiver_id, payload=payload)
        return log.to_wire()

    async def update(self, log_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        with _store_errors():
            self._require_owned(log_id)
            try:
                log = self._store.update(log_id, payload)
            except CareLogStateError as exc:
                self._record_rejection(log_id, "update", exc)
                raise
        self._history.record(log_id, "update", actor_id=self._caregiver_id, payload=payload)
        return log.to_wire()

    async def get_today(self) -> dict[str, Any] | None:
        with _store_errors():
            log = self._store.find_for_caregiver(self._caregiver_id, self._today().isoformat())
        return log.to_wire() if log is not None else None

    async def get_by_recipient_date(
        self, care_recipient_id: str, log_date: str
    ) -> dict[str, Any] | None:
        """Family read: submitted logs, or drafts with at least one shared section."""
        with _store_errors():
            log = self._store.find_live(care_recipient_id, log_date[:10])
        if log is None:
            return None
        if log.status == "submitted" or (log.status == "draft" and log.completed_sections):
            return log.to_wire()
        return None

    async def submit(self, log_id: str) -> dict[str, Any]:
        with _store_errors():
            self._require_owned(log_id)
            try:
                log = self._store.submit(log_id)
            except CareLogStateError as exc:
                self._record_rejection(log_id, "submit", exc)
                raise
        self._history.record(log_id, "submit", actor_id=self._caregiver_id)
        return {"success": True, "message": "Care log submitted successfully", "id": log.id}

    async def submit_section(self, log_id: str, section: str) -> dict[str, Any]:
        if section not in _SECTION_GROUPS:
            raise RepositoryResponseError(f"Invalid section: {section!r}", status_code=400)
        with _store_errors():
            self._require_owned(log_id)
            try:
                completed = self._store.submit_section(
                    log_id, section, submitted_by=self._caregiver_id
                )
            except CareLogStateError as exc:
                self._record_rejection(log_id, "submit_section", exc)
                raise
        self._history.record(
            log_id, "submit_section", actor_id=self._caregiver_id, section=section
        )
        return completed

    async def history(self, log_id: str) -> list[dict[str, Any]]:
        with _store_errors():
            self._store.require(log_id)
        return [entry.as_dict() for entry in self._history.get_history(log_id)]

    # ------------------------------------------------------------------
    # Family admin
    # ------------------------------------------------------------------

    async def invalidate(
        self, log_id: str, reason: str, *, invalidated_by: str
    ) -> dict[str, Any]:
        """Invalidate a submitted log so the caregiver can redo the day."""
        with _store_errors():
            log = self._store.invalidate(log_id, reason=reason, invalidated_by=invalidated_by)
        self._history.record(
            log_id,
            "invalidate",
            actor_id=invalidated_by,
            metadata={"reason_length": len(reason.strip())},
        )
        return log.to_wire()
