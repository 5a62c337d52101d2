"""Care log store — CRUD operations for encrypted care log documents.

Enforces the server-side lifecycle rules:

* one live (non-invalidated) log per care recipient and day;
* only drafts accept updates, section shares and final submission;
* only submitted logs can be invalidated, after which a new draft may be
  created for the same day while the old row is kept untouched.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from anchor.core.storage.database import CareLogDatabase
from anchor.core.storage.encryption import DocumentEncryptor
from anchor.core.storage.models import StoredCareLog

logger = logging.getLogger(__name__)

# Wire keys held in plain columns rather than inside the encrypted document
_COLUMN_KEYS = frozenset({
    "id",
    "status",
    "careRecipientId",
    "caregiverId",
    "logDate",
    "completedSections",
    "createdAt",
    "updatedAt",
    "submittedAt",
    "invalidatedAt",
    "invalidatedBy",
    "invalidationReason",
})


class StoreError(Exception):
    """Raised when care log store operations fail."""


class CareLogNotFoundError(StoreError):
    """No care log with the given id."""


class CareLogStateError(StoreError):
    """The operation is not allowed in the log's current status."""


class CareLogConflictError(StoreError):
    """A live care log already exists for this recipient and day."""

    def __init__(self, message: str, existing_id: str) -> None:
        super().__init__(message)
        self.existing_id = existing_id


class CareLogStore:
    """CRUD store for encrypted care logs.

    Usage::

        db = CareLogDatabase(":memory:")
        db.initialize()
        store = CareLogStore(db, DocumentEncryptor(key))

        log = store.create("caregiver-1", {"careRecipientId": "r-1", "logDate": "2026-10-19"})
        store.update(log.id, {"wakeTime": "07:00"})
        store.submit_section(log.id, "morning", submitted_by="caregiver-1")
    """

    def __init__(self, database: CareLogDatabase, encryptor: DocumentEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _document_fields(payload: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in payload.items() if k not in _COLUMN_KEYS}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, log_id: str) -> StoredCareLog | None:
        row = self._db.connection.execute(
            "SELECT * FROM care_logs WHERE id = ?", (log_id,)
        ).fetchone()
        return self._row_to_log(row) if row is not None else None

    def require(self, log_id: str) -> StoredCareLog:
        log = self.get(log_id)
        if log is None:
            raise CareLogNotFoundError(f"Care log not found: {log_id}")
        return log

    def find_live(self, care_recipient_id: str, log_date: str) -> StoredCareLog | None:
        """The draft or submitted log for a recipient and day, if any."""
        row = self._db.connection.execute(
            """SELECT * FROM care_logs
               WHERE care_recipient_id = ? AND log_date = ? AND status != 'invalidated'""",
            (care_recipient_id, log_date),
        ).fetchone()
        return self._row_to_log(row) if row is not None else None

    def find_for_caregiver(self, caregiver_id: str, log_date: str) -> StoredCareLog | None:
        """The caregiver's most recent log for a day, including invalidated ones."""
        row = self._db.connection.execute(
            """SELECT * FROM care_logs
               WHERE caregiver_id = ? AND log_date = ?
               ORDER BY created_at DESC, rowid DESC LIMIT 1""",
            (caregiver_id, log_date),
        ).fetchone()
        return self._row_to_log(row) if row is not None else None

    def list_for_recipient(
        self, care_recipient_id: str, *, status: str | None = None, limit: int = 30
    ) -> list[StoredCareLog]:
        """Logs for a recipient, newest day first."""
        query = "SELECT * FROM care_logs WHERE care_recipient_id = ?"
        params: list[Any] = [care_recipient_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY log_date DESC, created_at DESC LIMIT ?"
        params.append(limit)
        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_log(row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, caregiver_id: str, payload: dict[str, Any]) -> StoredCareLog:
        """Insert a new draft.

        Args:
            caregiver_id: Author of the draft.
            payload: Wire document; must carry ``careRecipientId`` and ``logDate``.

        Raises:
            StoreError: If the recipient or date is missing.
            CareLogConflictError: If a live log already exists for that day.
        """
        recipient_id = payload.get("careRecipientId")
        log_date = str(payload.get("logDate") or "")[:10]
        if not recipient_id or not log_date:
            raise StoreError("careRecipientId and logDate are required")

        existing = self.find_live(recipient_id, log_date)
        if existing is not None:
            raise CareLogConflictError(
                f"A {existing.status} care log already exists for {recipient_id} on {log_date}",
                existing.id,
            )

        log_id = self._new_id()
        now = self._now_iso()
        try:
            self._db.connection.execute(
                """INSERT INTO care_logs (
                    id, care_recipient_id, caregiver_id, log_date, status,
                    document_enc, completed_sections, created_at, updated_at
                ) VALUES (?, ?, ?, ?, 'draft', ?, ?, ?, ?)""",
                (
                    log_id,
                    recipient_id,
                    caregiver_id,
                    log_date,
                    self._enc.encrypt_document(self._document_fields(payload)),
                    json.dumps({}),
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError as exc:
            self._db.connection.rollback()
            raise StoreError(f"Could not create care log: {exc}") from exc
        self._db.connection.commit()
        logger.info("Created care log %s (recipient=%s, date=%s)", log_id, recipient_id, log_date)
        return self.require(log_id)

    def update(self, log_id: str, payload: dict[str, Any]) -> StoredCareLog:
        """Apply a partial update. Top-level keys in ``payload`` replace stored ones.

        Raises:
            CareLogNotFoundError: If the log does not exist.
            CareLogStateError: If the log is not a draft.
        """
        log = self._require_draft(log_id, "updated")
        document = {**log.document, **self._document_fields(payload)}
        self._db.connection.execute(
            "UPDATE care_logs SET document_enc = ?, updated_at = ? WHERE id = ?",
            (self._enc.encrypt_document(document), self._now_iso(), log_id),
        )
        self._db.connection.commit()
        logger.debug("Updated care log %s (%d keys)", log_id, len(payload))
        return self.require(log_id)

    def submit_section(
        self, log_id: str, section: str, *, submitted_by: str
    ) -> dict[str, dict[str, str]]:
        """Record a section share; re-sharing updates the entry in place.

        Returns:
            The full ``completedSections`` map after the share.
        """
        log = self._require_draft(log_id, "shared")
        now = self._now_iso()
        completed = dict(log.completed_sections)
        completed[section] = {"submittedAt": now, "submittedBy": submitted_by}
        self._db.connection.execute(
            "UPDATE care_logs SET completed_sections = ?, updated_at = ? WHERE id = ?",
            (json.dumps(completed, separators=(",", ":")), now, log_id),
        )
        self._db.connection.commit()
        logger.info("Care log %s: section %s shared by %s", log_id, section, submitted_by)
        return completed

    def submit(self, log_id: str) -> StoredCareLog:
        """Lock a draft as submitted."""
        self._require_draft(log_id, "submitted")
        now = self._now_iso()
        self._db.connection.execute(
            "UPDATE care_logs SET status = 'submitted', submitted_at = ?, updated_at = ? WHERE id = ?",
            (now, now, log_id),
        )
        self._db.connection.commit()
        logger.info("Care log %s submitted", log_id)
        return self.require(log_id)

    def invalidate(self, log_id: str, *, reason: str, invalidated_by: str) -> StoredCareLog:
        """Hand a submitted log back to the caregiver.

        The row keeps its document untouched; the caregiver continues in a
        new draft for the same day.

        Raises:
            StoreError: If no reason is given.
            CareLogStateError: If the log is not submitted.
        """
        if not reason or not reason.strip():
            raise StoreError("An invalidation reason is required")
        log = self.require(log_id)
        if log.status != "submitted":
            raise CareLogStateError(
                f"Only submitted logs can be invalidated (care log {log_id} is {log.status})"
            )
        now = self._now_iso()
        self._db.connection.execute(
            """UPDATE care_logs
               SET status = 'invalidated', invalidated_at = ?, invalidated_by = ?,
                   invalidation_reason = ?, updated_at = ?
               WHERE id = ?""",
            (now, invalidated_by, reason.strip(), now, log_id),
        )
        self._db.connection.commit()
        logger.info("Care log %s invalidated by %s", log_id, invalidated_by)
        return self.require(log_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_draft(self, log_id: str, verb: str) -> StoredCareLog:
        log = self.require(log_id)
        if log.status != "draft":
            raise CareLogStateError(
                f"Only draft logs can be {verb} (care log {log_id} is {log.status})"
            )
        return log

    def _row_to_log(self, row: sqlite3.Row) -> StoredCareLog:
        completed = json.loads(row["completed_sections"]) if row["completed_sections"] else {}
        return StoredCareLog(
            id=row["id"],
            care_recipient_id=row["care_recipient_id"],
            caregiver_id=row["caregiver_id"],
            log_date=row["log_date"],
            status=row["status"],
            document=self._enc.decrypt_document(row["document_enc"]),
            completed_sections=completed,
            submitted_at=row["submitted_at"],
            invalidated_at=row["invalidated_at"],
            invalidated_by=row["invalidated_by"],
            invalidation_reason=row["invalidation_reason"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
