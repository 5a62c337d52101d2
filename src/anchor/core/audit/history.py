"""Care log history — append-only record of every mutation.

Each create, update, section share, submission and invalidation is written to
``care_log_history``. Entries carry who acted and when, never the document
itself: updates are recorded as a SHA-256 of the canonical JSON body.
Triggers on the table reject UPDATE and DELETE.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from anchor.core.storage.database import CareLogDatabase
from anchor.core.storage.models import HistoryEntry

logger = logging.getLogger(__name__)


def hash_payload(data: Any) -> str:
    """SHA-256 of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


class HistoryLogger:
    """Writes and reads ``care_log_history`` rows.

    Writes are committed immediately. A failed write is logged and reported
    as an empty id rather than failing the mutation it describes.

    Usage::

        history = HistoryLogger(database)
        history.record(log_id, "submit_section", actor_id="caregiver-1", section="morning")
        entries = history.get_history(log_id)
    """

    def __init__(self, database: CareLogDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def record(
        self,
        care_log_id: str,
        action: str,
        *,
        actor_id: str | None = None,
        section: str | None = None,
        payload: Any = None,
        status: str = "success",
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Append one history entry.

        Args:
            care_log_id: The care log that changed.
            action: 'create', 'update', 'submit_section', 'submit' or 'invalidate'.
            actor_id: Caregiver or family member who acted.
            section: Section group for 'submit_section'.
            payload: Request body; hashed, never stored.
            status: 'success' or 'failure'.
            metadata: Additional non-clinical context.

        Returns:
            The generated entry id, or "" if the write failed.
        """
        entry_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        metadata_json = json.dumps(metadata, separators=(",", ":")) if metadata else None

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO care_log_history
                   (id, care_log_id, timestamp, action, actor_id, section,
                    payload_hash, status, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry_id,
                    care_log_id,
                    now,
                    action,
                    actor_id,
                    section,
                    hash_payload(payload) if payload is not None else None,
                    status,
                    metadata_json,
                ),
            )
            conn.commit()
        except sqlite3.Error:
            logger.exception("Failed to write history entry for care log %s", care_log_id)
            return ""

        return entry_id

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_history(
        self, care_log_id: str, *, action: str | None = None, limit: int = 200
    ) -> list[HistoryEntry]:
        """Entries for one care log, oldest first."""
        query = "SELECT * FROM care_log_history WHERE care_log_id = ?"
        params: list[Any] = [care_log_id]
        if action:
            query += " AND action = ?"
            params.append(action)
        query += " ORDER BY timestamp ASC, rowid ASC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [
            HistoryEntry(
                id=row["id"],
                care_log_id=row["care_log_id"],
                timestamp=row["timestamp"],
                action=row["action"],
                actor_id=row["actor_id"],
                section=row["section"],
                payload_hash=row["payload_hash"],
                status=row["status"],
                metadata=json.loads(row["metadata_json"]) if row["metadata_json"] else {},
            )
            for row in rows
        ]

    def count(self, *, action: str | None = None) -> int:
        if action:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM care_log_history WHERE action = ?", (action,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM care_log_history").fetchone()
        return row[0]
