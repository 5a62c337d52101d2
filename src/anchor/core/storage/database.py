"""SQLite database management for the local care log store.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 3

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per care log document (draft, submitted or invalidated)
CREATE TABLE IF NOT EXISTS care_logs (
    id                  TEXT PRIMARY KEY,
    care_recipient_id   TEXT NOT NULL,
    caregiver_id        TEXT NOT NULL,
    log_date            TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'draft',

    -- Encrypted JSON document (all caregiver-entered fields)
    document_enc        TEXT NOT NULL,

    submitted_at        TEXT,
    invalidated_at      TEXT,
    invalidated_by      TEXT,
    invalidation_reason TEXT,
    created_at          TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- At most one live (non-invalidated) log per recipient and day
CREATE UNIQUE INDEX IF NOT EXISTS idx_care_logs_live
    ON care_logs(care_recipient_id, log_date) WHERE status != 'invalidated';
CREATE INDEX IF NOT EXISTS idx_care_logs_caregiver ON care_logs(caregiver_id, log_date);
"""

# ---------------------------------------------------------------------------
# V2: progressive section sharing
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
-- {"morning": {"submittedAt": "...", "submittedBy": "..."}, ...}
ALTER TABLE care_logs ADD COLUMN completed_sections TEXT;
"""

# ---------------------------------------------------------------------------
# V3: append-only history
# ---------------------------------------------------------------------------

_SCHEMA_V3 = """
CREATE TABLE IF NOT EXISTS care_log_history (
    id            TEXT PRIMARY KEY,
    care_log_id   TEXT NOT NULL REFERENCES care_logs(id),
    timestamp     TEXT NOT NULL DEFAULT (datetime('now')),
    action        TEXT NOT NULL,
    actor_id      TEXT,
    section       TEXT,
    payload_hash  TEXT,
    status        TEXT NOT NULL DEFAULT 'success',
    metadata_json TEXT
);

CREATE INDEX IF NOT EXISTS idx_history_log    ON care_log_history(care_log_id);
CREATE INDEX IF NOT EXISTS idx_history_action ON care_log_history(action);

CREATE TRIGGER IF NOT EXISTS care_log_history_no_update
BEFORE UPDATE ON care_log_history
BEGIN
    SELECT RAISE(ABORT, 'care_log_history is append-only');
END;

CREATE TRIGGER IF NOT EXISTS care_log_history_no_delete
BEFORE DELETE ON care_log_history
BEGIN
    SELECT RAISE(ABORT, 'care_log_history is append-only');
END;
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class CareLogDatabase:
    """SQLite database manager for the local care log store.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = CareLogDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file))
        else:
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Care log database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: completed_sections column")
        if current_version < 3:
            conn.executescript(_SCHEMA_V3)
            logger.info("Applied schema migration V3: care_log_history table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Care log database closed")

    def __enter__(self) -> CareLogDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
