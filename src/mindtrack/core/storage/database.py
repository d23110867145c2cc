"""SQLite database management for the MindTrack record store.

Handles connection lifecycle and ordered schema migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

_SCHEMA_V1 = """
-- One row per completed questionnaire
CREATE TABLE IF NOT EXISTS assessment_records (
    id                   TEXT PRIMARY KEY,
    assessment_type_code TEXT NOT NULL,
    responses_enc        TEXT NOT NULL,
    total_score          INTEGER NOT NULL,
    severity_label       TEXT NOT NULL,
    completed_at         TEXT NOT NULL,
    notes_enc            TEXT,
    created_at           TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Activity tags; soft-deleted rows stay for historical correlation
CREATE TABLE IF NOT EXISTS activities (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL,
    color      TEXT,
    icon       TEXT,
    created_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS mood_records (
    id          TEXT PRIMARY KEY,
    mood_rating INTEGER NOT NULL,
    recorded_at TEXT NOT NULL,
    notes_enc   TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS mood_record_activities (
    mood_record_id TEXT NOT NULL REFERENCES mood_records(id) ON DELETE CASCADE,
    activity_id    TEXT NOT NULL REFERENCES activities(id),
    PRIMARY KEY (mood_record_id, activity_id)
);

-- Recurring assessment reminders
CREATE TABLE IF NOT EXISTS schedules (
    id                   TEXT PRIMARY KEY,
    assessment_type_code TEXT NOT NULL,
    frequency            TEXT NOT NULL,
    time_of_day          TEXT NOT NULL,
    day_of_week          INTEGER,
    day_of_month         INTEGER,
    enabled              INTEGER NOT NULL DEFAULT 1,
    last_triggered_at    TEXT,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);

-- Indexes for window queries
CREATE INDEX IF NOT EXISTS idx_assessments_type_time ON assessment_records(assessment_type_code, completed_at);
CREATE INDEX IF NOT EXISTS idx_mood_recorded_at      ON mood_records(recorded_at);
CREATE INDEX IF NOT EXISTS idx_mood_activity         ON mood_record_activities(activity_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_activities_live_name
    ON activities(name) WHERE deleted_at IS NULL;
"""

# ---------------------------------------------------------------------------
# V2: Reminder sweep index (enabled schedules in time_of_day order)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE INDEX IF NOT EXISTS idx_schedules_enabled_time
    ON schedules(enabled, time_of_day) WHERE enabled = 1;
"""

# ---------------------------------------------------------------------------
# V3: Draft assessments (one resumable draft per questionnaire type)
# ---------------------------------------------------------------------------

_SCHEMA_V3 = """
CREATE TABLE IF NOT EXISTS assessment_drafts (
    id                   TEXT PRIMARY KEY,
    assessment_type_code TEXT NOT NULL UNIQUE,
    responses_enc        TEXT NOT NULL,
    notes_enc            TEXT,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);
"""

# Ordered (version, description, script); applied once each, in order.
_MIGRATIONS: tuple[tuple[int, str, str], ...] = (
    (1, "initial schema", _SCHEMA_V1),
    (2, "reminder sweep index", _SCHEMA_V2),
    (3, "assessment drafts", _SCHEMA_V3),
)

SCHEMA_VERSION = _MIGRATIONS[-1][0]


class DatabaseError(Exception):
    """Raised when database operations fail."""


class WellbeingDatabase:
    """SQLite database manager for the MindTrack record store.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing. The connection may be shared with
    the reminder sweep thread; the repository serializes access to it.

    Usage::

        db = WellbeingDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
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
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return  # Already initialized

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
        else:
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Wellbeing database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Apply every migration newer than the recorded schema version."""
        conn = self.connection
        conn.executescript(_VERSION_TABLE)

        current_version = self.get_schema_version()
        for version, description, script in _MIGRATIONS:
            if version <= current_version:
                continue
            try:
                conn.executescript(script)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise DatabaseError(f"Schema migration V{version} failed: {exc}") from exc
            logger.info("Applied schema migration V%d: %s", version, description)

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Wellbeing database closed")

    def __enter__(self) -> WellbeingDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
