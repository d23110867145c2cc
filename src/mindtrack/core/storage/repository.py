"""Wellbeing record repository — persistence for records, activities, and schedules.

The repository mediates between the record dataclasses and SQLite, using
FieldEncryptor for notes and raw responses. Window queries return records
oldest first, which is the order the analytics code consumes.

One connection is shared between the MCP handlers and the reminder sweep
thread, so every statement runs under a single process lock. Schedule
triggering additionally runs inside a ``BEGIN IMMEDIATE`` transaction so
the "check due, then mark triggered" pair is one atomic unit.
"""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any

from mindtrack.core.storage.database import WellbeingDatabase
from mindtrack.core.storage.encryption import FieldEncryptor
from mindtrack.core.storage.models import (
    ActivityRef,
    AssessmentDraft,
    AssessmentRecord,
    Frequency,
    MoodRecord,
    ScheduleEntry,
)

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 1000


class RepositoryError(Exception):
    """Raised when a repository operation refers to missing or conflicting data."""


class WellbeingRepository:
    """CRUD repository for assessment records, mood records, activities, and schedules.

    Usage::

        db = WellbeingDatabase(":memory:")
        db.initialize()
        repo = WellbeingRepository(db, FieldEncryptor(key))

        repo.save_assessment(record)
        history = repo.get_assessment_history("PHQ9", since="2026-01-01")
    """

    def __init__(self, database: WellbeingDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor
        self._lock = threading.RLock()

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _clamp_limit(limit: int) -> int:
        return max(1, min(limit, MAX_QUERY_LIMIT))

    @contextmanager
    def _transaction(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Serialize access and commit on success, roll back on any error."""
        with self._lock:
            conn = self._db.connection
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    @contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self._db.connection

    @staticmethod
    def _window(
        column: str, since: str | None, until: str | None
    ) -> tuple[list[str], list[Any]]:
        # Column names come from call sites in this module, never from input.
        conditions: list[str] = []
        params: list[Any] = []
        if since:
            conditions.append(f"{column} >= ?")
            params.append(since)
        if until:
            conditions.append(f"{column} <= ?")
            params.append(until)
        return conditions, params

    # ------------------------------------------------------------------
    # Assessment records
    # ------------------------------------------------------------------

    def save_assessment(self, record: AssessmentRecord) -> str:
        """Persist a scored assessment. Returns its ID (generated when empty)."""
        rid = record.id or self.new_id()
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO assessment_records (
                    id, assessment_type_code, responses_enc, total_score,
                    severity_label, completed_at, notes_enc
                ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    rid,
                    record.assessment_type_code,
                    self._enc.encrypt(list(record.responses)),
                    record.total_score,
                    record.severity_label,
                    record.completed_at,
                    self._enc.encrypt(record.notes),
                ),
            )
        logger.info(
            "Saved assessment %s (type=%s, score=%d)",
            rid, record.assessment_type_code, record.total_score,
        )
        return rid

    def get_assessment(self, record_id: str) -> AssessmentRecord | None:
        with self._reading() as conn:
            row = conn.execute(
                "SELECT * FROM assessment_records WHERE id = ?", (record_id,)
            ).fetchone()
        return self._row_to_assessment(row) if row is not None else None

    def get_latest_assessment(self, assessment_type_code: str) -> AssessmentRecord | None:
        """Return the most recently completed record of one type, if any."""
        with self._reading() as conn:
            row = conn.execute(
                """SELECT * FROM assessment_records WHERE assessment_type_code = ?
                   ORDER BY completed_at DESC LIMIT 1""",
                (assessment_type_code.upper(),),
            ).fetchone()
        return self._row_to_assessment(row) if row is not None else None

    def get_assessment_history(
        self,
        assessment_type_code: str,
        *,
        since: str | None = None,
        until: str | None = None,
        limit: int = 100,
    ) -> list[AssessmentRecord]:
        """Return records of one type within a window, oldest first.

        When the window holds more than ``limit`` records the most recent
        ``limit`` are kept.
        """
        conditions, params = self._window("completed_at", since, until)
        conditions.insert(0, "assessment_type_code = ?")
        params.insert(0, assessment_type_code.upper())
        query = (
            "SELECT * FROM assessment_records WHERE "
            + " AND ".join(conditions)
            + " ORDER BY completed_at DESC LIMIT ?"
        )
        params.append(self._clamp_limit(limit))
        with self._reading() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_assessment(row) for row in reversed(rows)]

    def delete_assessment(self, record_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM assessment_records WHERE id = ?", (record_id,))
        if cursor.rowcount:
            logger.info("Deleted assessment %s", record_id)
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Assessment drafts
    # ------------------------------------------------------------------

    def save_draft(self, draft: AssessmentDraft) -> AssessmentDraft:
        """Create or overwrite the draft for ``draft.assessment_type_code``.

        Only one draft exists per type; saving again keeps its ID and
        creation time and replaces the answers and notes.
        """
        now = self._now_iso()
        code = draft.assessment_type_code.upper()
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO assessment_drafts (
                    id, assessment_type_code, responses_enc, notes_enc, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (assessment_type_code) DO UPDATE SET
                    responses_enc = excluded.responses_enc,
                    notes_enc = excluded.notes_enc,
                    updated_at = excluded.updated_at""",
                (
                    draft.id or self.new_id(),
                    code,
                    self._enc.encrypt(list(draft.responses)),
                    self._enc.encrypt(draft.notes),
                    now,
                    now,
                ),
            )
        logger.info("Saved %s draft (%d answered)", code, draft.answered_count)
        return self.get_draft(code)  # type: ignore[return-value]

    def get_draft(self, assessment_type_code: str) -> AssessmentDraft | None:
        with self._reading() as conn:
            row = conn.execute(
                "SELECT * FROM assessment_drafts WHERE assessment_type_code = ?",
                (assessment_type_code.upper(),),
            ).fetchone()
        return self._row_to_draft(row) if row is not None else None

    def list_drafts(self) -> list[AssessmentDraft]:
        """All drafts, most recently edited first."""
        with self._reading() as conn:
            rows = conn.execute(
                "SELECT * FROM assessment_drafts ORDER BY updated_at DESC"
            ).fetchall()
        return [self._row_to_draft(row) for row in rows]

    def delete_draft(self, assessment_type_code: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM assessment_drafts WHERE assessment_type_code = ?",
                (assessment_type_code.upper(),),
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    def create_activity(
        self, name: str, *, color: str | None = None, icon: str | None = None
    ) -> ActivityRef:
        """Create an activity tag.

        Raises:
            RepositoryError: If a live activity already uses ``name``.
        """
        activity = ActivityRef(
            id=self.new_id(), name=name, color=color, icon=icon, created_at=self._now_iso()
        )
        try:
            with self._transaction() as conn:
                conn.execute(
                    """INSERT INTO activities (id, name, color, icon, created_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (activity.id, activity.name, activity.color, activity.icon,
                     activity.created_at),
                )
        except sqlite3.IntegrityError as exc:
            raise RepositoryError(f"Activity already exists: {name!r}") from exc
        logger.info("Created activity %s", activity.id)
        return activity

    def get_activity(self, activity_id: str) -> ActivityRef | None:
        with self._reading() as conn:
            row = conn.execute(
                "SELECT * FROM activities WHERE id = ?", (activity_id,)
            ).fetchone()
        return self._row_to_activity(row) if row is not None else None

    def list_activities(self, *, include_deleted: bool = False) -> list[ActivityRef]:
        query = "SELECT * FROM activities"
        if not include_deleted:
            query += " WHERE deleted_at IS NULL"
        query += " ORDER BY name"
        with self._reading() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_activity(row) for row in rows]

    def update_activity(
        self,
        activity_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> ActivityRef:
        """Rename, recolor, or change the icon of a live activity.

        None leaves a field unchanged; an empty ``color`` or ``icon`` clears it.

        Raises:
            RepositoryError: If the activity is missing or deleted, or another
                live activity already uses ``name``.
        """
        try:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT * FROM activities WHERE id = ? AND deleted_at IS NULL",
                    (activity_id,),
                ).fetchone()
                if row is None:
                    raise RepositoryError(f"Activity not found: {activity_id!r}")
                current = self._row_to_activity(row)
                updated = dataclasses.replace(
                    current,
                    name=name if name is not None else current.name,
                    color=(color or None) if color is not None else current.color,
                    icon=(icon or None) if icon is not None else current.icon,
                )
                conn.execute(
                    "UPDATE activities SET name = ?, color = ?, icon = ? WHERE id = ?",
                    (updated.name, updated.color, updated.icon, activity_id),
                )
        except sqlite3.IntegrityError as exc:
            raise RepositoryError(f"Activity already exists: {name!r}") from exc
        logger.info("Updated activity %s", activity_id)
        return updated

    def soft_delete_activity(self, activity_id: str) -> bool:
        """Hide an activity from pickers while keeping it in past check-ins."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE activities SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (self._now_iso(), activity_id),
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Mood records
    # ------------------------------------------------------------------

    def save_mood(self, record: MoodRecord) -> str:
        """Persist a mood check-in and its activity links.

        Raises:
            RepositoryError: If a referenced activity does not exist.
        """
        rid = record.id or self.new_id()
        try:
            with self._transaction() as conn:
                conn.execute(
                    """INSERT INTO mood_records (id, mood_rating, recorded_at, notes_enc)
                       VALUES (?, ?, ?, ?)""",
                    (rid, record.mood_rating, record.recorded_at,
                     self._enc.encrypt(record.notes)),
                )
                conn.executemany(
                    """INSERT OR IGNORE INTO mood_record_activities (mood_record_id, activity_id)
                       VALUES (?, ?)""",
                    [(rid, activity.id) for activity in record.activities],
                )
        except sqlite3.IntegrityError as exc:
            raise RepositoryError(f"Unknown activity in mood record: {exc}") from exc
        logger.info(
            "Saved mood record %s (rating=%d, activities=%d)",
            rid, record.mood_rating, len(record.activities),
        )
        return rid

    def get_mood_history(
        self,
        *,
        since: str | None = None,
        until: str | None = None,
        limit: int = 100,
    ) -> list[MoodRecord]:
        """Return mood records within a window, oldest first, with activities attached."""
        conditions, params = self._window("recorded_at", since, until)
        query = "SELECT * FROM mood_records"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY recorded_at DESC LIMIT ?"
        params.append(self._clamp_limit(limit))

        with self._reading() as conn:
            rows = conn.execute(query, params).fetchall()
            by_record: dict[str, list[ActivityRef]] = {}
            if rows:
                ids = [row["id"] for row in rows]
                placeholders = ",".join("?" for _ in ids)
                links = conn.execute(
                    f"""SELECT mra.mood_record_id, a.*
                        FROM mood_record_activities mra
                        JOIN activities a ON a.id = mra.activity_id
                        WHERE mra.mood_record_id IN ({placeholders})
                        ORDER BY a.name""",
                    ids,
                ).fetchall()
                for link in links:
                    by_record.setdefault(link["mood_record_id"], []).append(
                        self._row_to_activity(link)
                    )

        return [
            MoodRecord(
                id=row["id"],
                mood_rating=row["mood_rating"],
                recorded_at=row["recorded_at"],
                activities=tuple(by_record.get(row["id"], [])),
                notes=self._enc.decrypt(row["notes_enc"]),
            )
            for row in reversed(rows)
        ]

    def delete_mood(self, record_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM mood_records WHERE id = ?", (record_id,))
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    def create_schedule(self, entry: ScheduleEntry) -> ScheduleEntry:
        """Persist a new schedule and return it with its ID and timestamps set."""
        now = self._now_iso()
        sid = entry.id or self.new_id()
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO schedules (
                    id, assessment_type_code, frequency, time_of_day, day_of_week,
                    day_of_month, enabled, last_triggered_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    sid,
                    entry.assessment_type_code,
                    Frequency(entry.frequency).value,
                    entry.time_of_day,
                    entry.day_of_week,
                    entry.day_of_month,
                    int(entry.enabled),
                    entry.last_triggered_at.isoformat() if entry.last_triggered_at else None,
                    now,
                    now,
                ),
            )
        logger.info("Created %s schedule %s", Frequency(entry.frequency).value, sid)
        return self.get_schedule(sid)  # type: ignore[return-value]

    def get_schedule(self, schedule_id: str) -> ScheduleEntry | None:
        with self._reading() as conn:
            row = conn.execute(
                "SELECT * FROM schedules WHERE id = ?", (schedule_id,)
            ).fetchone()
        return self._row_to_schedule(row) if row is not None else None

    def get_schedules(self, *, enabled_only: bool = False) -> list[ScheduleEntry]:
        query = "SELECT * FROM schedules"
        if enabled_only:
            query += " WHERE enabled = 1"
        query += " ORDER BY time_of_day, created_at"
        with self._reading() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_schedule(row) for row in rows]

    def update_schedule(self, entry: ScheduleEntry) -> ScheduleEntry:
        """Overwrite the user-editable fields of an existing schedule.

        ``last_triggered_at`` is not touched here; only :meth:`mark_triggered`
        and :meth:`trigger_if` move it.

        Raises:
            RepositoryError: If the schedule does not exist.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """UPDATE schedules SET
                    frequency = ?, time_of_day = ?, day_of_week = ?, day_of_month = ?,
                    enabled = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    Frequency(entry.frequency).value,
                    entry.time_of_day,
                    entry.day_of_week,
                    entry.day_of_month,
                    int(entry.enabled),
                    self._now_iso(),
                    entry.id,
                ),
            )
        if cursor.rowcount == 0:
            raise RepositoryError(f"Schedule not found: {entry.id!r}")
        return self.get_schedule(entry.id)  # type: ignore[return-value]

    def set_schedule_enabled(self, schedule_id: str, enabled: bool) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE schedules SET enabled = ?, updated_at = ? WHERE id = ?",
                (int(enabled), self._now_iso(), schedule_id),
            )
        return cursor.rowcount > 0

    def delete_schedule(self, schedule_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
        return cursor.rowcount > 0

    def mark_triggered(self, schedule_id: str, triggered_on: date) -> None:
        """Record ``triggered_on`` as the schedule's last trigger date.

        Raises:
            RepositoryError: If the schedule does not exist.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE schedules SET last_triggered_at = ? WHERE id = ?",
                (triggered_on.isoformat(), schedule_id),
            )
        if cursor.rowcount == 0:
            raise RepositoryError(f"Schedule not found: {schedule_id!r}")

    def trigger_if(
        self,
        schedule_id: str,
        predicate: Callable[[ScheduleEntry], bool],
        triggered_on: date,
    ) -> ScheduleEntry | None:
        """Atomically re-read a schedule, test it, and mark it triggered.

        The read, the ``predicate`` check, and the write run inside one
        ``BEGIN IMMEDIATE`` transaction under the process lock, so two
        overlapping sweeps cannot both fire the same schedule.

        Returns:
            The schedule as it was before marking when it fired, else None.

        Raises:
            RepositoryError: If the schedule does not exist.
        """
        with self._transaction(immediate=True) as conn:
            row = conn.execute(
                "SELECT * FROM schedules WHERE id = ?", (schedule_id,)
            ).fetchone()
            if row is None:
                raise RepositoryError(f"Schedule not found: {schedule_id!r}")
            schedule = self._row_to_schedule(row)
            if not predicate(schedule):
                return None
            conn.execute(
                "UPDATE schedules SET last_triggered_at = ? WHERE id = ?",
                (triggered_on.isoformat(), schedule_id),
            )
        logger.info("Schedule %s triggered for %s", schedule_id, triggered_on)
        return schedule

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_assessment(self, row: Any) -> AssessmentRecord:
        return AssessmentRecord(
            id=row["id"],
            assessment_type_code=row["assessment_type_code"],
            responses=tuple(self._enc.decrypt(row["responses_enc"]) or ()),
            total_score=row["total_score"],
            severity_label=row["severity_label"],
            completed_at=row["completed_at"],
            notes=self._enc.decrypt(row["notes_enc"]),
        )

    def _row_to_draft(self, row: Any) -> AssessmentDraft:
        return AssessmentDraft(
            id=row["id"],
            assessment_type_code=row["assessment_type_code"],
            responses=tuple(self._enc.decrypt(row["responses_enc"]) or ()),
            notes=self._enc.decrypt(row["notes_enc"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_activity(row: Any) -> ActivityRef:
        return ActivityRef(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            icon=row["icon"],
            created_at=row["created_at"],
            deleted_at=row["deleted_at"],
        )

    @staticmethod
    def _row_to_schedule(row: Any) -> ScheduleEntry:
        last = row["last_triggered_at"]
        return ScheduleEntry(
            id=row["id"],
            assessment_type_code=row["assessment_type_code"],
            frequency=Frequency(row["frequency"]),
            time_of_day=row["time_of_day"],
            day_of_week=row["day_of_week"],
            day_of_month=row["day_of_month"],
            enabled=bool(row["enabled"]),
            last_triggered_at=date.fromisoformat(last[:10]) if last else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
