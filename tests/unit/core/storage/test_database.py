"""Tests for WellbeingDatabase — schema creation, versioning, lifecycle."""

from __future__ import annotations

import sqlite3

import pytest

from mindtrack.core.storage.database import SCHEMA_VERSION, DatabaseError, WellbeingDatabase


class TestInitialization:
    def test_in_memory_initialize(self):
        db = WellbeingDatabase(":memory:")
        db.initialize()
        assert db.connection is not None
        db.close()

    def test_double_initialize_is_idempotent(self):
        db = WellbeingDatabase(":memory:")
        db.initialize()
        conn1 = db.connection
        db.initialize()
        assert db.connection is conn1
        db.close()

    def test_connection_before_init_raises(self):
        db = WellbeingDatabase(":memory:")
        with pytest.raises(DatabaseError, match="not initialized"):
            _ = db.connection

    def test_context_manager(self):
        with WellbeingDatabase(":memory:") as db:
            assert db.connection is not None
        with pytest.raises(DatabaseError):
            _ = db.connection


class TestSchema:
    def test_schema_version_recorded(self):
        with WellbeingDatabase(":memory:") as db:
            assert db.get_schema_version() == SCHEMA_VERSION

    def test_tables_created(self):
        expected_tables = {
            "assessment_records",
            "activities",
            "mood_records",
            "mood_record_activities",
            "schedules",
            "assessment_drafts",
            "schema_version",
        }
        with WellbeingDatabase(":memory:") as db:
            cursor = db.connection.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            tables = {row[0] for row in cursor.fetchall()}
            assert expected_tables <= tables

    def test_indexes_created(self):
        expected_indexes = {
            "idx_assessments_type_time",
            "idx_mood_recorded_at",
            "idx_mood_activity",
            "idx_schedules_enabled_time",
            "idx_activities_live_name",
        }
        with WellbeingDatabase(":memory:") as db:
            cursor = db.connection.execute("SELECT name FROM sqlite_master WHERE type='index'")
            indexes = {row[0] for row in cursor.fetchall()}
            assert expected_indexes <= indexes

    def test_foreign_keys_enabled(self):
        with WellbeingDatabase(":memory:") as db:
            assert db.connection.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_live_activity_names_unique(self):
        with WellbeingDatabase(":memory:") as db:
            conn = db.connection
            conn.execute(
                "INSERT INTO activities (id, name, created_at, deleted_at) VALUES ('a', 'Walk', 'x', 'y')"
            )
            conn.execute("INSERT INTO activities (id, name, created_at) VALUES ('b', 'Walk', 'x')")
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("INSERT INTO activities (id, name, created_at) VALUES ('c', 'Walk', 'x')")


class TestFileDatabase:
    def test_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "wellbeing.db"
        db = WellbeingDatabase(str(db_path))
        db.initialize()
        assert db_path.exists()
        assert db.get_schema_version() == SCHEMA_VERSION
        db.close()

    def test_reopen_does_not_reapply_migrations(self, tmp_path):
        db_path = str(tmp_path / "wellbeing.db")
        with WellbeingDatabase(db_path):
            pass
        with WellbeingDatabase(db_path) as db:
            count = db.connection.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
            assert count == SCHEMA_VERSION

    def test_upgrades_from_older_version(self, tmp_path):
        db_path = tmp_path / "wellbeing.db"
        conn = sqlite3.connect(str(db_path))
        conn.executescript(
            "CREATE TABLE schema_version (version INTEGER NOT NULL, applied_at TEXT);"
            "INSERT INTO schema_version (version) VALUES (1);"
            "CREATE TABLE schedules (id TEXT PRIMARY KEY, enabled INTEGER, time_of_day TEXT);"
        )
        conn.close()

        with WellbeingDatabase(str(db_path)) as db:
            assert db.get_schema_version() == SCHEMA_VERSION
            names = {
                row[0]
                for row in db.connection.execute("SELECT name FROM sqlite_master WHERE type='index'")
            }
            assert "idx_schedules_enabled_time" in names
            # V1 was recorded as applied, so its tables are not created again
            assert "idx_mood_recorded_at" not in names
