"""Tests for WellbeingRepository — CRUD with in-memory SQLite."""

from __future__ import annotations

from datetime import date

import pytest

from mindtrack.core.storage.models import (
    ActivityRef,
    AssessmentDraft,
    AssessmentRecord,
    Frequency,
    MoodRecord,
    ScheduleEntry,
)
from mindtrack.core.storage.repository import MAX_QUERY_LIMIT, RepositoryError


def _assessment(**overrides) -> AssessmentRecord:
    defaults = dict(
        id="",
        assessment_type_code="GAD7",
        responses=(1, 1, 2, 0, 1, 0, 2),
        total_score=7,
        severity_label="mild",
        completed_at="2026-03-01T09:00:00+00:00",
        notes=None,
    )
    defaults.update(overrides)
    return AssessmentRecord(**defaults)


def _schedule(**overrides) -> ScheduleEntry:
    defaults = dict(
        id="",
        assessment_type_code="PHQ9",
        frequency=Frequency.WEEKLY,
        time_of_day="08:30",
        day_of_week=1,
    )
    defaults.update(overrides)
    return ScheduleEntry(**defaults)


class TestAssessments:
    def test_save_and_get(self, wellbeing_repository):
        rid = wellbeing_repository.save_assessment(_assessment(notes="tired"))
        record = wellbeing_repository.get_assessment(rid)
        assert record.responses == (1, 1, 2, 0, 1, 0, 2)
        assert record.notes == "tired"
        assert record.total_score == 7

    def test_responses_and_notes_encrypted_at_rest(self, wellbeing_repository, wellbeing_db):
        rid = wellbeing_repository.save_assessment(_assessment(notes="private"))
        row = wellbeing_db.connection.execute(
            "SELECT responses_enc, notes_enc FROM assessment_records WHERE id = ?", (rid,)
        ).fetchone()
        assert "private" not in row["notes_enc"]
        assert "[1" not in row["responses_enc"]

    def test_history_oldest_first_and_filtered_by_type(self, wellbeing_repository):
        wellbeing_repository.save_assessment(_assessment(completed_at="2026-03-05T09:00:00+00:00", total_score=5))
        wellbeing_repository.save_assessment(_assessment(completed_at="2026-03-01T09:00:00+00:00", total_score=9))
        wellbeing_repository.save_assessment(_assessment(assessment_type_code="PHQ9"))
        history = wellbeing_repository.get_assessment_history("gad7")
        assert [r.total_score for r in history] == [9, 5]

    def test_history_window(self, wellbeing_repository):
        for day in (1, 10, 20):
            wellbeing_repository.save_assessment(_assessment(completed_at=f"2026-03-{day:02d}T09:00:00+00:00"))
        history = wellbeing_repository.get_assessment_history(
            "GAD7", since="2026-03-05T00:00:00+00:00", until="2026-03-15T00:00:00+00:00"
        )
        assert [r.completed_at[:10] for r in history] == ["2026-03-10"]

    def test_limit_keeps_most_recent(self, wellbeing_repository):
        for day in (1, 2, 3):
            wellbeing_repository.save_assessment(_assessment(completed_at=f"2026-03-{day:02d}T09:00:00+00:00"))
        history = wellbeing_repository.get_assessment_history("GAD7", limit=2)
        assert [r.completed_at[:10] for r in history] == ["2026-03-02", "2026-03-03"]

    def test_limit_is_capped(self):
        assert MAX_QUERY_LIMIT == 1000

    def test_delete(self, wellbeing_repository):
        rid = wellbeing_repository.save_assessment(_assessment())
        assert wellbeing_repository.delete_assessment(rid) is True
        assert wellbeing_repository.get_assessment(rid) is None
        assert wellbeing_repository.delete_assessment(rid) is False

    def test_latest_per_type(self, wellbeing_repository):
        wellbeing_repository.save_assessment(_assessment(completed_at="2026-03-05T09:00:00+00:00", total_score=5))
        wellbeing_repository.save_assessment(_assessment(completed_at="2026-03-09T09:00:00+00:00", total_score=11))
        wellbeing_repository.save_assessment(_assessment(completed_at="2026-03-07T09:00:00+00:00", total_score=8))
        wellbeing_repository.save_assessment(
            _assessment(assessment_type_code="PHQ9", completed_at="2026-03-20T09:00:00+00:00")
        )
        latest = wellbeing_repository.get_latest_assessment("gad7")
        assert latest.total_score == 11
        assert wellbeing_repository.get_latest_assessment("OASIS") is None


class TestActivities:
    def test_create_and_list(self, wellbeing_repository):
        wellbeing_repository.create_activity("Walk", color="#4CAF50", icon="🚶")
        wellbeing_repository.create_activity("Reading")
        names = [a.name for a in wellbeing_repository.list_activities()]
        assert names == ["Reading", "Walk"]

    def test_duplicate_live_name_rejected(self, wellbeing_repository):
        wellbeing_repository.create_activity("Walk")
        with pytest.raises(RepositoryError, match="already exists"):
            wellbeing_repository.create_activity("Walk")

    def test_soft_delete_hides_but_keeps(self, wellbeing_repository):
        walk = wellbeing_repository.create_activity("Walk")
        assert wellbeing_repository.soft_delete_activity(walk.id) is True
        assert wellbeing_repository.list_activities() == []
        kept = wellbeing_repository.list_activities(include_deleted=True)
        assert kept[0].is_deleted
        assert wellbeing_repository.soft_delete_activity(walk.id) is False

    def test_name_reusable_after_delete(self, wellbeing_repository):
        walk = wellbeing_repository.create_activity("Walk")
        wellbeing_repository.soft_delete_activity(walk.id)
        again = wellbeing_repository.create_activity("Walk")
        assert again.id != walk.id

    def test_update_fields(self, wellbeing_repository):
        walk = wellbeing_repository.create_activity("Walk", color="#fff", icon="🚶")
        updated = wellbeing_repository.update_activity(walk.id, name="Long walk", color="")
        assert updated.name == "Long walk"
        assert updated.color is None
        assert updated.icon == "🚶"
        assert wellbeing_repository.get_activity(walk.id) == updated

    def test_update_to_live_name_rejected(self, wellbeing_repository):
        wellbeing_repository.create_activity("Walk")
        reading = wellbeing_repository.create_activity("Reading")
        with pytest.raises(RepositoryError, match="already exists"):
            wellbeing_repository.update_activity(reading.id, name="Walk")
        assert wellbeing_repository.get_activity(reading.id).name == "Reading"

    def test_update_to_deleted_name_allowed(self, wellbeing_repository):
        walk = wellbeing_repository.create_activity("Walk")
        wellbeing_repository.soft_delete_activity(walk.id)
        reading = wellbeing_repository.create_activity("Reading")
        assert wellbeing_repository.update_activity(reading.id, name="Walk").name == "Walk"

    def test_update_deleted_or_missing_raises(self, wellbeing_repository):
        walk = wellbeing_repository.create_activity("Walk")
        wellbeing_repository.soft_delete_activity(walk.id)
        with pytest.raises(RepositoryError, match="not found"):
            wellbeing_repository.update_activity(walk.id, name="Run")
        with pytest.raises(RepositoryError, match="not found"):
            wellbeing_repository.update_activity("nope", name="Run")


def _draft(**overrides) -> AssessmentDraft:
    defaults = dict(
        id="",
        assessment_type_code="GAD7",
        responses=(1, 2, None, None, None, None, None),
        notes=None,
    )
    defaults.update(overrides)
    return AssessmentDraft(**defaults)


class TestDrafts:
    def test_save_and_get(self, wellbeing_repository):
        saved = wellbeing_repository.save_draft(_draft(notes="half way"))
        assert saved.id
        assert saved.responses == (1, 2, None, None, None, None, None)
        assert saved.answered_count == 2
        assert wellbeing_repository.get_draft("gad7") == saved

    def test_one_draft_per_type(self, wellbeing_repository):
        first = wellbeing_repository.save_draft(_draft())
        second = wellbeing_repository.save_draft(
            _draft(responses=(1, 2, 3, 0, None, None, None), notes="more")
        )
        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.answered_count == 4
        assert second.notes == "more"
        assert len(wellbeing_repository.list_drafts()) == 1

    def test_drafts_not_in_history(self, wellbeing_repository):
        wellbeing_repository.save_draft(_draft())
        assert wellbeing_repository.get_assessment_history("GAD7") == []
        assert wellbeing_repository.get_latest_assessment("GAD7") is None

    def test_encrypted_at_rest(self, wellbeing_repository, wellbeing_db):
        wellbeing_repository.save_draft(_draft(notes="private"))
        row = wellbeing_db.connection.execute(
            "SELECT responses_enc, notes_enc FROM assessment_drafts"
        ).fetchone()
        assert "private" not in row["notes_enc"]
        assert "null" not in row["responses_enc"]

    def test_delete(self, wellbeing_repository):
        wellbeing_repository.save_draft(_draft())
        wellbeing_repository.save_draft(_draft(assessment_type_code="PHQ9", responses=(None,) * 9))
        assert wellbeing_repository.delete_draft("GAD7") is True
        assert wellbeing_repository.delete_draft("GAD7") is False
        assert [d.assessment_type_code for d in wellbeing_repository.list_drafts()] == ["PHQ9"]


class TestMood:
    def test_save_with_activities(self, wellbeing_repository):
        walk = wellbeing_repository.create_activity("Walk")
        read = wellbeing_repository.create_activity("Reading")
        wellbeing_repository.save_mood(MoodRecord(
            id="", mood_rating=4, recorded_at="2026-03-01T10:00:00+00:00",
            activities=(walk, read), notes="good day",
        ))
        [record] = wellbeing_repository.get_mood_history()
        assert record.mood_rating == 4
        assert {a.name for a in record.activities} == {"Walk", "Reading"}
        assert record.notes == "good day"

    def test_deleted_activity_still_attached(self, wellbeing_repository):
        walk = wellbeing_repository.create_activity("Walk")
        wellbeing_repository.save_mood(MoodRecord(
            id="", mood_rating=5, recorded_at="2026-03-01T10:00:00+00:00", activities=(walk,),
        ))
        wellbeing_repository.soft_delete_activity(walk.id)
        [record] = wellbeing_repository.get_mood_history()
        assert record.activities[0].is_deleted

    def test_unknown_activity_rejected(self, wellbeing_repository):
        ghost = ActivityRef(id="ghost", name="Ghost")
        with pytest.raises(RepositoryError):
            wellbeing_repository.save_mood(MoodRecord(
                id="", mood_rating=3, recorded_at="2026-03-01T10:00:00+00:00", activities=(ghost,),
            ))
        assert wellbeing_repository.get_mood_history() == []

    def test_history_window_oldest_first(self, wellbeing_repository):
        for day, rating in [(3, 2), (1, 4), (20, 5)]:
            wellbeing_repository.save_mood(MoodRecord(
                id="", mood_rating=rating, recorded_at=f"2026-03-{day:02d}T10:00:00+00:00",
            ))
        history = wellbeing_repository.get_mood_history(until="2026-03-10T00:00:00+00:00")
        assert [r.mood_rating for r in history] == [4, 2]

    def test_delete_cascades_links(self, wellbeing_repository, wellbeing_db):
        walk = wellbeing_repository.create_activity("Walk")
        rid = wellbeing_repository.save_mood(MoodRecord(
            id="", mood_rating=3, recorded_at="2026-03-01T10:00:00+00:00", activities=(walk,),
        ))
        assert wellbeing_repository.delete_mood(rid) is True
        links = wellbeing_db.connection.execute(
            "SELECT COUNT(*) FROM mood_record_activities"
        ).fetchone()[0]
        assert links == 0


class TestSchedules:
    def test_create_and_get(self, wellbeing_repository):
        created = wellbeing_repository.create_schedule(_schedule())
        assert created.id
        assert created.frequency is Frequency.WEEKLY
        assert created.day_of_week == 1
        assert created.enabled is True
        assert created.created_at

    def test_enabled_only_filter(self, wellbeing_repository):
        wellbeing_repository.create_schedule(_schedule())
        wellbeing_repository.create_schedule(_schedule(enabled=False))
        assert len(wellbeing_repository.get_schedules()) == 2
        assert len(wellbeing_repository.get_schedules(enabled_only=True)) == 1

    def test_update_does_not_touch_last_triggered(self, wellbeing_repository):
        created = wellbeing_repository.create_schedule(_schedule())
        wellbeing_repository.mark_triggered(created.id, date(2026, 3, 2))
        created.time_of_day = "19:00"
        created.last_triggered_at = None
        updated = wellbeing_repository.update_schedule(created)
        assert updated.time_of_day == "19:00"
        assert updated.last_triggered_at == date(2026, 3, 2)

    def test_update_missing_raises(self, wellbeing_repository):
        with pytest.raises(RepositoryError):
            wellbeing_repository.update_schedule(_schedule(id="missing"))

    def test_toggle_and_delete(self, wellbeing_repository):
        created = wellbeing_repository.create_schedule(_schedule())
        assert wellbeing_repository.set_schedule_enabled(created.id, False) is True
        assert wellbeing_repository.get_schedule(created.id).enabled is False
        assert wellbeing_repository.delete_schedule(created.id) is True
        assert wellbeing_repository.get_schedule(created.id) is None
        assert wellbeing_repository.set_schedule_enabled(created.id, True) is False

    def test_mark_triggered_missing_raises(self, wellbeing_repository):
        with pytest.raises(RepositoryError):
            wellbeing_repository.mark_triggered("missing", date(2026, 3, 2))

    def test_trigger_if_predicate_false_leaves_row(self, wellbeing_repository):
        created = wellbeing_repository.create_schedule(_schedule())
        assert wellbeing_repository.trigger_if(created.id, lambda s: False, date(2026, 3, 2)) is None
        assert wellbeing_repository.get_schedule(created.id).last_triggered_at is None

    def test_trigger_if_missing_raises(self, wellbeing_repository):
        with pytest.raises(RepositoryError):
            wellbeing_repository.trigger_if("missing", lambda s: True, date(2026, 3, 2))
