"""Integration tests for the MindTrack MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from mindtrack.core.server.app import create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    return json.loads(result.content[0].text)


CATALOG_TOOLS = ["health_check", "list_assessment_types", "get_assessment_questions"]

STORAGE_TOOLS = [
    "submit_assessment",
    "assessment_history",
    "delete_assessment",
    "get_assessment",
    "latest_assessment",
    "save_assessment_draft",
    "get_assessment_draft",
    "list_assessment_drafts",
    "discard_assessment_draft",
    "create_activity",
    "list_activities",
    "update_activity",
    "delete_activity",
    "log_mood",
    "mood_history",
    "delete_mood_entry",
    "assessment_trend",
    "mood_trend",
    "activity_mood_correlation",
    "create_schedule",
    "update_schedule",
    "toggle_schedule",
    "delete_schedule",
    "list_schedules",
    "check_due_reminders",
]


@pytest.fixture
def bare_client():
    """Client for a server with no encryption key (catalog tools only)."""
    return Client(create_app(reminder_sweep=False))


@pytest.fixture
def client(wellbeing_repository, catalog, recording_notifier):
    mcp = create_app(
        repository_override=wellbeing_repository,
        catalog_override=catalog,
        notifier_override=recording_notifier,
        reminder_sweep=False,
    )
    return Client(mcp)


class TestWithoutStorage:
    def test_only_catalog_tools_registered(self, bare_client):
        async def _check():
            async with bare_client:
                names = {t.name for t in await bare_client.list_tools()}
                assert set(CATALOG_TOOLS) <= names
                assert not names & set(STORAGE_TOOLS)
        _run(_check())

    def test_health_check_reports_storage_disabled(self, bare_client):
        async def _check():
            async with bare_client:
                result = await bare_client.call_tool("health_check", {})
                assert "ok" in str(result)
                assert "storage_enabled" in str(result)
        _run(_check())

    def test_catalog_resource(self, bare_client):
        async def _check():
            async with bare_client:
                contents = await bare_client.read_resource("catalog://assessments")
                data = json.loads(contents[0].text)
                assert data["assessment_count"] == 4
                codes = [a["code"] for a in data["assessments"]]
                assert codes == ["CESD", "GAD7", "OASIS", "PHQ9"]
        _run(_check())

    def test_questions_for_unknown_type(self, bare_client):
        async def _check():
            async with bare_client:
                data = _payload(await bare_client.call_tool(
                    "get_assessment_questions", {"assessment_type_code": "XYZ"}
                ))
                assert data["status"] == "error"
                assert data["field"] == "assessment_type_code"
        _run(_check())

    def test_questions_include_options(self, bare_client):
        async def _check():
            async with bare_client:
                data = _payload(await bare_client.call_tool(
                    "get_assessment_questions", {"assessment_type_code": "gad7"}
                ))
                assert len(data["questions"]) == 7
                assert data["questions"][0]["options"][0] == "Not at all"
        _run(_check())


class TestWithStorage:
    def test_all_tools_registered(self, client):
        async def _check():
            async with client:
                names = {t.name for t in await client.list_tools()}
                for expected in CATALOG_TOOLS + STORAGE_TOOLS:
                    assert expected in names, f"Missing tool: {expected}"
        _run(_check())

    def test_submit_and_history(self, client):
        async def _check():
            async with client:
                saved = _payload(await client.call_tool("submit_assessment", {
                    "assessment_type_code": "PHQ9",
                    "responses": [1, 1, 1, 1, 1, 0, 0, 0, 0],
                    "completed_at": "2026-01-10T09:00:00Z",
                }))
                assert saved["status"] == "saved"
                assert saved["total_score"] == 5
                assert saved["severity_label"] == "mild"

                history = _payload(await client.call_tool(
                    "assessment_history", {"assessment_type_code": "PHQ9"}
                ))
                assert history["count"] == 1
                assert history["results"][0]["responses"] == [1, 1, 1, 1, 1, 0, 0, 0, 0]
        _run(_check())

    def test_submit_rejects_bad_vector(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("submit_assessment", {
                    "assessment_type_code": "GAD7",
                    "responses": [0, 0, 0],
                }))
                assert data["status"] == "error"
                assert data["field"] == "responses"
        _run(_check())

    def test_mood_flow_and_correlation(self, client):
        async def _check():
            async with client:
                created = _payload(await client.call_tool("create_activity", {"name": "Walk"}))
                walk_id = created["activity"]["id"]
                for rating in (4, 5, 5):
                    logged = _payload(await client.call_tool(
                        "log_mood", {"mood_rating": rating, "activity_ids": [walk_id]}
                    ))
                    assert logged["status"] == "saved"

                bad = _payload(await client.call_tool("log_mood", {"mood_rating": 9}))
                assert bad["field"] == "mood_rating"

                correlation = _payload(await client.call_tool(
                    "activity_mood_correlation", {"time_range": "week"}
                ))
                assert correlation["status"] == "ok"
                assert correlation["activities"][0]["activity_name"] == "Walk"
                assert correlation["activities"][0]["count"] == 3

                trend = _payload(await client.call_tool("mood_trend", {"time_range": "week"}))
                assert trend["statistics"]["data_points"] == 3
                assert trend["statistics"]["mode"] == 5
        _run(_check())

    def test_get_and_latest_assessment(self, client):
        async def _check():
            async with client:
                first = _payload(await client.call_tool("submit_assessment", {
                    "assessment_type_code": "GAD7",
                    "responses": [1, 1, 1, 1, 1, 1, 1],
                    "completed_at": "2026-01-10T09:00:00Z",
                    "notes": "busy week",
                }))
                await client.call_tool("submit_assessment", {
                    "assessment_type_code": "GAD7",
                    "responses": [0, 0, 0, 0, 0, 0, 0],
                    "completed_at": "2026-01-17T09:00:00Z",
                })

                one = _payload(await client.call_tool(
                    "get_assessment", {"assessment_id": first["assessment_id"]}
                ))
                assert one["assessment"]["total_score"] == 7
                assert one["assessment"]["notes"] == "busy week"

                latest = _payload(await client.call_tool(
                    "latest_assessment", {"assessment_type_code": "gad7"}
                ))
                assert latest["assessment"]["total_score"] == 0

                none_yet = _payload(await client.call_tool(
                    "latest_assessment", {"assessment_type_code": "OASIS"}
                ))
                assert none_yet["status"] == "no_data"

                missing = _payload(await client.call_tool("get_assessment", {"assessment_id": "nope"}))
                assert missing["status"] == "error"
        _run(_check())

    def test_draft_resume_and_submit(self, client):
        async def _check():
            async with client:
                saved = _payload(await client.call_tool("save_assessment_draft", {
                    "assessment_type_code": "PHQ9",
                    "responses": [2, None, 1],
                }))
                assert saved["status"] == "saved"
                assert saved["draft"]["answered"] == 2
                assert saved["draft"]["question_count"] == 9

                resumed = _payload(await client.call_tool(
                    "get_assessment_draft", {"assessment_type_code": "PHQ9"}
                ))
                assert resumed["draft"]["responses"][:3] == [2, None, 1]

                listed = _payload(await client.call_tool("list_assessment_drafts", {}))
                assert listed["count"] == 1

                submitted = _payload(await client.call_tool("submit_assessment", {
                    "assessment_type_code": "PHQ9",
                    "responses": [2, 0, 1, 0, 0, 0, 0, 0, 0],
                }))
                assert submitted["draft_discarded"] is True

                gone = _payload(await client.call_tool(
                    "get_assessment_draft", {"assessment_type_code": "PHQ9"}
                ))
                assert gone["status"] == "error"
        _run(_check())

    def test_draft_rejects_out_of_range_answer(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("save_assessment_draft", {
                    "assessment_type_code": "GAD7",
                    "responses": [7],
                }))
                assert data["status"] == "error"
                assert data["field"] == "responses[0]"

                discard = _payload(await client.call_tool(
                    "discard_assessment_draft", {"assessment_type_code": "GAD7"}
                ))
                assert discard["status"] == "error"
        _run(_check())

    def test_update_activity(self, client):
        async def _check():
            async with client:
                walk = _payload(await client.call_tool("create_activity", {"name": "Walk"}))
                await client.call_tool("create_activity", {"name": "Run"})
                walk_id = walk["activity"]["id"]

                updated = _payload(await client.call_tool("update_activity", {
                    "activity_id": walk_id, "name": " Hike ", "color": "#0a0",
                }))
                assert updated["status"] == "updated"
                assert updated["activity"]["name"] == "Hike"
                assert updated["activity"]["color"] == "#0a0"

                clash = _payload(await client.call_tool(
                    "update_activity", {"activity_id": walk_id, "name": "Run"}
                ))
                assert clash["status"] == "error"

                bad_color = _payload(await client.call_tool(
                    "update_activity", {"activity_id": walk_id, "color": "green"}
                ))
                assert bad_color["field"] == "color"
        _run(_check())

    def test_naive_timestamp_read_as_local_time(self, monkeypatch, wellbeing_repository, catalog):
        monkeypatch.setenv("LOCAL_TIMEZONE", "America/New_York")
        client = Client(create_app(
            repository_override=wellbeing_repository,
            catalog_override=catalog,
            reminder_sweep=False,
        ))

        async def _check():
            async with client:
                logged = _payload(await client.call_tool("log_mood", {
                    "mood_rating": 3, "recorded_at": "2026-03-01T23:30:00",
                }))
                assert logged["recorded_at"] == "2026-03-02T04:30:00+00:00"
        _run(_check())

    def test_duplicate_activity_reports_error(self, client):
        async def _check():
            async with client:
                await client.call_tool("create_activity", {"name": "Yoga"})
                data = _payload(await client.call_tool("create_activity", {"name": " Yoga "}))
                assert data["status"] == "error"
        _run(_check())

    def test_trend_with_one_point_is_insufficient(self, client):
        async def _check():
            async with client:
                await client.call_tool("submit_assessment", {
                    "assessment_type_code": "GAD7",
                    "responses": [0, 0, 0, 0, 0, 0, 0],
                })
                data = _payload(await client.call_tool(
                    "assessment_trend", {"assessment_type_code": "GAD7", "time_range": "week"}
                ))
                assert data["statistics"]["status"] == "insufficient_data"
        _run(_check())

    def test_schedule_lifecycle(self, client, recording_notifier):
        async def _check():
            async with client:
                created = _payload(await client.call_tool("create_schedule", {
                    "assessment_type_code": "GAD7",
                    "frequency": "daily",
                    "time_of_day": "00:00",
                }))
                schedule = created["schedule"]
                assert schedule["next_trigger"]

                first = _payload(await client.call_tool("check_due_reminders", {}))
                assert first["due"] == [
                    {"schedule_id": schedule["id"], "assessment_type_code": "GAD7"}
                ]
                second = _payload(await client.call_tool("check_due_reminders", {}))
                assert second["count"] == 0
                assert len(recording_notifier.sent) == 1

                updated = _payload(await client.call_tool("update_schedule", {
                    "schedule_id": schedule["id"],
                    "frequency": "monthly",
                    "day_of_month": 31,
                }))
                assert updated["schedule"]["day_of_month"] == 31
                assert updated["schedule"]["last_triggered_at"] is not None

                toggled = _payload(await client.call_tool(
                    "toggle_schedule", {"schedule_id": schedule["id"], "enabled": False}
                ))
                assert toggled["enabled"] is False

                listed = _payload(await client.call_tool("list_schedules", {"enabled_only": True}))
                assert listed["count"] == 0

                deleted = _payload(await client.call_tool(
                    "delete_schedule", {"schedule_id": schedule["id"]}
                ))
                assert deleted["status"] == "deleted"
        _run(_check())

    def test_weekly_schedule_needs_anchor(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("create_schedule", {
                    "assessment_type_code": "PHQ9",
                    "frequency": "weekly",
                    "time_of_day": "09:00",
                }))
                assert data["status"] == "error"
                assert data["field"] == "day_of_week"
        _run(_check())
