"""MCP tools for recurring assessment reminders."""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from mindtrack.core.storage.models import Frequency, ScheduleEntry
from mindtrack.core.storage.repository import RepositoryError
from mindtrack.domains.wellbeing.domain_logic.errors import ValidationError
from mindtrack.domains.wellbeing.domain_logic.recurrence import (
    compute_next_trigger,
    is_due,
    validate_schedule,
)

if TYPE_CHECKING:
    from mindtrack.core.storage.repository import WellbeingRepository
    from mindtrack.domains.wellbeing.domain_logic.catalog import AssessmentCatalog
    from mindtrack.domains.wellbeing.domain_logic.reminder_sweep import ReminderSweeper

logger = logging.getLogger(__name__)


def _frequency(value: str) -> Frequency:
    try:
        return Frequency(value.strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f"Unknown frequency {value!r}. Valid: {[f.value for f in Frequency]}",
            field="frequency",
            value=value,
        ) from exc


def _anchors(
    frequency: Frequency, day_of_week: int | None, day_of_month: int | None
) -> tuple[int | None, int | None]:
    """Drop anchors the frequency does not use so edits can switch frequency."""
    if frequency is Frequency.DAILY:
        return None, None
    if frequency is Frequency.MONTHLY:
        return None, day_of_month
    return day_of_week, None


def _schedule_dict(schedule: ScheduleEntry, now: datetime, tz: tzinfo | None) -> dict:
    result = {
        "id": schedule.id,
        "assessment_type_code": schedule.assessment_type_code,
        "frequency": Frequency(schedule.frequency).value,
        "time_of_day": schedule.time_of_day,
        "day_of_week": schedule.day_of_week,
        "day_of_month": schedule.day_of_month,
        "enabled": schedule.enabled,
        "last_triggered_at": (
            schedule.last_triggered_at.isoformat() if schedule.last_triggered_at else None
        ),
    }
    if schedule.enabled:
        result["next_trigger"] = compute_next_trigger(schedule, now, tz).isoformat()
        result["due_now"] = is_due(schedule, now, tz)
    return result


def register_schedule_tools(
    mcp: FastMCP,
    repository: WellbeingRepository,
    catalog: AssessmentCatalog,
    sweeper: ReminderSweeper,
    tz: tzinfo | None = None,
) -> None:
    """Register reminder schedule tools on the MCP server."""

    def _err(exc: ValidationError | RepositoryError) -> str:
        payload = {"status": "error", "message": str(exc)}
        if isinstance(exc, ValidationError):
            payload["field"] = exc.field
        return json.dumps(payload)

    @mcp.tool
    async def create_schedule(
        ctx: Context,
        assessment_type_code: str,
        frequency: str,
        time_of_day: str,
        day_of_week: int | None = None,
        day_of_month: int | None = None,
    ) -> str:
        """Create a recurring reminder to complete a questionnaire.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9').
            frequency: 'daily', 'weekly', 'biweekly', or 'monthly'.
            time_of_day: Local reminder time as HH:MM (24-hour).
            day_of_week: 0=Sunday .. 6=Saturday; required for weekly/biweekly.
            day_of_month: 1-31; required for monthly. Short months use their last day.
        """
        try:
            definition = catalog.require(assessment_type_code)
            entry = ScheduleEntry(
                id="",
                assessment_type_code=definition.code,
                frequency=_frequency(frequency),
                time_of_day=time_of_day.strip(),
                day_of_week=day_of_week,
                day_of_month=day_of_month,
            )
            validate_schedule(entry)
        except ValidationError as exc:
            return _err(exc)

        saved = repository.create_schedule(entry)
        now = datetime.now(timezone.utc)
        return json.dumps({"status": "created", "schedule": _schedule_dict(saved, now, tz)})

    @mcp.tool
    async def update_schedule(
        ctx: Context,
        schedule_id: str,
        frequency: str | None = None,
        time_of_day: str | None = None,
        day_of_week: int | None = None,
        day_of_month: int | None = None,
    ) -> str:
        """Change a reminder's timing. Omitted fields keep their current value.

        Args:
            schedule_id: The schedule's ID.
            frequency: New frequency ('daily', 'weekly', 'biweekly', 'monthly').
            time_of_day: New local time as HH:MM.
            day_of_week: New weekday anchor (0=Sunday .. 6=Saturday).
            day_of_month: New day-of-month anchor (1-31).
        """
        current = repository.get_schedule(schedule_id)
        if current is None:
            return json.dumps({"status": "error", "message": f"Schedule not found: {schedule_id}"})

        try:
            new_frequency = _frequency(frequency) if frequency else Frequency(current.frequency)
            weekday, monthday = _anchors(
                new_frequency,
                day_of_week if day_of_week is not None else current.day_of_week,
                day_of_month if day_of_month is not None else current.day_of_month,
            )
            entry = dataclasses.replace(
                current,
                frequency=new_frequency,
                time_of_day=time_of_day.strip() if time_of_day else current.time_of_day,
                day_of_week=weekday,
                day_of_month=monthday,
            )
            validate_schedule(entry)
            saved = repository.update_schedule(entry)
        except (ValidationError, RepositoryError) as exc:
            return _err(exc)

        now = datetime.now(timezone.utc)
        return json.dumps({"status": "updated", "schedule": _schedule_dict(saved, now, tz)})

    @mcp.tool
    async def toggle_schedule(ctx: Context, schedule_id: str, enabled: bool) -> str:
        """Enable or disable a reminder without deleting it.

        Args:
            schedule_id: The schedule's ID.
            enabled: True to enable, False to pause.
        """
        if not repository.set_schedule_enabled(schedule_id, enabled):
            return json.dumps({"status": "error", "message": f"Schedule not found: {schedule_id}"})
        return json.dumps({"status": "ok", "schedule_id": schedule_id, "enabled": enabled})

    @mcp.tool
    async def delete_schedule(ctx: Context, schedule_id: str) -> str:
        """Delete a reminder schedule.

        Args:
            schedule_id: The schedule's ID.
        """
        if repository.delete_schedule(schedule_id):
            return json.dumps({"status": "deleted", "schedule_id": schedule_id})
        return json.dumps({"status": "error", "message": f"Schedule not found: {schedule_id}"})

    @mcp.tool
    async def list_schedules(ctx: Context, enabled_only: bool = False) -> str:
        """List reminder schedules with their next trigger time.

        Args:
            enabled_only: Only list enabled schedules.
        """
        now = datetime.now(timezone.utc)
        schedules = repository.get_schedules(enabled_only=enabled_only)
        return json.dumps({
            "count": len(schedules),
            "schedules": [_schedule_dict(s, now, tz) for s in schedules],
        }, indent=2)

    @mcp.tool
    async def check_due_reminders(ctx: Context) -> str:
        """Fire any reminders that are due right now and return them.

        Each schedule fires at most once per day, whether triggered here or
        by the background sweep.
        """
        fired = sweeper.sweep(datetime.now(timezone.utc))
        return json.dumps({
            "count": len(fired),
            "due": [reminder.as_dict() for reminder in fired],
        })
