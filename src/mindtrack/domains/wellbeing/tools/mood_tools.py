"""MCP tools for mood check-ins and activity tags."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from mindtrack.core.storage.repository import RepositoryError
from mindtrack.domains.wellbeing.domain_logic.errors import ValidationError
from mindtrack.domains.wellbeing.domain_logic.trend_analyzer import time_range_bounds
from mindtrack.domains.wellbeing.domain_logic.validation import (
    MoodScale,
    build_mood_record,
    normalize_timestamp,
    validate_activity_name,
    validate_color,
    validate_icon,
)

if TYPE_CHECKING:
    from mindtrack.core.storage.models import ActivityRef
    from mindtrack.core.storage.repository import WellbeingRepository

logger = logging.getLogger(__name__)


def _activity_dict(activity: ActivityRef) -> dict:
    return {
        "id": activity.id,
        "name": activity.name,
        "color": activity.color,
        "icon": activity.icon,
        "created_at": activity.created_at,
        "deleted_at": activity.deleted_at,
    }


def register_mood_tools(
    mcp: FastMCP,
    repository: WellbeingRepository,
    scale: MoodScale,
    tz: tzinfo | None = None,
) -> None:
    """Register mood and activity tools on the MCP server."""

    @mcp.tool
    async def create_activity(
        ctx: Context,
        name: str,
        color: str = "",
        icon: str = "",
    ) -> str:
        """Create an activity tag to attach to mood check-ins.

        Args:
            name: Display name (1-100 characters, unique among active activities).
            color: Optional hex color, '#RGB' or '#RRGGBB'.
            icon: Optional short icon or emoji (max 10 characters).
        """
        try:
            clean_name = validate_activity_name(name)
            validate_color(color or None)
            validate_icon(icon or None)
            activity = repository.create_activity(
                clean_name, color=color or None, icon=icon or None
            )
        except ValidationError as exc:
            return json.dumps({"status": "error", "message": str(exc), "field": exc.field})
        except RepositoryError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "created", "activity": _activity_dict(activity)})

    @mcp.tool
    async def list_activities(ctx: Context, include_deleted: bool = False) -> str:
        """List activity tags.

        Args:
            include_deleted: Also list deleted activities (kept for history).
        """
        activities = repository.list_activities(include_deleted=include_deleted)
        return json.dumps(
            {"count": len(activities), "activities": [_activity_dict(a) for a in activities]},
            indent=2,
        )

    @mcp.tool
    async def update_activity(
        ctx: Context,
        activity_id: str,
        name: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> str:
        """Rename an activity or change its color or icon. Omitted fields are kept.

        Args:
            activity_id: The activity's ID.
            name: New display name (unique among active activities).
            color: New hex color ('#RGB' or '#RRGGBB'); empty string clears it.
            icon: New short icon or emoji; empty string clears it.
        """
        try:
            clean_name = validate_activity_name(name) if name is not None else None
            validate_color(color or None)
            validate_icon(icon or None)
            activity = repository.update_activity(
                activity_id, name=clean_name, color=color, icon=icon
            )
        except ValidationError as exc:
            return json.dumps({"status": "error", "message": str(exc), "field": exc.field})
        except RepositoryError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "updated", "activity": _activity_dict(activity)})

    @mcp.tool
    async def delete_activity(ctx: Context, activity_id: str) -> str:
        """Delete an activity tag. Past check-ins keep their reference to it.

        Args:
            activity_id: The activity's ID.
        """
        if repository.soft_delete_activity(activity_id):
            return json.dumps({"status": "deleted", "activity_id": activity_id})
        return json.dumps({"status": "error", "message": f"Activity not found: {activity_id}"})

    @mcp.tool
    async def log_mood(
        ctx: Context,
        mood_rating: int,
        activity_ids: list[str] | None = None,
        notes: str = "",
        recorded_at: str = "",
    ) -> str:
        """Record a mood check-in.

        Args:
            mood_rating: Rating on the configured scale (default 1=Very Bad .. 5=Very Good).
            activity_ids: IDs of activities done around this check-in.
            notes: Optional free-text note (max 5000 characters).
            recorded_at: Check-in time (ISO 8601). Defaults to now; a time
                without an offset is local time.
        """
        activities = []
        for activity_id in activity_ids or []:
            activity = repository.get_activity(activity_id)
            if activity is None or activity.is_deleted:
                return json.dumps({
                    "status": "error",
                    "message": f"Unknown activity: {activity_id}",
                    "field": "activity_ids",
                })
            activities.append(activity)

        try:
            record = build_mood_record(
                mood_rating,
                scale=scale,
                recorded_at=normalize_timestamp(
                    recorded_at,
                    field="recorded_at",
                    default=datetime.now(timezone.utc),
                    tz=tz,
                ),
                activities=activities,
                notes=notes or None,
            )
        except ValidationError as exc:
            return json.dumps({"status": "error", "message": str(exc), "field": exc.field})

        rid = repository.save_mood(record)
        return json.dumps({
            "status": "saved",
            "mood_id": rid,
            "mood_rating": record.mood_rating,
            "mood_label": scale.labels()[record.mood_rating],
            "activities": [a.name for a in record.activities],
            "recorded_at": record.recorded_at,
        })

    @mcp.tool
    async def mood_history(
        ctx: Context,
        time_range: str = "month",
        limit: int = 100,
    ) -> str:
        """List mood check-ins, oldest first.

        Args:
            time_range: One of 'week', 'month', 'quarter', 'year', 'all'.
            limit: Maximum number of check-ins (capped at 1000).
        """
        try:
            since, until = time_range_bounds(time_range, datetime.now(timezone.utc))
        except ValidationError as exc:
            return json.dumps({"status": "error", "message": str(exc), "field": exc.field})

        records = repository.get_mood_history(
            since=since.isoformat() if since else None,
            until=until.isoformat() if until else None,
            limit=limit,
        )
        labels = scale.labels()
        return json.dumps({
            "count": len(records),
            "entries": [
                {
                    "id": r.id,
                    "mood_rating": r.mood_rating,
                    "mood_label": labels.get(r.mood_rating, str(r.mood_rating)),
                    "recorded_at": r.recorded_at,
                    "activities": [_activity_dict(a) for a in r.activities],
                    "notes": r.notes,
                }
                for r in records
            ],
        }, indent=2)

    @mcp.tool
    async def delete_mood_entry(ctx: Context, mood_id: str) -> str:
        """Permanently delete one mood check-in.

        Args:
            mood_id: The ID returned when the check-in was logged.
        """
        if repository.delete_mood(mood_id):
            return json.dumps({"status": "deleted", "mood_id": mood_id})
        return json.dumps({"status": "error", "message": f"Mood entry not found: {mood_id}"})
