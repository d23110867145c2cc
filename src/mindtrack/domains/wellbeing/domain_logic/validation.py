"""Field validation for mood check-ins, activities, and notes."""

from __future__ import annotations

import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from mindtrack.core.storage.models import ActivityRef, MoodRecord
from mindtrack.domains.wellbeing.domain_logic.errors import ValidationError

MAX_NOTES_LENGTH = 5000
MAX_ACTIVITY_NAME_LENGTH = 100
MAX_ACTIVITY_ICON_LENGTH = 10

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

_FIVE_POINT_LABELS = ("Very Bad", "Bad", "Neutral", "Good", "Very Good")
_SEVEN_POINT_LABELS = ("Terrible", "Very Bad", "Bad", "Ok", "Good", "Very Good", "Excellent")


@dataclass(frozen=True)
class MoodScale:
    """The fixed closed rating range for one deployment."""

    min_rating: int = 1
    max_rating: int = 5

    def __post_init__(self) -> None:
        if self.min_rating >= self.max_rating:
            raise ValueError(
                f"Mood scale min ({self.min_rating}) must be below max ({self.max_rating})"
            )

    def contains(self, rating: int) -> bool:
        return self.min_rating <= rating <= self.max_rating

    def labels(self) -> dict[int, str]:
        """Display labels keyed by rating; numeric when no named set fits."""
        ratings = range(self.min_rating, self.max_rating + 1)
        for named in (_FIVE_POINT_LABELS, _SEVEN_POINT_LABELS):
            if len(named) == len(ratings):
                return dict(zip(ratings, named))
        return {r: str(r) for r in ratings}


def validate_mood_rating(rating: int, scale: MoodScale) -> None:
    if isinstance(rating, bool) or not isinstance(rating, int) or not scale.contains(rating):
        raise ValidationError(
            f"Mood rating must be an integer between {scale.min_rating} and "
            f"{scale.max_rating}, got {rating!r}",
            field="mood_rating",
            value=rating,
        )


def validate_notes(notes: str | None) -> None:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(
            f"Notes exceed {MAX_NOTES_LENGTH} characters ({len(notes)})",
            field="notes",
            value=len(notes),
        )


def validate_activity_name(name: str) -> str:
    """Return the trimmed name, or raise if it is empty or too long."""
    trimmed = name.strip()
    if not trimmed:
        raise ValidationError("Activity name cannot be empty", field="name", value=name)
    if len(trimmed) > MAX_ACTIVITY_NAME_LENGTH:
        raise ValidationError(
            f"Activity name exceeds {MAX_ACTIVITY_NAME_LENGTH} characters",
            field="name",
            value=len(trimmed),
        )
    return trimmed


def validate_color(color: str | None) -> None:
    if color and not _HEX_COLOR.match(color):
        raise ValidationError(
            f"Color must be #RGB or #RRGGBB, got {color!r}", field="color", value=color
        )


def validate_icon(icon: str | None) -> None:
    if icon and len(icon) > MAX_ACTIVITY_ICON_LENGTH:
        raise ValidationError(
            f"Icon exceeds {MAX_ACTIVITY_ICON_LENGTH} characters", field="icon", value=icon
        )


def build_mood_record(
    rating: int,
    *,
    scale: MoodScale,
    recorded_at: str,
    activities: Sequence[ActivityRef] = (),
    notes: str | None = None,
    record_id: str = "",
) -> MoodRecord:
    """Validate a check-in and return it as an immutable record.

    Duplicate activity references collapse to one so a record never counts
    twice toward the same activity's correlation group.
    """
    validate_mood_rating(rating, scale)
    validate_notes(notes)
    unique: dict[str, ActivityRef] = {}
    for activity in activities:
        unique.setdefault(activity.id, activity)
    return MoodRecord(
        id=record_id or str(uuid.uuid4()),
        mood_rating=rating,
        recorded_at=recorded_at,
        activities=tuple(unique.values()),
        notes=notes or None,
    )


def normalize_timestamp(
    value: str,
    *,
    field: str,
    default: datetime,
    tz: tzinfo | None = None,
) -> str:
    """Return ``value`` (or ``default`` when empty) as a UTC ISO 8601 string.

    Stored timestamps share one format so window queries can compare them
    as text. Naive input is local wall clock in ``tz`` (system local when
    None), the same reading the reminder code gives a naive ``now``.
    """
    if not value:
        moment = default
    else:
        try:
            moment = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(
                f"{field} must be an ISO 8601 timestamp, got {value!r}",
                field=field,
                value=value,
            ) from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz) if tz is not None else moment.astimezone()
    return moment.astimezone(timezone.utc).isoformat()
