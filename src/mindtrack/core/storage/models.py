"""Data models for the wellbeing record store.

Assessment and mood records are immutable once created. Schedule entries
are user-editable; their ``last_triggered_at`` only moves through the
reminder trigger action.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


@dataclass(frozen=True)
class ActivityRef:
    """A user-defined activity tag. Soft-deleted activities keep their history."""

    id: str
    name: str
    color: str | None = None
    icon: str | None = None
    created_at: str = ""  # ISO 8601
    deleted_at: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class AssessmentRecord:
    """One completed questionnaire.

    ``responses`` and ``notes`` are stored encrypted; the score, label, and
    completion time stay in clear for window queries.
    """

    id: str
    assessment_type_code: str
    responses: tuple[int, ...]
    total_score: int
    severity_label: str
    completed_at: str  # ISO 8601
    notes: str | None = None


@dataclass(frozen=True)
class AssessmentDraft:
    """A questionnaire saved part-way through; at most one per type.

    Unanswered questions are None. Drafts are never scored into history
    or analytics; submitting the questionnaire discards the draft.
    """

    id: str
    assessment_type_code: str
    responses: tuple[int | None, ...]
    notes: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def answered_count(self) -> int:
        return sum(1 for answer in self.responses if answer is not None)


@dataclass(frozen=True)
class MoodRecord:
    """One mood check-in with its tagged activities."""

    id: str
    mood_rating: int
    recorded_at: str  # ISO 8601
    activities: tuple[ActivityRef, ...] = field(default_factory=tuple)
    notes: str | None = None


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


@dataclass
class ScheduleEntry:
    """A recurring assessment reminder.

    ``day_of_week`` (0=Sunday .. 6=Saturday) anchors weekly and biweekly
    schedules; ``day_of_month`` (1-31) anchors monthly ones.
    """

    id: str
    assessment_type_code: str
    frequency: Frequency
    time_of_day: str  # "HH:MM", local wall clock
    day_of_week: int | None = None
    day_of_month: int | None = None
    enabled: bool = True
    last_triggered_at: date | None = None
    created_at: str = ""
    updated_at: str = ""
