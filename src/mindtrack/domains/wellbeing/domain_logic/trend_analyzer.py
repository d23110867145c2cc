"""Longitudinal analytics over stored assessment and mood records.

Two computations, both pure over a caller-supplied, time-ordered window:

- series statistics (min, max, mean, optional median/mode) with an
  early-half vs. late-half trend label whose "good direction" comes from
  the series definition;
- activity-mood correlation: mean mood per activity tag, with a minimum
  sample size and a deterministic ordering.

``TrendAnalyzer`` wires both to the repository for the tool layer.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from mindtrack.core.storage.models import ActivityRef, MoodRecord
from mindtrack.domains.wellbeing.domain_logic.errors import ValidationError

if TYPE_CHECKING:
    from mindtrack.core.storage.repository import WellbeingRepository
    from mindtrack.domains.wellbeing.domain_logic.catalog import AssessmentCatalog

logger = logging.getLogger(__name__)

IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"

MIN_CORRELATION_SAMPLES = 3

# Preset windows for history and chart queries; None means unbounded.
TIME_RANGES: dict[str, int | None] = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
    "all": None,
}


@dataclass(frozen=True)
class SeriesDefinition:
    """How one kind of value series is summarized and labelled.

    ``higher_is_better`` sets the polarity: a falling clinical score is an
    improvement, a falling mood rating is a decline. A half-mean change must
    exceed ``epsilon`` strictly before the series stops being stable.
    """

    name: str
    higher_is_better: bool
    epsilon: float
    include_distribution: bool = False


ASSESSMENT_SERIES = SeriesDefinition(
    name="assessment_score",
    higher_is_better=False,
    epsilon=1.0,
)

MOOD_SERIES = SeriesDefinition(
    name="mood_rating",
    higher_is_better=True,
    epsilon=0.5,
    include_distribution=True,
)


@dataclass(frozen=True)
class InsufficientData:
    """Returned instead of statistics when a window holds fewer than 2 points."""

    series: str
    count: int
    required: int = 2

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": "insufficient_data",
            "series": self.series,
            "data_points": self.count,
            "required": self.required,
        }


@dataclass(frozen=True)
class SeriesStatistics:
    series: str
    count: int
    minimum: float
    maximum: float
    average: float
    trend: str
    earlier_mean: float
    later_mean: float
    median: float | None = None
    mode: int | None = None
    checkins_per_day: float | None = None

    def as_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": "ok",
            "series": self.series,
            "data_points": self.count,
            "min": self.minimum,
            "max": self.maximum,
            "average": round(self.average, 2),
            "trend": self.trend,
            "earlier_mean": round(self.earlier_mean, 2),
            "later_mean": round(self.later_mean, 2),
        }
        if self.median is not None:
            result["median"] = self.median
        if self.mode is not None:
            result["mode"] = self.mode
        if self.checkins_per_day is not None:
            result["checkins_per_day"] = round(self.checkins_per_day, 2)
        return result


@dataclass(frozen=True)
class ActivityCorrelation:
    activity: ActivityRef
    average_mood: float
    count: int
    ratings: tuple[int, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        return {
            "activity_id": self.activity.id,
            "activity_name": self.activity.name,
            "color": self.activity.color,
            "icon": self.activity.icon,
            "deleted": self.activity.is_deleted,
            "average_mood": round(self.average_mood, 2),
            "count": self.count,
        }


# ---------------------------------------------------------------------------
# Pure computations
# ---------------------------------------------------------------------------

def classify_trend(earlier_mean: float, later_mean: float, series: SeriesDefinition) -> str:
    """Label the change between two half-window means for ``series``."""
    diff = later_mean - earlier_mean
    if abs(diff) <= series.epsilon:
        return STABLE
    went_up = diff > 0
    return IMPROVING if went_up == series.higher_is_better else DECLINING


def _mode_lowest(values: Sequence[float]) -> int:
    counts = Counter(values)
    best = max(counts.values())
    return int(min(v for v, n in counts.items() if n == best))


def compute_series_statistics(
    points: Sequence[tuple[str, float]],
    series: SeriesDefinition,
    *,
    since: datetime | None = None,
    until: datetime | None = None,
) -> SeriesStatistics | InsufficientData:
    """Summarize a time-ordered ``(timestamp, value)`` window.

    The window is split at ``len // 2``; an odd middle point falls in the
    later half. ``since``/``until`` only feed the check-ins-per-day rate for
    series that report a distribution; they never filter ``points``.

    Returns:
        SeriesStatistics, or InsufficientData for fewer than 2 points.
    """
    if len(points) < 2:
        return InsufficientData(series=series.name, count=len(points))

    values = [value for _, value in points]
    mid = len(values) // 2
    earlier_mean = statistics.fmean(values[:mid])
    later_mean = statistics.fmean(values[mid:])

    median = mode = per_day = None
    if series.include_distribution:
        median = statistics.median(values)
        mode = _mode_lowest(values)
        if since is not None and until is not None:
            days = max((until - since) / timedelta(days=1), 1.0)
            per_day = len(values) / days

    return SeriesStatistics(
        series=series.name,
        count=len(values),
        minimum=min(values),
        maximum=max(values),
        average=statistics.fmean(values),
        trend=classify_trend(earlier_mean, later_mean, series),
        earlier_mean=earlier_mean,
        later_mean=later_mean,
        median=median,
        mode=mode,
        checkins_per_day=per_day,
    )


def compute_activity_correlations(
    mood_records: Iterable[MoodRecord],
    *,
    min_samples: int = MIN_CORRELATION_SAMPLES,
) -> list[ActivityCorrelation]:
    """Mean mood per activity, dropping activities seen fewer than ``min_samples`` times.

    A record tagged with N activities counts once toward each of them.
    Results are ordered by mean rating descending, then activity id.
    Soft-deleted activities are kept: they still describe past check-ins.
    """
    groups: dict[str, tuple[ActivityRef, list[int]]] = {}
    for record in mood_records:
        for activity in record.activities:
            groups.setdefault(activity.id, (activity, []))[1].append(record.mood_rating)

    correlations = [
        ActivityCorrelation(
            activity=activity,
            average_mood=statistics.fmean(ratings),
            count=len(ratings),
            ratings=tuple(ratings),
        )
        for activity, ratings in groups.values()
        if len(ratings) >= min_samples
    ]
    correlations.sort(key=lambda c: (-c.average_mood, c.activity.id))
    return correlations


def time_range_bounds(name: str, now: datetime) -> tuple[datetime | None, datetime | None]:
    """Resolve a preset name (``week``, ``month``, ...) to ``(since, until)``.

    ``all`` leaves both ends open.

    Raises:
        ValidationError: For an unknown preset.
    """
    key = name.strip().lower()
    if key not in TIME_RANGES:
        raise ValidationError(
            f"Unknown time range {name!r}. Valid: {list(TIME_RANGES)}",
            field="time_range",
            value=name,
        )
    days = TIME_RANGES[key]
    if days is None:
        return None, None
    return now - timedelta(days=days), now


# ---------------------------------------------------------------------------
# Repository-backed analyzer
# ---------------------------------------------------------------------------

class TrendAnalyzer:
    """Computes trends and correlations from stored wellbeing history.

    Usage::

        analyzer = TrendAnalyzer(repository, catalog)
        trend = analyzer.assessment_trend("PHQ9", time_range="quarter", now=now)
        ranking = analyzer.activity_correlation(time_range="month", now=now)
    """

    def __init__(
        self,
        repository: WellbeingRepository,
        catalog: AssessmentCatalog,
        *,
        limit: int = 1000,
    ) -> None:
        self._repo = repository
        self._catalog = catalog
        self._limit = limit

    def assessment_trend(
        self,
        assessment_type_code: str,
        *,
        time_range: str = "quarter",
        now: datetime,
    ) -> dict[str, Any]:
        """Statistics, chart points, and severity bands for one assessment type."""
        definition = self._catalog.require(assessment_type_code)
        since, until = time_range_bounds(time_range, now)
        records = self._repo.get_assessment_history(
            definition.code,
            since=since.isoformat() if since else None,
            until=until.isoformat() if until else None,
            limit=self._limit,
        )
        points = [(r.completed_at, float(r.total_score)) for r in records]
        stats = compute_series_statistics(points, ASSESSMENT_SERIES)
        logger.debug(
            "Assessment trend %s over %s: %d points", definition.code, time_range, len(points)
        )
        return {
            "assessment_type_code": definition.code,
            "time_range": time_range,
            "statistics": stats.as_dict(),
            "severity_bands": definition.severity_bands(),
            "data_points": [
                {"timestamp": r.completed_at, "value": r.total_score, "label": r.severity_label}
                for r in records
            ],
        }

    def mood_trend(self, *, time_range: str = "month", now: datetime) -> dict[str, Any]:
        """Mood statistics and chart points for a preset window."""
        since, until = time_range_bounds(time_range, now)
        records = self._repo.get_mood_history(
            since=since.isoformat() if since else None,
            until=until.isoformat() if until else None,
            limit=self._limit,
        )
        points = [(r.recorded_at, float(r.mood_rating)) for r in records]
        stats = compute_series_statistics(points, MOOD_SERIES, since=since, until=until)
        return {
            "time_range": time_range,
            "statistics": stats.as_dict(),
            "data_points": [
                {"timestamp": r.recorded_at, "value": r.mood_rating} for r in records
            ],
        }

    def activity_correlation(
        self,
        *,
        time_range: str = "month",
        now: datetime,
        min_samples: int = MIN_CORRELATION_SAMPLES,
    ) -> dict[str, Any]:
        since, until = time_range_bounds(time_range, now)
        records = self._repo.get_mood_history(
            since=since.isoformat() if since else None,
            until=until.isoformat() if until else None,
            limit=self._limit,
        )
        correlations = compute_activity_correlations(records, min_samples=min_samples)
        if not correlations:
            return {
                "time_range": time_range,
                "status": "no_data",
                "min_samples": min_samples,
                "activities": [],
            }
        return {
            "time_range": time_range,
            "status": "ok",
            "min_samples": min_samples,
            "activities": [c.as_dict() for c in correlations],
        }
