"""Reminder recurrence: next trigger instants and due checks.

All arithmetic is done on local wall-clock calendar dates: a 09:00
reminder stays at 09:00 across a daylight-saving change because the
result is built from a date plus a time of day, never from an elapsed
duration. An aware ``now`` is converted to the schedule's zone first and
results are returned in that zone; a naive ``now`` is taken as local wall
clock and results stay naive.

Weekdays count from Sunday: 0=Sunday .. 6=Saturday.
"""

from __future__ import annotations

import calendar
import dataclasses
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mindtrack.core.storage.models import Frequency, ScheduleEntry
from mindtrack.domains.wellbeing.domain_logic.errors import ConfigurationError, ValidationError

BIWEEKLY_MIN_GAP = timedelta(days=14)

_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` (24-hour) into a time.

    Raises:
        ValidationError: If the string is not a valid time of day.
    """
    match = _TIME_OF_DAY.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValidationError(
            f"Time of day must be HH:MM, got {value!r}", field="time_of_day", value=value
        )
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(
            f"Time of day out of range: {value!r}", field="time_of_day", value=value
        )
    return time(hour, minute)


def validate_schedule(schedule: ScheduleEntry) -> None:
    """Check the time format and that the anchor matches the frequency.

    Weekly and biweekly schedules need ``day_of_week`` (0-6), monthly ones
    need ``day_of_month`` (1-31), daily ones take neither.

    Raises:
        ValidationError: On the first problem found.
    """
    try:
        frequency = Frequency(schedule.frequency)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown frequency {schedule.frequency!r}. "
            f"Valid: {[f.value for f in Frequency]}",
            field="frequency",
            value=schedule.frequency,
        ) from exc

    parse_time_of_day(schedule.time_of_day)

    needs_weekday = frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY)
    needs_monthday = frequency is Frequency.MONTHLY

    if needs_weekday:
        if schedule.day_of_week is None:
            raise ValidationError(
                f"day_of_week is required for {frequency.value} schedules",
                field="day_of_week",
            )
        if not 0 <= schedule.day_of_week <= 6:
            raise ValidationError(
                f"day_of_week must be 0 (Sunday) to 6 (Saturday), got {schedule.day_of_week}",
                field="day_of_week",
                value=schedule.day_of_week,
            )
    elif schedule.day_of_week is not None:
        raise ValidationError(
            f"day_of_week is not used by {frequency.value} schedules",
            field="day_of_week",
            value=schedule.day_of_week,
        )

    if needs_monthday:
        if schedule.day_of_month is None:
            raise ValidationError(
                "day_of_month is required for monthly schedules", field="day_of_month"
            )
        if not 1 <= schedule.day_of_month <= 31:
            raise ValidationError(
                f"day_of_month must be 1 to 31, got {schedule.day_of_month}",
                field="day_of_month",
                value=schedule.day_of_month,
            )
    elif schedule.day_of_month is not None:
        raise ValidationError(
            f"day_of_month is not used by {frequency.value} schedules",
            field="day_of_month",
            value=schedule.day_of_month,
        )


def resolve_timezone(name: str) -> tzinfo | None:
    """Return the IANA zone for ``name``, or None for the system local zone.

    Raises:
        ConfigurationError: If ``name`` is not a known zone.
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown timezone: {name!r}") from exc


def _local_wall_clock(now: datetime, tz: tzinfo | None) -> datetime:
    if now.tzinfo is None:
        return now
    return now.astimezone(tz).replace(tzinfo=None)


def _attach_zone(local: datetime, now: datetime, tz: tzinfo | None) -> datetime:
    if now.tzinfo is None:
        return local
    if tz is None:
        # Naive astimezone() interprets the value as system local time.
        return local.astimezone()
    return local.replace(tzinfo=tz)


def local_today(now: datetime, tz: tzinfo | None = None) -> date:
    return _local_wall_clock(now, tz).date()


def sunday_weekday(day: date) -> int:
    """Weekday number with 0=Sunday."""
    return (day.weekday() + 1) % 7


def _clamped_month_day(year: int, month: int, day_of_month: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last))


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def _next_local_candidate(schedule: ScheduleEntry, local_now: datetime) -> datetime:
    """First wall-clock occurrence at or after the naive ``local_now``."""
    at = parse_time_of_day(schedule.time_of_day)
    today = local_now.date()
    frequency = Frequency(schedule.frequency)

    if frequency is Frequency.DAILY:
        candidate = datetime.combine(today, at)
        if candidate < local_now:
            candidate += timedelta(days=1)

    elif frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY):
        ahead = (schedule.day_of_week - sunday_weekday(today)) % 7
        candidate = datetime.combine(today + timedelta(days=ahead), at)
        if candidate < local_now:
            candidate += timedelta(days=7)
        if frequency is Frequency.BIWEEKLY and schedule.last_triggered_at is not None:
            floor = schedule.last_triggered_at + BIWEEKLY_MIN_GAP
            while candidate.date() < floor:
                candidate += timedelta(days=7)

    else:
        candidate = datetime.combine(
            _clamped_month_day(today.year, today.month, schedule.day_of_month), at
        )
        if candidate < local_now:
            year, month = _next_month(today.year, today.month)
            candidate = datetime.combine(
                _clamped_month_day(year, month, schedule.day_of_month), at
            )

    return candidate


def compute_next_trigger(
    schedule: ScheduleEntry,
    now: datetime,
    tz: tzinfo | None = None,
) -> datetime:
    """Return the next instant at or after ``now`` when ``schedule`` fires.

    Biweekly schedules additionally never land less than 14 days after
    ``last_triggered_at``. Monthly anchors past the end of a month clamp to
    its last day (31 becomes 30 in April, 28 in a non-leap February).

    For an aware ``now`` the zoned result is checked as a real instant. A
    wall time repeated by a fall-back change resolves to whichever pass is
    still ahead of ``now``, and when both passes are over the schedule moves
    on to its next occurrence.

    Raises:
        ValidationError: If the schedule is malformed.
    """
    validate_schedule(schedule)
    candidate = _next_local_candidate(schedule, _local_wall_clock(now, tz))
    if now.tzinfo is None:
        return candidate

    now_utc = now.astimezone(timezone.utc)
    while True:
        for fold in (0, 1):
            result = _attach_zone(candidate.replace(fold=fold), now, tz)
            if result.astimezone(timezone.utc) >= now_utc:
                return result
        candidate = _next_local_candidate(schedule, candidate + timedelta(minutes=1))


def is_occurrence_day(schedule: ScheduleEntry, day: date) -> bool:
    """Whether ``day`` is one of the calendar days the schedule lands on."""
    frequency = Frequency(schedule.frequency)
    if frequency is Frequency.DAILY:
        return True
    if frequency is Frequency.MONTHLY:
        return day == _clamped_month_day(day.year, day.month, schedule.day_of_month)
    if sunday_weekday(day) != schedule.day_of_week:
        return False
    if frequency is Frequency.BIWEEKLY and schedule.last_triggered_at is not None:
        return day >= schedule.last_triggered_at + BIWEEKLY_MIN_GAP
    return True


def is_due(schedule: ScheduleEntry, now: datetime, tz: tzinfo | None = None) -> bool:
    """True when the schedule should fire now.

    Requires the schedule to be enabled, not yet triggered today, on one of
    its occurrence days, and past its time of day. Missed days are not
    caught up.

    The occurrence-day condition is deliberately stricter than "enabled,
    not triggered today, time reached". Daily schedules are unaffected. A
    weekly schedule is only due on its anchor weekday, a biweekly one only
    on its anchor weekday at least 14 days after the last trigger, and a
    monthly one only on its (clamped) anchor day. Without it, any enabled
    weekly or monthly reminder would fire every day.
    """
    if not schedule.enabled:
        return False
    local_now = _local_wall_clock(now, tz)
    today = local_now.date()
    if schedule.last_triggered_at is not None and schedule.last_triggered_at >= today:
        return False
    if not is_occurrence_day(schedule, today):
        return False
    return local_now.time() >= parse_time_of_day(schedule.time_of_day)


def apply_trigger(
    schedule: ScheduleEntry,
    now: datetime,
    tz: tzinfo | None = None,
) -> ScheduleEntry:
    """Return a copy of ``schedule`` marked as triggered on today's local date."""
    return dataclasses.replace(schedule, last_triggered_at=local_today(now, tz))
