"""Periodic reminder sweep.

Each sweep walks the enabled schedules and, per schedule, runs "is due,
then mark triggered" as one repository transaction. Only schedules that
were actually marked by this sweep are handed to the notifier, so two
overlapping sweeps never deliver the same reminder twice in a day.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING, Any

from mindtrack.core.storage.repository import RepositoryError
from mindtrack.domains.wellbeing.domain_logic.recurrence import is_due, local_today

if TYPE_CHECKING:
    from mindtrack.core.storage.repository import WellbeingRepository
    from mindtrack.domains.wellbeing.domain_logic.catalog import AssessmentCatalog
    from mindtrack.domains.wellbeing.notifiers import ReminderNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DueReminder:
    schedule_id: str
    assessment_type_code: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "assessment_type_code": self.assessment_type_code,
        }


class ReminderSweeper:
    """Fires due schedules and forwards them to a notifier.

    Usage::

        sweeper = ReminderSweeper(repository, catalog, LoggingNotifier(), tz=None)
        fired = sweeper.sweep(datetime.now(timezone.utc))

        stop = threading.Event()
        threading.Thread(target=sweeper.run_forever, args=(stop, 60), daemon=True).start()
    """

    def __init__(
        self,
        repository: WellbeingRepository,
        catalog: AssessmentCatalog,
        notifier: ReminderNotifier,
        *,
        tz: tzinfo | None = None,
    ) -> None:
        self._repo = repository
        self._catalog = catalog
        self._notifier = notifier
        self._tz = tz

    def sweep(self, now: datetime) -> list[DueReminder]:
        """Trigger every due schedule once and notify for each.

        A notifier failure is logged; the schedule stays marked for today.
        """
        today = local_today(now, self._tz)
        fired: list[DueReminder] = []

        for schedule in self._repo.get_schedules(enabled_only=True):
            if not is_due(schedule, now, self._tz):
                continue
            try:
                marked = self._repo.trigger_if(
                    schedule.id,
                    lambda current: is_due(current, now, self._tz),
                    today,
                )
            except RepositoryError:
                # Deleted between listing and triggering.
                logger.debug("Schedule %s vanished during sweep", schedule.id)
                continue
            if marked is None:
                continue
            fired.append(DueReminder(marked.id, marked.assessment_type_code))

        for reminder in fired:
            definition = self._catalog.get(reminder.assessment_type_code)
            name = definition.name if definition is not None else reminder.assessment_type_code
            try:
                self._notifier.notify(reminder.schedule_id, reminder.assessment_type_code, name)
            except Exception:
                logger.exception(
                    "Failed to deliver reminder for schedule %s via %s",
                    reminder.schedule_id, self._notifier.channel,
                )

        if fired:
            logger.info("Reminder sweep fired %d schedule(s)", len(fired))
        return fired

    def run_forever(self, stop: threading.Event, interval_seconds: float = 60.0) -> None:
        """Sweep every ``interval_seconds`` until ``stop`` is set."""
        logger.info("Reminder sweep started (every %ss)", interval_seconds)
        while not stop.is_set():
            try:
                self.sweep(datetime.now(timezone.utc))
            except Exception:
                logger.exception("Reminder sweep failed")
            stop.wait(interval_seconds)
        logger.info("Reminder sweep stopped")
