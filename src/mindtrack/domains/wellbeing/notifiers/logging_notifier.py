"""Notifier that writes due reminders to the application log."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Default notifier: a local server has no OS notification surface."""

    @property
    def channel(self) -> str:
        return "log"

    def notify(self, schedule_id: str, assessment_type_code: str, assessment_name: str) -> None:
        logger.info(
            "Assessment reminder: time to complete %s (%s), schedule %s",
            assessment_name, assessment_type_code, schedule_id,
        )
