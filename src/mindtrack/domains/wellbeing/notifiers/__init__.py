"""Reminder notifiers: delivery side of the reminder sweep."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ReminderNotifier(Protocol):
    """Abstract interface for delivering a due reminder.

    The sweep marks a schedule as triggered before calling ``notify``, so a
    delivery failure loses that day's reminder rather than repeating it.
    """

    def notify(self, schedule_id: str, assessment_type_code: str, assessment_name: str) -> None:
        """Deliver one reminder. May raise; the sweep logs and continues."""
        ...

    @property
    def channel(self) -> str:
        """Label for the delivery channel, e.g. 'log'."""
        ...
