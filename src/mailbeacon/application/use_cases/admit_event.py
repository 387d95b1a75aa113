"""Dedup & persist gate: each message id becomes at most one event."""

from __future__ import annotations

from loguru import logger

from mailbeacon.application.ports.event_store import EventStore
from mailbeacon.domain.models import AdmitResult, NotificationEvent


class DedupGate:
    """Admit notification events into the event store exactly once.

    The ``exists`` pre-check only saves a write in the common case. Two
    overlapping polls can both pass it; the store's unique constraint on
    ``message_id`` then decides which write wins, and the loser is reported
    as a duplicate.
    """

    def __init__(self, events: EventStore) -> None:
        self.events = events

    def admit(self, event: NotificationEvent) -> AdmitResult:
        """Persist ``event`` unless its message id is already known.

        Returns:
            ``AdmitResult.INSERTED`` if this call committed the event,
            ``AdmitResult.DUPLICATE`` otherwise.

        Raises:
            StoreError: persistence failed for any other reason.
        """
        if self.events.exists(event.message_id):
            return AdmitResult.DUPLICATE

        result = self.events.insert_if_absent(event)
        if result is AdmitResult.DUPLICATE:
            logger.debug(f"Lost insert race for {event.message_id}")
        return result
