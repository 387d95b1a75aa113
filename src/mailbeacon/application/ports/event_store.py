"""Port for the notification event log."""

from __future__ import annotations

from typing import Protocol

from mailbeacon.domain.models import AdmitResult, NotificationEvent


class EventStore(Protocol):
    """Append-only log of notification events keyed by message id.

    ``insert_if_absent`` must be safe under concurrent callers: the uniqueness
    of ``message_id`` is enforced at commit time, and a write rejected only by
    that constraint returns ``AdmitResult.DUPLICATE`` instead of raising.
    Any other failure raises ``StoreError``. The store stamps ``created_at``
    at write time; a value on the incoming event is ignored.
    """

    def exists(self, message_id: str) -> bool: ...
    def insert_if_absent(self, event: NotificationEvent) -> AdmitResult: ...
    def recent(self, limit: int) -> list[NotificationEvent]: ...
