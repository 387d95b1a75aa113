"""Adapter-level message metadata."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from mailbeacon.domain.models import NotificationEvent


@dataclass(frozen=True)
class RawMessage:
    """Message metadata as observed by a protocol adapter. Never persisted."""

    sender: str
    subject: str
    received_at: datetime
    # Protocol-native id; None when the server did not provide one
    message_id: Optional[str] = None

    def to_event(self, account_email: str, created_at: Optional[datetime] = None) -> NotificationEvent:
        if not self.message_id:
            raise ValueError("raw message has no message id")
        return NotificationEvent(
            message_id=self.message_id,
            account_email=account_email,
            sender=self.sender,
            subject=self.subject,
            received_at=self.received_at,
            created_at=created_at,
        )
