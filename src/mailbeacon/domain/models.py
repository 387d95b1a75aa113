"""Domain models for Mailbeacon."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MailProtocol(str, Enum):
    """Wire protocols a monitored mailbox can be polled with."""

    IMAP = "IMAP"
    POP3 = "POP3"


class Account(BaseModel):
    """A monitored mailbox.

    The password never leaves the process through ``model_dump``; callers that
    need it use ``password.get_secret_value()``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    email: str
    password: SecretStr = Field(exclude=True)
    host: str
    port: int
    protocol: MailProtocol
    is_active: bool = Field(default=True, alias="isActive")
    last_check: datetime | None = Field(default=None, alias="lastCheck")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")


class NotificationEvent(BaseModel):
    """The persisted record of one detected new message.

    ``message_id`` is unique across the event store. ``created_at`` is the
    store insertion time, stamped by the store itself; it stays ``None`` on an
    event that has not been read back from the store.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    message_id: str = Field(alias="messageId")
    account_email: str = Field(alias="accountEmail")
    sender: str = Field(alias="from")
    subject: str
    received_at: datetime = Field(alias="receivedAt")
    created_at: datetime | None = Field(default=None, alias="createdAt")


class AdmitResult(str, Enum):
    """Outcome of pushing an event through the dedup gate."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"


HubMessageType = Literal["accounts-snapshot", "events-snapshot", "new-event"]


class HubMessage(BaseModel):
    """A typed message delivered to subscribers."""

    type: HubMessageType
    payload: list[dict[str, Any]] | None = None
    notification: dict[str, Any] | None = None

    @classmethod
    def accounts_snapshot(cls, accounts: list[Account]) -> "HubMessage":
        return cls(
            type="accounts-snapshot",
            payload=[a.model_dump(mode="json", by_alias=True) for a in accounts],
        )

    @classmethod
    def events_snapshot(cls, events: list[NotificationEvent]) -> "HubMessage":
        return cls(
            type="events-snapshot",
            payload=[e.model_dump(mode="json", by_alias=True) for e in events],
        )

    @classmethod
    def new_event(cls, event: NotificationEvent) -> "HubMessage":
        return cls(type="new-event", notification=event.model_dump(mode="json", by_alias=True))

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with unset fields omitted."""
        return self.model_dump(mode="json", exclude_none=True)
