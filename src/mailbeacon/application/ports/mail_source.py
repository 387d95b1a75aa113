"""Port implemented by the IMAP and POP3 adapters."""

from __future__ import annotations

from typing import Protocol

from mailbeacon.domain.entities import RawMessage
from mailbeacon.domain.models import Account


class MailSource(Protocol):
    """Reads metadata for the newest messages of a remote mailbox.

    Raises ``ConnectError``, ``AuthError`` or ``ProtocolError``; messages that
    cannot be parsed are skipped rather than failing the call.
    """

    def fetch_recent(self, account: Account) -> list[RawMessage]: ...
