"""IMAP adapter: reads the newest INBOX envelopes with imapclient."""

from __future__ import annotations

import ssl
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError, LoginError
from loguru import logger

from mailbeacon.domain.entities import RawMessage
from mailbeacon.domain.errors import AuthError, ConnectError, ProtocolError
from mailbeacon.domain.models import Account, utcnow
from mailbeacon.infrastructure.email.rfc822 import decode_words
from mailbeacon.infrastructure.email.window import DEFAULT_WINDOW, recent_window

INBOX = "INBOX"


def format_address(addr: Any) -> str:
    """``"Name <mailbox@host>"`` when the address has a personal name, else ``"mailbox@host"``."""
    mailbox = decode_words(addr.mailbox)
    host = decode_words(addr.host)
    bare = f"{mailbox}@{host}" if host else mailbox
    name = decode_words(addr.name)
    if name:
        return f"{name} <{bare}>"
    return bare


class ImapMailSource:
    """Reads the newest envelopes of an account's INBOX over IMAPS.

    Works on sequence numbers, not UIDs: the window is "the last N messages
    currently in the mailbox", matching the POP3 adapter.
    """

    protocol = "IMAP"

    def __init__(
        self,
        window: int = DEFAULT_WINDOW,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        client_factory: Callable[..., IMAPClient] = IMAPClient,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.window = window
        self.timeout = timeout
        self.ssl_context = ssl_context or ssl.create_default_context()
        self.client_factory = client_factory
        self.clock = clock

    def _connect(self, account: Account) -> IMAPClient:
        try:
            client = self.client_factory(
                account.host,
                port=account.port,
                ssl=True,
                ssl_context=self.ssl_context,
                use_uid=False,
                timeout=self.timeout,
            )
        except (OSError, IMAPClientError) as e:
            raise ConnectError(f"cannot reach {account.host}:{account.port}: {e}") from e

        try:
            client.login(account.email, account.password.get_secret_value())
        except LoginError as e:
            self._logout(client)
            raise AuthError(f"login rejected for {account.email}: {e}") from e
        except (OSError, IMAPClientError) as e:
            self._logout(client)
            raise ConnectError(f"login failed for {account.email}: {e}") from e
        return client

    def _logout(self, client: IMAPClient) -> None:
        try:
            client.logout()
        except Exception as e:
            logger.debug(f"IMAP logout failed: {e}")

    def fetch_recent(self, account: Account) -> list[RawMessage]:
        client = self._connect(account)
        try:
            return self._fetch_window(client, account)
        except OSError as e:
            raise ConnectError(f"connection lost for {account.email}: {e}") from e
        except IMAPClientError as e:
            raise ProtocolError(f"IMAP error for {account.email}: {e}") from e
        finally:
            self._logout(client)

    def _fetch_window(self, client: IMAPClient, account: Account) -> list[RawMessage]:
        info = client.select_folder(INBOX, readonly=True)
        try:
            count = int(info[b"EXISTS"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"SELECT {INBOX} returned no message count") from e

        seqs = recent_window(count, self.window)
        if not seqs:
            return []

        observed_at = self.clock()
        data = client.fetch(f"{seqs.start}:{seqs.stop - 1}", ["ENVELOPE", "UID"])

        messages: list[RawMessage] = []
        for seq in sorted(data):
            item = data[seq]
            envelope = item.get(b"ENVELOPE")
            if envelope is None:
                logger.debug(f"Message {seq} for {account.email} has no envelope, skipping")
                continue
            try:
                messages.append(self._to_raw(account, item, envelope, observed_at))
            except (AttributeError, TypeError, ValueError, IndexError) as e:
                logger.warning(f"Unparsable envelope for message {seq} of {account.email}: {e}")
        return messages

    def _to_raw(self, account: Account, item: dict, envelope: Any, observed_at: datetime) -> RawMessage:
        sender = format_address(envelope.from_[0]) if envelope.from_ else ""

        message_id = decode_words(envelope.message_id) or None
        if message_id is None and item.get(b"UID") is not None:
            # UIDs are stable per mailbox, unlike sequence numbers
            message_id = f"imap-{account.email}-{item[b'UID']}"

        # imapclient hands back naive local time for envelope dates
        received_at = envelope.date.astimezone(timezone.utc) if envelope.date else observed_at

        return RawMessage(
            sender=sender,
            subject=decode_words(envelope.subject),
            received_at=received_at,
            message_id=message_id,
        )
