"""POP3 adapter: USER/PASS/STAT/TOP spoken directly over a TLS line transport."""

from __future__ import annotations

import ssl
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from mailbeacon.domain.entities import RawMessage
from mailbeacon.domain.errors import AuthError, ConnectError, MailCheckError, ParseError, ProtocolError
from mailbeacon.domain.models import Account, utcnow
from mailbeacon.infrastructure.email.providers.pop3.transport import (
    LineTooLongError,
    LineTransport,
    TlsLineTransport,
)
from mailbeacon.infrastructure.email.rfc822 import header_block_to_raw
from mailbeacon.infrastructure.email.window import DEFAULT_WINDOW, recent_window

OK = b"+OK"
TERMINATORS = (b".\r\n", b".\n")

TransportFactory = Callable[[Account], LineTransport]


def synthesize_message_id(email: str, index: int, observed_at: datetime) -> str:
    """Stand-in id for messages without a Message-ID header.

    Only unique within one poll: the index shifts when other clients delete
    messages, so the same message can get a new id on a later poll.
    """
    return f"pop3-{email}-{index}-{int(observed_at.timestamp())}"


def parse_stat_count(reply: bytes) -> int:
    """Message count from a ``+OK <count> <octets>`` STAT reply; 0 if unparsable."""
    parts = reply.split()
    if len(parts) < 2:
        return 0
    try:
        return max(int(parts[1]), 0)
    except ValueError:
        return 0


class _ConnectionGone(Exception):
    """The server hung up mid-scan."""


class Pop3MailSource:
    """Reads the newest message headers of a POP3 mailbox.

    Speaks the protocol directly (USER / PASS / STAT / TOP / QUIT) instead of
    going through ``poplib`` so that every reply can be classified: rejected
    credentials, unexpected replies and truncated header blocks each map to
    their own error, and a truncated block only costs that one message.
    """

    protocol = "POP3"

    def __init__(
        self,
        window: int = DEFAULT_WINDOW,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        transport_factory: Optional[TransportFactory] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.window = window
        self.timeout = timeout
        self.ssl_context = ssl_context or ssl.create_default_context()
        self.transport_factory = transport_factory or self._open_tls
        self.clock = clock

    def _open_tls(self, account: Account) -> LineTransport:
        return TlsLineTransport(account.host, account.port, self.ssl_context, timeout=self.timeout)

    def fetch_recent(self, account: Account) -> list[RawMessage]:
        transport = self.transport_factory(account)
        try:
            return self._session(transport, account)
        except OSError as e:
            raise ConnectError(f"connection lost for {account.email}: {e}") from e
        finally:
            try:
                transport.close()
            except OSError as e:
                logger.debug(f"POP3 close failed for {account.email}: {e}")

    def _session(self, t: LineTransport, account: Account) -> list[RawMessage]:
        if not t.readline():
            raise ConnectError(f"server closed connection before greeting for {account.email}")

        reply = self._command(t, f"USER {account.email}")
        if not reply.startswith(OK):
            raise AuthError(f"USER rejected for {account.email}: {_show(reply)}")

        reply = self._command(t, f"PASS {account.password.get_secret_value()}")
        if not reply.startswith(OK):
            raise AuthError(f"PASS rejected for {account.email}: {_show(reply)}")

        reply = self._command(t, "STAT")
        if not reply.startswith(OK):
            raise ProtocolError(f"STAT failed for {account.email}: {_show(reply)}")

        count = parse_stat_count(reply)
        if count == 0:
            self._quit(t)
            return []

        observed_at = self.clock()
        messages: list[RawMessage] = []
        for index in recent_window(count, self.window):
            try:
                raw = self._top(t, index, observed_at)
            except ParseError as e:
                logger.warning(f"Skipping message {index} for {account.email}: {e}")
                continue
            except (_ConnectionGone, OSError) as e:
                logger.warning(f"Connection lost at message {index} for {account.email}: {e}")
                return messages

            if raw is None:
                continue
            if raw.message_id is None:
                raw = RawMessage(
                    sender=raw.sender,
                    subject=raw.subject,
                    received_at=raw.received_at,
                    message_id=synthesize_message_id(account.email, index, observed_at),
                )
            messages.append(raw)

        self._quit(t)
        return messages

    def _command(self, t: LineTransport, line: str) -> bytes:
        t.send_line(line)
        return t.readline()

    def _top(self, t: LineTransport, index: int, observed_at: datetime) -> Optional[RawMessage]:
        reply = self._command(t, f"TOP {index} 0")
        if not reply:
            raise _ConnectionGone("no reply to TOP")
        if not reply.startswith(OK):
            logger.debug(f"TOP {index} refused: {_show(reply)}")
            return None
        return header_block_to_raw(self._read_multiline(t), observed_at)

    def _read_multiline(self, t: LineTransport) -> bytes:
        lines: list[bytes] = []
        oversized = False
        while True:
            try:
                line = t.readline()
            except LineTooLongError:
                # Keep reading to the terminator so the next command stays in sync
                oversized = True
                continue
            if not line:
                raise ParseError("header block ended without terminator")
            if line in TERMINATORS:
                if oversized:
                    raise ParseError("header block contains an oversized line")
                return b"".join(lines)
            if line.startswith(b".."):
                line = line[1:]
            lines.append(line)

    def _quit(self, t: LineTransport) -> None:
        # Best-effort: a failed QUIT does not undo a successful scan
        try:
            self._command(t, "QUIT")
        except (OSError, MailCheckError) as e:
            logger.debug(f"POP3 QUIT failed: {e}")


def _show(reply: bytes) -> str:
    return reply.decode("utf-8", errors="replace").strip()
