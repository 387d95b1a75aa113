"""Line-oriented TLS transport for the POP3 adapter."""

from __future__ import annotations

import socket
import ssl
from typing import BinaryIO, Optional, Protocol

from mailbeacon.domain.errors import ConnectError, ParseError

# RFC 1939 caps lines at 512 octets; leave headroom for sloppy servers
MAX_LINE = 8192


class LineTooLongError(ParseError):
    """A line exceeded ``MAX_LINE``; the rest of it was read and discarded."""


def read_bounded_line(stream: BinaryIO, limit: int = MAX_LINE) -> bytes:
    """Read one line of at most ``limit`` bytes from ``stream``.

    An oversized line is consumed up to and including its newline before
    ``LineTooLongError`` is raised, so the next read starts on a fresh line.
    """
    line = stream.readline(limit + 1)
    if len(line) <= limit or line.endswith(b"\n"):
        return line
    while True:
        chunk = stream.readline(limit)
        if not chunk or chunk.endswith(b"\n"):
            break
    raise LineTooLongError(f"line longer than {limit} bytes")


class LineTransport(Protocol):
    """CRLF line stream to a POP3 server."""

    def readline(self) -> bytes:
        """Next line including its terminator, or ``b""`` on EOF.

        Raises ``LineTooLongError`` after discarding an oversized line.
        """
        ...

    def send_line(self, line: str) -> None: ...

    def close(self) -> None: ...


class TlsLineTransport:
    """POP3S connection (implicit TLS, usually port 995)."""

    def __init__(
        self,
        host: str,
        port: int,
        ssl_context: ssl.SSLContext,
        timeout: Optional[float] = None,
    ) -> None:
        try:
            raw = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise ConnectError(f"cannot reach {host}:{port}: {e}") from e
        try:
            self._sock = ssl_context.wrap_socket(raw, server_hostname=host)
        except OSError as e:
            raw.close()
            raise ConnectError(f"TLS handshake with {host}:{port} failed: {e}") from e
        self._file = self._sock.makefile("rb")

    def readline(self) -> bytes:
        return read_bounded_line(self._file)

    def send_line(self, line: str) -> None:
        self._sock.sendall(line.encode("utf-8") + b"\r\n")

    def close(self) -> None:
        try:
            self._file.close()
        finally:
            self._sock.close()
