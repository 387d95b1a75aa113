"""RFC 5322 header helpers shared by the mail adapters."""

from __future__ import annotations

from datetime import datetime, timezone
from email import errors, policy
from email.header import decode_header, make_header
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from typing import Optional

from mailbeacon.domain.entities import RawMessage
from mailbeacon.domain.errors import ParseError


def as_utc(dt: datetime) -> datetime:
    # Naive datetimes from "-0000" dates are taken as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: Optional[str], fallback: datetime) -> datetime:
    """Parse an RFC 5322 date, returning ``fallback`` when absent or unparsable."""
    if not value:
        return fallback
    try:
        return as_utc(parsedate_to_datetime(value.strip()))
    except (TypeError, ValueError, IndexError):
        return fallback


def decode_words(value: object) -> str:
    """Decode RFC 2047 encoded-words (``=?utf-8?q?...?=``) into text."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    elif not isinstance(value, str):
        value = str(value)
    try:
        return str(make_header(decode_header(value))).strip()
    except (errors.HeaderParseError, UnicodeError, LookupError):
        return value.strip()


def header_block_to_raw(block: bytes, observed_at: datetime) -> RawMessage:
    """Build a ``RawMessage`` from a bare RFC 822 header block.

    ``message_id`` is left ``None`` when the header is missing so callers can
    synthesize their own.
    """
    try:
        em = BytesParser(policy=policy.compat32).parsebytes(block, headersonly=True)
    except (errors.MessageError, ValueError, TypeError) as e:
        raise ParseError(f"unparsable header block: {e}") from e

    if not em.keys():
        raise ParseError("header block contains no headers")

    message_id = decode_words(em.get("Message-ID")) or None

    return RawMessage(
        sender=decode_words(em.get("From")),
        subject=decode_words(em.get("Subject")),
        received_at=parse_date(decode_words(em.get("Date")), observed_at),
        message_id=message_id,
    )
