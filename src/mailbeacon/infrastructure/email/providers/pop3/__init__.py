from mailbeacon.infrastructure.email.providers.pop3.client import (
    Pop3MailSource,
    parse_stat_count,
    synthesize_message_id,
)
from mailbeacon.infrastructure.email.providers.pop3.transport import (
    MAX_LINE,
    LineTooLongError,
    LineTransport,
    TlsLineTransport,
    read_bounded_line,
)

__all__ = [
    "Pop3MailSource",
    "parse_stat_count",
    "synthesize_message_id",
    "MAX_LINE",
    "LineTooLongError",
    "LineTransport",
    "TlsLineTransport",
    "read_bounded_line",
]
