"""Mail protocol adapters and the protocol -> adapter registry."""

from __future__ import annotations

import ssl

from mailbeacon.application.ports.mail_source import MailSource
from mailbeacon.domain.models import MailProtocol
from mailbeacon.infrastructure.email.providers.imap import ImapMailSource
from mailbeacon.infrastructure.email.providers.pop3 import Pop3MailSource
from mailbeacon.infrastructure.settings import Settings, get_settings


def make_ssl_context(verify: bool = True) -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    if not verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def build_mail_sources(settings: Settings | None = None) -> dict[MailProtocol, MailSource]:
    """Adapters keyed by the protocol tag stored on each account."""
    settings = settings or get_settings()
    ctx = make_ssl_context(settings.tls_verify)
    return {
        MailProtocol.IMAP: ImapMailSource(
            window=settings.message_window,
            timeout=settings.mail_timeout_seconds,
            ssl_context=ctx,
        ),
        MailProtocol.POP3: Pop3MailSource(
            window=settings.message_window,
            timeout=settings.mail_timeout_seconds,
            ssl_context=ctx,
        ),
    }


__all__ = [
    "ImapMailSource",
    "Pop3MailSource",
    "build_mail_sources",
    "make_ssl_context",
]
