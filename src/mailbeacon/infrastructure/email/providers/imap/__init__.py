from mailbeacon.infrastructure.email.providers.imap.client import ImapMailSource, format_address

__all__ = ["ImapMailSource", "format_address"]
