"""Failure taxonomy for mailbox checks and persistence."""


class MailCheckError(Exception):
    """Base class for failures that end one account's poll attempt."""


class ConnectError(MailCheckError):
    """Transport or TLS failure while reaching the mail server."""


class AuthError(MailCheckError):
    """The server rejected the account credentials."""


class ProtocolError(MailCheckError):
    """The server sent a malformed or unexpected reply."""


class ParseError(MailCheckError):
    """A single message's header or envelope could not be parsed.

    Adapters recover from this locally by skipping the message.
    """


class StoreError(Exception):
    """Persistence failed for a reason other than a duplicate message id."""


class AccountNotFoundError(LookupError):
    pass


class DuplicateAccountError(ValueError):
    pass
