"""Domain models and entities."""

from mailbeacon.domain.entities import RawMessage
from mailbeacon.domain.errors import (
    AccountNotFoundError,
    AuthError,
    ConnectError,
    DuplicateAccountError,
    MailCheckError,
    ParseError,
    ProtocolError,
    StoreError,
)
from mailbeacon.domain.models import (
    Account,
    AdmitResult,
    HubMessage,
    MailProtocol,
    NotificationEvent,
)

__all__ = [
    "Account",
    "AdmitResult",
    "HubMessage",
    "MailProtocol",
    "NotificationEvent",
    "RawMessage",
    "MailCheckError",
    "ConnectError",
    "AuthError",
    "ProtocolError",
    "ParseError",
    "StoreError",
    "AccountNotFoundError",
    "DuplicateAccountError",
]
