"""Interfaces the core depends on; implementations live in infrastructure."""

from mailbeacon.application.ports.account_store import AccountStore
from mailbeacon.application.ports.event_store import EventStore
from mailbeacon.application.ports.mail_source import MailSource
from mailbeacon.application.ports.subscriber import SubscriberChannel

__all__ = ["AccountStore", "EventStore", "MailSource", "SubscriberChannel"]
