"""SQLite infrastructure for account and notification storage."""

from mailbeacon.infrastructure.sqlite.client import (
    SQLiteAccountStore,
    SQLiteClient,
    SQLiteEventStore,
)

__all__ = [
    "SQLiteClient",
    "SQLiteAccountStore",
    "SQLiteEventStore",
]
