"""SQLite storage for monitored accounts and notification events."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Mapping

from loguru import logger

from mailbeacon.domain.errors import AccountNotFoundError, DuplicateAccountError, StoreError
from mailbeacon.domain.models import Account, AdmitResult, NotificationEvent, utcnow

ACCOUNT_FIELDS = ("email", "password", "host", "port", "protocol", "is_active")


def _ts(dt: datetime | None) -> str | None:
    """UTC ISO-8601 so that text ordering matches time ordering."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _account_columns(data: Mapping[str, Any]) -> dict[str, Any]:
    cols: dict[str, Any] = {}
    for key in ACCOUNT_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key == "password" and hasattr(value, "get_secret_value"):
            value = value.get_secret_value()
        elif key == "protocol":
            value = getattr(value, "value", value)
        elif key == "is_active":
            value = int(bool(value))
        cols[key] = value
    return cols


class SQLiteClient:
    """Connection factory and schema owner for the SQLite database."""

    def __init__(self, db_path: str | Path = "./data/mailbeacon.db"):
        self.db_path = Path(db_path)
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connection() as conn:
            conn.executescript("""
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS email_accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL,
                    host TEXT NOT NULL,
                    port INTEGER NOT NULL,
                    protocol TEXT NOT NULL CHECK(protocol IN ('IMAP','POP3')),
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_check TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS email_notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    message_id TEXT NOT NULL UNIQUE,
                    account_email TEXT NOT NULL,
                    sender TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    received_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_notifications_received_at
                    ON email_notifications(received_at);
            """)
            logger.info(f"SQLite database initialized at {self.db_path}")

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def health_check(self) -> dict[str, Any]:
        try:
            with self._connection() as conn:
                conn.execute("SELECT 1")
            return {"status": "healthy", "backend": "sqlite", "path": str(self.db_path)}
        except sqlite3.Error as e:
            logger.error(f"SQLite health check failed: {e}")
            return {"status": "unhealthy", "backend": "sqlite", "error": str(e)}


class SQLiteAccountStore:
    """Account table backed by SQLite."""

    def __init__(self, client: SQLiteClient):
        self.client = client

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            email=row["email"],
            password=row["password"],
            host=row["host"],
            port=row["port"],
            protocol=row["protocol"],
            is_active=bool(row["is_active"]),
            last_check=row["last_check"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list(self) -> list[Account]:
        with self.client._connection() as conn:
            rows = conn.execute("SELECT * FROM email_accounts ORDER BY id").fetchall()
        return [self._row_to_account(r) for r in rows]

    def list_active(self) -> list[Account]:
        with self.client._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM email_accounts WHERE is_active = 1 ORDER BY id"
            ).fetchall()
        return [self._row_to_account(r) for r in rows]

    def get(self, account_id: int) -> Account:
        with self.client._connection() as conn:
            row = conn.execute(
                "SELECT * FROM email_accounts WHERE id = ?", (account_id,)
            ).fetchone()
        if row is None:
            raise AccountNotFoundError(account_id)
        return self._row_to_account(row)

    def create(self, data: Mapping[str, Any]) -> Account:
        cols = _account_columns(data)
        cols.setdefault("is_active", 1)
        now = _ts(utcnow())
        cols["created_at"] = now
        cols["updated_at"] = now

        names = ", ".join(cols)
        placeholders = ", ".join("?" * len(cols))
        try:
            with self.client._connection() as conn:
                cursor = conn.execute(
                    f"INSERT INTO email_accounts ({names}) VALUES ({placeholders})",
                    tuple(cols.values()),
                )
                account_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise DuplicateAccountError(f"account {cols.get('email')} already exists") from e

        logger.info(f"Created account {cols.get('email')} ({account_id})")
        return self.get(account_id)

    def update(self, account_id: int, data: Mapping[str, Any]) -> Account:
        cols = _account_columns(data)
        cols["updated_at"] = _ts(utcnow())

        assignments = ", ".join(f"{name} = ?" for name in cols)
        try:
            with self.client._connection() as conn:
                cursor = conn.execute(
                    f"UPDATE email_accounts SET {assignments} WHERE id = ?",
                    (*cols.values(), account_id),
                )
                if cursor.rowcount == 0:
                    raise AccountNotFoundError(account_id)
        except sqlite3.IntegrityError as e:
            raise DuplicateAccountError(f"account {cols.get('email')} already exists") from e

        return self.get(account_id)

    def delete(self, account_id: int) -> None:
        with self.client._connection() as conn:
            cursor = conn.execute("DELETE FROM email_accounts WHERE id = ?", (account_id,))
            if cursor.rowcount == 0:
                raise AccountNotFoundError(account_id)
        logger.info(f"Deleted account {account_id}")

    def touch_last_check(self, account_id: int, ts: datetime) -> None:
        # No-op when the account was deleted while its check was running
        with self.client._connection() as conn:
            conn.execute(
                "UPDATE email_accounts SET last_check = ? WHERE id = ?",
                (_ts(ts), account_id),
            )


class SQLiteEventStore:
    """Notification log backed by SQLite; ``message_id`` is UNIQUE."""

    def __init__(self, client: SQLiteClient):
        self.client = client

    def exists(self, message_id: str) -> bool:
        try:
            with self.client._connection() as conn:
                row = conn.execute(
                    "SELECT 1 FROM email_notifications WHERE message_id = ?", (message_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"lookup of {message_id} failed: {e}") from e
        return row is not None

    def insert_if_absent(self, event: NotificationEvent) -> AdmitResult:
        try:
            with self.client._connection() as conn:
                cursor = conn.execute(
                    """INSERT INTO email_notifications
                       (message_id, account_email, sender, subject, received_at, created_at)
                       VALUES (?, ?, ?, ?, ?, ?)
                       ON CONFLICT(message_id) DO NOTHING""",
                    (
                        event.message_id,
                        event.account_email,
                        event.sender,
                        event.subject,
                        _ts(event.received_at),
                        _ts(utcnow()),
                    ),
                )
                inserted = cursor.rowcount == 1
        except sqlite3.Error as e:
            raise StoreError(f"insert of {event.message_id} failed: {e}") from e

        return AdmitResult.INSERTED if inserted else AdmitResult.DUPLICATE

    def recent(self, limit: int) -> list[NotificationEvent]:
        """Most recent events by received time, newest first."""
        if limit <= 0:
            return []
        try:
            with self.client._connection() as conn:
                rows = conn.execute(
                    """SELECT * FROM email_notifications
                       ORDER BY received_at DESC, id DESC
                       LIMIT ?""",
                    (limit,),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"recent events query failed: {e}") from e

        return [
            NotificationEvent(
                message_id=row["message_id"],
                account_email=row["account_email"],
                sender=row["sender"],
                subject=row["subject"],
                received_at=row["received_at"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
