"""PostgreSQL storage for monitored accounts and notification events."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, Mapping

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from loguru import logger

from mailbeacon.domain.errors import AccountNotFoundError, DuplicateAccountError, StoreError
from mailbeacon.domain.models import Account, AdmitResult, NotificationEvent, utcnow
from mailbeacon.infrastructure.settings import Settings, get_settings

ACCOUNT_FIELDS = ("email", "password", "host", "port", "protocol", "is_active")


class PostgresClientWrapper:
    """Connection factory and schema owner for PostgreSQL."""

    def __init__(self, settings: Settings | None = None):
        """Initialize PostgreSQL client wrapper."""
        self.settings = settings or get_settings()

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection, None, None]:
        """One connection per unit of work; commits on success, rolls back on error."""
        with psycopg.connect(self.settings.postgres_dsn, row_factory=dict_row) as conn:
            yield conn

    def health_check(self) -> dict[str, Any]:
        """Check PostgreSQL connection health."""
        try:
            with self.connection() as conn:
                version = conn.execute("SELECT version() AS v").fetchone()["v"]
            return {
                "status": "healthy",
                "backend": "postgres",
                "host": self.settings.postgres_host,
                "port": self.settings.postgres_port,
                "database": self.settings.postgres_db,
                "version": version,
            }
        except psycopg.Error as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return {
                "status": "unhealthy",
                "backend": "postgres",
                "host": self.settings.postgres_host,
                "port": self.settings.postgres_port,
                "database": self.settings.postgres_db,
                "error": str(e),
            }

    def setup_schema(self) -> None:
        """Set up database schema for the application."""
        logger.info(f"Preparing PostgreSQL schema at {self.settings.postgres_host}:{self.settings.postgres_port}")
        with self.connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS email_accounts (
                    id BIGSERIAL PRIMARY KEY,
                    email VARCHAR(320) NOT NULL UNIQUE,
                    password TEXT NOT NULL,
                    host VARCHAR(255) NOT NULL,
                    port INTEGER NOT NULL,
                    protocol VARCHAR(8) NOT NULL CHECK (protocol IN ('IMAP', 'POP3')),
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    last_check TIMESTAMP WITH TIME ZONE,
                    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS email_notifications (
                    id BIGSERIAL PRIMARY KEY,
                    message_id TEXT NOT NULL UNIQUE,
                    account_email VARCHAR(320) NOT NULL,
                    sender TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    received_at TIMESTAMP WITH TIME ZONE NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_email_notifications_received_at
                    ON email_notifications(received_at);
            """)
        logger.info("Database schema setup complete")


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
        cols[key] = value
    return cols


class PostgresAccountStore:
    """Account table backed by PostgreSQL."""

    def __init__(self, client: PostgresClientWrapper):
        self.client = client

    def list(self) -> list[Account]:
        with self.client.connection() as conn:
            rows = conn.execute("SELECT * FROM email_accounts ORDER BY id").fetchall()
        return [Account(**row) for row in rows]

    def list_active(self) -> list[Account]:
        with self.client.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM email_accounts WHERE is_active ORDER BY id"
            ).fetchall()
        return [Account(**row) for row in rows]

    def get(self, account_id: int) -> Account:
        with self.client.connection() as conn:
            row = conn.execute(
                "SELECT * FROM email_accounts WHERE id = %s", (account_id,)
            ).fetchone()
        if row is None:
            raise AccountNotFoundError(account_id)
        return Account(**row)

    def create(self, data: Mapping[str, Any]) -> Account:
        cols = _account_columns(data)
        query = sql.SQL("INSERT INTO email_accounts ({}) VALUES ({}) RETURNING *").format(
            sql.SQL(", ").join(map(sql.Identifier, cols)),
            sql.SQL(", ").join(sql.Placeholder() * len(cols)),
        )
        try:
            with self.client.connection() as conn:
                row = conn.execute(query, tuple(cols.values())).fetchone()
        except psycopg.errors.UniqueViolation as e:
            raise DuplicateAccountError(f"account {cols.get('email')} already exists") from e
        logger.info(f"Created account {row['email']} ({row['id']})")
        return Account(**row)

    def update(self, account_id: int, data: Mapping[str, Any]) -> Account:
        cols = _account_columns(data)
        cols["updated_at"] = utcnow()
        query = sql.SQL("UPDATE email_accounts SET {} WHERE id = %s RETURNING *").format(
            sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(name)) for name in cols
            ),
        )
        try:
            with self.client.connection() as conn:
                row = conn.execute(query, (*cols.values(), account_id)).fetchone()
        except psycopg.errors.UniqueViolation as e:
            raise DuplicateAccountError(f"account {cols.get('email')} already exists") from e
        if row is None:
            raise AccountNotFoundError(account_id)
        return Account(**row)

    def delete(self, account_id: int) -> None:
        with self.client.connection() as conn:
            cur = conn.execute("DELETE FROM email_accounts WHERE id = %s", (account_id,))
            if cur.rowcount == 0:
                raise AccountNotFoundError(account_id)
        logger.info(f"Deleted account {account_id}")

    def touch_last_check(self, account_id: int, ts: datetime) -> None:
        with self.client.connection() as conn:
            conn.execute(
                "UPDATE email_accounts SET last_check = %s WHERE id = %s",
                (ts, account_id),
            )


class PostgresEventStore:
    """Notification log backed by PostgreSQL; ``message_id`` is UNIQUE."""

    def __init__(self, client: PostgresClientWrapper):
        self.client = client

    def exists(self, message_id: str) -> bool:
        try:
            with self.client.connection() as conn:
                row = conn.execute(
                    "SELECT 1 FROM email_notifications WHERE message_id = %s", (message_id,)
                ).fetchone()
        except psycopg.Error as e:
            raise StoreError(f"lookup of {message_id} failed: {e}") from e
        return row is not None

    def insert_if_absent(self, event: NotificationEvent) -> AdmitResult:
        try:
            with self.client.connection() as conn:
                cur = conn.execute(
                    """INSERT INTO email_notifications
                       (message_id, account_email, sender, subject, received_at, created_at)
                       VALUES (%s, %s, %s, %s, %s, %s)
                       ON CONFLICT (message_id) DO NOTHING""",
                    (
                        event.message_id,
                        event.account_email,
                        event.sender,
                        event.subject,
                        event.received_at,
                        utcnow(),
                    ),
                )
                inserted = cur.rowcount == 1
        except psycopg.Error as e:
            raise StoreError(f"insert of {event.message_id} failed: {e}") from e
        return AdmitResult.INSERTED if inserted else AdmitResult.DUPLICATE

    def recent(self, limit: int) -> list[NotificationEvent]:
        if limit <= 0:
            return []
        try:
            with self.client.connection() as conn:
                rows = conn.execute(
                    """SELECT message_id, account_email, sender, subject, received_at, created_at
                       FROM email_notifications
                       ORDER BY received_at DESC, id DESC
                       LIMIT %s""",
                    (limit,),
                ).fetchall()
        except psycopg.Error as e:
            raise StoreError(f"recent events query failed: {e}") from e
        return [NotificationEvent(**row) for row in rows]
