"""Select and build the account and event stores for the configured backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from mailbeacon.application.ports.account_store import AccountStore
from mailbeacon.application.ports.event_store import EventStore
from mailbeacon.infrastructure.settings import Settings, get_settings


@dataclass
class StoreBundle:
    accounts: AccountStore
    events: EventStore
    health_check: Callable[[], dict[str, Any]]


def build_stores(settings: Settings | None = None) -> StoreBundle:
    settings = settings or get_settings()

    if settings.store_backend == "postgres":
        from mailbeacon.infrastructure.postgres_client import (
            PostgresAccountStore,
            PostgresClientWrapper,
            PostgresEventStore,
        )

        client = PostgresClientWrapper(settings)
        client.setup_schema()
        logger.info("Using PostgreSQL store backend")
        return StoreBundle(
            accounts=PostgresAccountStore(client),
            events=PostgresEventStore(client),
            health_check=client.health_check,
        )

    from mailbeacon.infrastructure.sqlite import SQLiteAccountStore, SQLiteClient, SQLiteEventStore

    client = SQLiteClient(settings.sqlite_db_path)
    logger.info("Using SQLite store backend")
    return StoreBundle(
        accounts=SQLiteAccountStore(client),
        events=SQLiteEventStore(client),
        health_check=client.health_check,
    )
