"""Shared fixtures; makes ``tests/`` importable so tests can use ``fakes``."""

import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from mailbeacon.infrastructure.settings import Settings
from mailbeacon.infrastructure.sqlite import SQLiteAccountStore, SQLiteClient, SQLiteEventStore


@pytest.fixture
def sqlite_client(tmp_path: Path) -> SQLiteClient:
    return SQLiteClient(tmp_path / "mailbeacon.db")


@pytest.fixture
def sqlite_accounts(sqlite_client: SQLiteClient) -> SQLiteAccountStore:
    return SQLiteAccountStore(sqlite_client)


@pytest.fixture
def sqlite_events(sqlite_client: SQLiteClient) -> SQLiteEventStore:
    return SQLiteEventStore(sqlite_client)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        sqlite_db_path=str(tmp_path / "mailbeacon.db"),
        poll_interval_seconds=3600,
        replay_size=50,
    )
