from concurrent.futures import ThreadPoolExecutor

import pytest

from fakes import InMemoryEventStore, make_event
from mailbeacon.application.use_cases.admit_event import DedupGate
from mailbeacon.domain.errors import StoreError
from mailbeacon.domain.models import AdmitResult


def test_first_admit_inserts_then_duplicates():
    gate = DedupGate(InMemoryEventStore())
    event = make_event("<m1@y.com>")

    assert gate.admit(event) is AdmitResult.INSERTED
    assert gate.admit(event) is AdmitResult.DUPLICATE
    assert gate.admit(event) is AdmitResult.DUPLICATE


def test_precheck_hit_skips_the_write():
    store = InMemoryEventStore()
    gate = DedupGate(store)
    gate.admit(make_event("<m1@y.com>"))

    gate.admit(make_event("<m1@y.com>"))

    assert store.insert_attempts == 1


def test_lost_race_is_reported_as_duplicate():
    # Every pre-check misses, so the unique constraint has to decide
    store = InMemoryEventStore(blind_exists=True)
    gate = DedupGate(store)

    assert gate.admit(make_event("<m1@y.com>")) is AdmitResult.INSERTED
    assert gate.admit(make_event("<m1@y.com>")) is AdmitResult.DUPLICATE
    assert store.insert_attempts == 2


def test_store_failure_raises_store_error():
    gate = DedupGate(InMemoryEventStore(failing_ids={"<bad@y.com>"}))

    with pytest.raises(StoreError):
        gate.admit(make_event("<bad@y.com>"))


def test_concurrent_admits_insert_exactly_once(sqlite_events):
    gate = DedupGate(sqlite_events)
    event = make_event("<race@y.com>")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: gate.admit(event), range(16)))

    assert results.count(AdmitResult.INSERTED) == 1
    assert results.count(AdmitResult.DUPLICATE) == 15
    assert [e.message_id for e in sqlite_events.recent(10)] == ["<race@y.com>"]


def test_distinct_ids_are_all_inserted(sqlite_events):
    gate = DedupGate(sqlite_events)
    results = [gate.admit(make_event(f"<m{i}@y.com>", minutes=i)) for i in range(5)]

    assert results == [AdmitResult.INSERTED] * 5
