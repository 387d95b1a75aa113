import asyncio

from fakes import FakeImapServer, InMemoryAccountStore, InMemoryEventStore, StaticMailSource, make_account, raw
from mailbeacon.application.use_cases.admit_event import DedupGate
from mailbeacon.application.use_cases.check_mailbox import CheckMailboxUseCase
from mailbeacon.domain.errors import AuthError
from mailbeacon.domain.models import MailProtocol
from mailbeacon.infrastructure.email.providers.imap import ImapMailSource


def _use_case(source, events=None, accounts=None, published=None):
    events = events if events is not None else InMemoryEventStore()
    accounts = accounts if accounts is not None else InMemoryAccountStore([make_account()])

    async def record(event):
        if published is not None:
            published.append(event)

    return CheckMailboxUseCase(
        {MailProtocol.IMAP: source, MailProtocol.POP3: source},
        DedupGate(events),
        accounts,
        on_new_event=record,
    )


def test_imap_mailbox_reports_only_new_messages():
    server = FakeImapServer()
    for i in range(1, 4):
        server.add(f"Message {i}", f"<m{i}@y.com>")
    events = InMemoryEventStore()
    published = []
    check = _use_case(ImapMailSource(client_factory=server.connect), events=events, published=published)
    account = make_account()

    first = asyncio.run(check.run(account))
    server.add("Message 4", "<m4@y.com>")
    second = asyncio.run(check.run(account))

    assert first.inserted == 3
    assert second.inserted == 1
    assert second.duplicates == 3
    assert [e.subject for e in published] == ["Message 1", "Message 2", "Message 3", "Message 4"]
    assert events.ids == {f"<m{i}@y.com>" for i in range(1, 5)}


def test_insert_time_is_left_to_the_store():
    source = StaticMailSource({"a@x.com": [raw("<m1@y.com>")]})
    events = InMemoryEventStore()
    published = []

    result = asyncio.run(_use_case(source, events=events, published=published).run(make_account()))

    (event,) = result.new_events
    assert event.account_email == "a@x.com"
    assert event.created_at is None
    assert published == [event]
    (stored,) = events.recent(1)
    assert stored.created_at is not None


def test_last_check_is_touched_on_success_and_failure():
    accounts = InMemoryAccountStore([make_account(1, "a@x.com"), make_account(2, "b@x.com")])
    source = StaticMailSource(errors={"b@x.com": AuthError("nope")})
    check = _use_case(source, accounts=accounts)

    ok = asyncio.run(check.run(accounts.get(1)))
    failed = asyncio.run(check.run(accounts.get(2)))

    assert ok.ok
    assert not failed.ok
    assert "AuthError" in failed.error
    assert [account_id for account_id, _ in accounts.touched] == [1, 2]
    assert accounts.get(2).last_check is not None


def test_unexpected_errors_do_not_escape():
    source = StaticMailSource(errors={"a@x.com": RuntimeError("boom")})

    result = asyncio.run(_use_case(source).run(make_account()))

    assert result.error == "RuntimeError: boom"


def test_store_failure_drops_only_that_message():
    source = StaticMailSource({"a@x.com": [raw("<bad@y.com>"), raw("<good@y.com>")]})
    events = InMemoryEventStore(failing_ids={"<bad@y.com>"})

    result = asyncio.run(_use_case(source, events=events).run(make_account()))

    assert result.dropped == 1
    assert result.inserted == 1
    assert result.ok
    assert events.ids == {"<good@y.com>"}


def test_messages_without_id_are_skipped():
    source = StaticMailSource({"a@x.com": [raw(None), raw("<m1@y.com>")]})

    result = asyncio.run(_use_case(source).run(make_account()))

    assert result.inserted == 1


def test_unknown_protocol_is_a_failed_check():
    accounts = InMemoryAccountStore([make_account()])
    check = CheckMailboxUseCase({}, DedupGate(InMemoryEventStore()), accounts)

    result = asyncio.run(check.run(make_account()))

    assert not result.ok
    assert len(accounts.touched) == 1


def test_publish_failure_keeps_the_event_persisted():
    events = InMemoryEventStore()

    async def broken(event):
        raise RuntimeError("hub down")

    check = CheckMailboxUseCase(
        {MailProtocol.IMAP: StaticMailSource({"a@x.com": [raw("<m1@y.com>")]})},
        DedupGate(events),
        InMemoryAccountStore([make_account()]),
        on_new_event=broken,
    )

    result = asyncio.run(check.run(make_account()))

    assert result.inserted == 1
    assert events.ids == {"<m1@y.com>"}
