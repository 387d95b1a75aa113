import io
from datetime import datetime, timezone

import pytest

from fakes import TRUNCATED, ScriptedPop3Server, header_block, make_account
from mailbeacon.domain.errors import AuthError, ParseError, ProtocolError
from mailbeacon.domain.models import MailProtocol
from mailbeacon.infrastructure.email.providers.pop3 import (
    MAX_LINE,
    LineTooLongError,
    Pop3MailSource,
    parse_stat_count,
    read_bounded_line,
)

OBSERVED = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def _account(**kw):
    return make_account(protocol=MailProtocol.POP3, **kw)


def _fetch(server: ScriptedPop3Server, window: int = 10, **account_kw):
    source = Pop3MailSource(window=window, transport_factory=lambda _: server, clock=lambda: OBSERVED)
    return source.fetch_recent(_account(**account_kw))


def _maildrop(count: int) -> list:
    return [header_block(i, message_id=f"<m{i}@y.com>") for i in range(1, count + 1)]


def test_only_the_newest_window_is_requested():
    server = ScriptedPop3Server(_maildrop(25))

    messages = _fetch(server)

    assert server.top_indices == list(range(16, 26))
    assert [m.subject for m in messages] == [f"Message {i}" for i in range(16, 26)]


def test_session_command_sequence():
    server = ScriptedPop3Server(_maildrop(1))

    _fetch(server)

    assert server.commands == ["USER a@x.com", "PASS secret", "STAT", "TOP 1 0", "QUIT"]
    assert server.closed


def test_rejected_password_is_auth_error():
    server = ScriptedPop3Server(_maildrop(3), password="other")

    with pytest.raises(AuthError):
        _fetch(server)
    assert "STAT" not in server.commands
    assert server.closed


def test_stat_error_is_protocol_error():
    server = ScriptedPop3Server(_maildrop(3), stat_reply=b"-ERR maildrop locked\r\n")

    with pytest.raises(ProtocolError):
        _fetch(server)


def test_empty_maildrop_returns_nothing():
    server = ScriptedPop3Server([])

    assert _fetch(server) == []
    assert server.top_indices == []
    assert server.commands[-1] == "QUIT"


def test_unterminated_header_block_skips_only_that_message():
    drop = _maildrop(10)
    drop[6] = TRUNCATED
    server = ScriptedPop3Server(drop)

    messages = _fetch(server)

    expected = [f"Message {i}" for i in (1, 2, 3, 4, 5, 6, 8, 9, 10)]
    assert [m.subject for m in messages] == expected
    assert server.top_indices == list(range(1, 11))


def test_synthesized_ids_do_not_collide_within_a_poll():
    server = ScriptedPop3Server([header_block(i) for i in range(1, 11)])

    messages = _fetch(server, email="p@x.com")

    ids = [m.message_id for m in messages]
    assert len(set(ids)) == 10
    assert ids[0] == f"pop3-p@x.com-1-{int(OBSERVED.timestamp())}"


def test_header_dates_are_parsed_and_bad_dates_fall_back():
    server = ScriptedPop3Server(
        [
            header_block(1, "<a@y.com>", date="Sun, 01 Mar 2026 10:30:00 +0000"),
            header_block(2, "<b@y.com>", date="yesterday-ish"),
        ]
    )

    dated, undated = _fetch(server)

    assert dated.received_at == datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)
    assert undated.received_at == OBSERVED


def test_sender_and_message_id_come_from_headers():
    server = ScriptedPop3Server([header_block(4, "<x@y.com>")])

    (msg,) = _fetch(server)

    assert msg.sender == "Sender 4 <s4@y.com>"
    assert msg.message_id == "<x@y.com>"


class _Lines:
    def __init__(self, lines):
        self.lines = list(lines)

    def readline(self) -> bytes:
        return self.lines.pop(0) if self.lines else b""


def test_multiline_reader_removes_dot_stuffing():
    source = Pop3MailSource()
    block = source._read_multiline(_Lines([b"Subject: a\r\n", b"..dotted\r\n", b".\r\n"]))

    assert block == b"Subject: a\r\n.dotted\r\n"


def test_multiline_reader_rejects_missing_terminator():
    with pytest.raises(ParseError):
        Pop3MailSource()._read_multiline(_Lines([b"Subject: a\r\n"]))


@pytest.mark.parametrize(
    "reply, count",
    [(b"+OK 5 1200\r\n", 5), (b"+OK\r\n", 0), (b"+OK many 10\r\n", 0), (b"+OK -3 0\r\n", 0)],
)
def test_parse_stat_count(reply, count):
    assert parse_stat_count(reply) == count


def test_oversized_header_line_skips_only_that_message():
    references = "References: " + " ".join(f"<ref{i}@y.com>" for i in range(1000))
    long_block = header_block(1, "<one@y.com>") + references.encode() + b"\r\n"
    server = ScriptedPop3Server([long_block, header_block(2, "<two@y.com>")])

    messages = _fetch(server)

    assert [m.message_id for m in messages] == ["<two@y.com>"]
    assert server.commands[-1] == "QUIT"


def test_failed_quit_keeps_the_scan():
    server = ScriptedPop3Server(_maildrop(2), quit_error=LineTooLongError("reply too long"))

    messages = _fetch(server)

    assert [m.subject for m in messages] == ["Message 1", "Message 2"]
    assert server.closed


def test_bounded_line_reader_resyncs_after_an_oversized_line():
    stream = io.BytesIO(b"x" * (MAX_LINE * 3) + b"\r\nSubject: next\r\n")

    with pytest.raises(LineTooLongError):
        read_bounded_line(stream)
    assert read_bounded_line(stream) == b"Subject: next\r\n"


def test_bounded_line_reader_passes_normal_lines_and_eof():
    stream = io.BytesIO(b"+OK ready\r\n")

    assert read_bounded_line(stream) == b"+OK ready\r\n"
    assert read_bounded_line(stream) == b""
