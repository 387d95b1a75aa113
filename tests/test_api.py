import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from fakes import InMemoryAccountStore, InMemoryEventStore, make_account, make_event
from mailbeacon.api.main import create_app
from mailbeacon.api.ws import WebSocketChannel
from mailbeacon.service import build_monitor

NEW_ACCOUNT = {
    "email": "new@x.com",
    "password": "hunter2",
    "host": "imap.x.com",
    "port": 993,
    "protocol": "IMAP",
}


@pytest.fixture
def events():
    store = InMemoryEventStore()
    for i in range(3):
        store.insert_if_absent(make_event(f"<m{i}@y.com>", minutes=i))
    return store


@pytest.fixture
def client(settings, events):
    accounts = InMemoryAccountStore([make_account()])
    monitor = build_monitor(settings, accounts=accounts, events=events, sources={})
    with TestClient(create_app(monitor=monitor)) as c:
        yield c


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"


def test_readiness_reports_scheduler_and_subscribers(client):
    body = client.get("/health/ready").json()

    assert body["status"] == "ready"
    assert body["services"]["scheduler"] == "running"
    assert body["services"]["subscribers"] == "0"


def test_list_accounts_hides_passwords(client):
    (account,) = client.get("/api/accounts").json()

    assert account["email"] == "a@x.com"
    assert account["isActive"] is True
    assert "password" not in account


def test_create_account(client):
    resp = client.post("/api/accounts", json=NEW_ACCOUNT)

    assert resp.status_code == 200
    assert resp.json()["email"] == "new@x.com"
    assert "password" not in resp.json()
    assert len(client.get("/api/accounts").json()) == 2


def test_create_duplicate_account_conflicts(client):
    client.post("/api/accounts", json=NEW_ACCOUNT)

    assert client.post("/api/accounts", json=NEW_ACCOUNT).status_code == 409


def test_create_rejects_unknown_protocol(client):
    resp = client.post("/api/accounts", json={**NEW_ACCOUNT, "protocol": "SMTP"})

    assert resp.status_code == 422


def test_update_account(client):
    resp = client.put("/api/accounts/1", json={"isActive": False})

    assert resp.status_code == 200
    assert resp.json()["isActive"] is False
    assert resp.json()["host"] == "mail.x.com"


def test_update_missing_account(client):
    assert client.put("/api/accounts/99", json={"port": 995}).status_code == 404


def test_delete_account(client):
    assert client.delete("/api/accounts/1").json() == {"success": True}
    assert client.get("/api/accounts").json() == []
    assert client.delete("/api/accounts/1").status_code == 404


def test_notifications_newest_first(client):
    body = client.get("/api/notifications", params={"limit": 2}).json()

    assert [n["messageId"] for n in body] == ["<m2@y.com>", "<m1@y.com>"]
    assert body[0]["from"] == "Bob <bob@y.com>"


@pytest.mark.parametrize("limit", [0, 501])
def test_notifications_limit_bounds(client, limit):
    assert client.get("/api/notifications", params={"limit": limit}).status_code == 422


def test_websocket_snapshots_then_account_updates(client):
    with client.websocket_connect("/ws") as ws:
        accounts = ws.receive_json()
        history = ws.receive_json()

        client.post("/api/accounts", json=NEW_ACCOUNT)
        update = ws.receive_json()

    assert accounts["type"] == "accounts-snapshot"
    assert [a["email"] for a in accounts["payload"]] == ["a@x.com"]
    assert history["type"] == "events-snapshot"
    assert [n["messageId"] for n in history["payload"]] == ["<m2@y.com>", "<m1@y.com>", "<m0@y.com>"]
    assert update["type"] == "accounts-snapshot"
    assert [a["email"] for a in update["payload"]] == ["a@x.com", "new@x.com"]


def test_websocket_ignores_client_frames_of_any_kind(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.receive_json()
        ws.send_bytes(b"\x00ping")
        ws.send_text("hello")

        client.post("/api/accounts", json=NEW_ACCOUNT)
        update = ws.receive_json()

    assert update["type"] == "accounts-snapshot"
    assert len(update["payload"]) == 2


def test_websocket_unsubscribes_on_disconnect(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.receive_json()
        assert _subscribers(client) == "1"

    deadline = time.monotonic() + 2
    while _subscribers(client) != "0" and time.monotonic() < deadline:
        time.sleep(0.01)
    assert _subscribers(client) == "0"


def _subscribers(client) -> str:
    return client.get("/health/ready").json()["services"]["subscribers"]


class _RecordingSocket:
    def __init__(self):
        self.close_codes = []

    async def close(self, code: int = 1000) -> None:
        self.close_codes.append(code)


def test_dropped_websocket_channel_closes_with_internal_error_code():
    socket = _RecordingSocket()

    asyncio.run(WebSocketChannel(socket).close())

    assert socket.close_codes == [1011]
