"""Composition root: wires stores, adapters, gate, hub and scheduler together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from loguru import logger

from mailbeacon.application.fanout import FanOutHub
from mailbeacon.application.ports.account_store import AccountStore
from mailbeacon.application.ports.event_store import EventStore
from mailbeacon.application.ports.mail_source import MailSource
from mailbeacon.application.scheduler import PollScheduler
from mailbeacon.application.use_cases.admit_event import DedupGate
from mailbeacon.application.use_cases.check_mailbox import CheckMailboxUseCase
from mailbeacon.domain.models import MailProtocol
from mailbeacon.infrastructure.settings import Settings, get_settings


@dataclass
class MailMonitor:
    """Everything a running service needs, built once at startup."""

    settings: Settings
    accounts: AccountStore
    events: EventStore
    gate: DedupGate
    hub: FanOutHub
    scheduler: PollScheduler
    health_check: Callable[[], dict[str, Any]]

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.hub.close()


def _no_health_check() -> dict[str, Any]:
    return {"status": "unknown"}


def build_monitor(
    settings: Settings | None = None,
    accounts: AccountStore | None = None,
    events: EventStore | None = None,
    sources: Mapping[MailProtocol, MailSource] | None = None,
    health_check: Callable[[], dict[str, Any]] | None = None,
) -> MailMonitor:
    """Build a ``MailMonitor``; any collaborator not given comes from settings."""
    settings = settings or get_settings()

    if accounts is None or events is None:
        from mailbeacon.infrastructure.stores import build_stores

        bundle = build_stores(settings)
        accounts = accounts or bundle.accounts
        events = events or bundle.events
        health_check = health_check or bundle.health_check

    if sources is None:
        from mailbeacon.infrastructure.email import build_mail_sources

        sources = build_mail_sources(settings)

    gate = DedupGate(events)
    hub = FanOutHub(
        accounts,
        events,
        replay_size=settings.replay_size,
        queue_size=settings.subscriber_queue_size,
    )
    check = CheckMailboxUseCase(sources, gate, accounts, on_new_event=hub.publish_event)
    scheduler = PollScheduler(accounts, check, interval=settings.poll_interval_seconds)

    logger.info(
        f"Monitor ready: poll every {settings.poll_interval_seconds}s, "
        f"window {settings.message_window}, replay {settings.replay_size}"
    )

    return MailMonitor(
        settings=settings,
        accounts=accounts,
        events=events,
        gate=gate,
        hub=hub,
        scheduler=scheduler,
        health_check=health_check or _no_health_check,
    )
