"""Check one account: fetch recent messages, admit new ones, fan them out."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping

from loguru import logger

from mailbeacon.application.ports.account_store import AccountStore
from mailbeacon.application.ports.mail_source import MailSource
from mailbeacon.application.use_cases.admit_event import DedupGate
from mailbeacon.domain.errors import MailCheckError, StoreError
from mailbeacon.domain.models import Account, AdmitResult, MailProtocol, NotificationEvent, utcnow

EventCallback = Callable[[NotificationEvent], Awaitable[None]]


@dataclass
class CheckResult:
    """Outcome of a single account check."""

    account_email: str
    inserted: int = 0
    duplicates: int = 0
    dropped: int = 0
    error: str | None = None
    new_events: list[NotificationEvent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class CheckMailboxUseCase:
    """Run one poll attempt for one account.

    Flow:
    1. Fetch the newest window of messages with the adapter for the
       account's protocol
    2. Admit each message through the dedup gate
    3. Publish every inserted event
    4. Touch the account's last-check timestamp, whatever happened above

    Nothing raised while checking an account escapes ``run``; failures are
    logged and reported on the returned ``CheckResult``.
    """

    def __init__(
        self,
        sources: Mapping[MailProtocol, MailSource],
        gate: DedupGate,
        accounts: AccountStore,
        on_new_event: EventCallback | None = None,
    ) -> None:
        self.sources = sources
        self.gate = gate
        self.accounts = accounts
        self.on_new_event = on_new_event

    async def run(self, account: Account) -> CheckResult:
        logger.debug(f"Checking email for {account.email}")
        result = CheckResult(account_email=account.email)

        try:
            source = self.sources.get(account.protocol)
            if source is None:
                raise MailCheckError(f"no mail source for protocol {account.protocol}")
            messages = await asyncio.to_thread(source.fetch_recent, account)
            await self._admit_all(account, messages, result)
        except MailCheckError as e:
            result.error = f"{type(e).__name__}: {e}"
            logger.warning(f"Check failed for {account.email}: {result.error}")
        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
            logger.exception(f"Unexpected error checking {account.email}: {e}")
        finally:
            await self._touch(account)

        return result

    async def _admit_all(self, account: Account, messages: list, result: CheckResult) -> None:
        for raw in messages:
            if not raw.message_id:
                logger.warning(f"Skipping message without id for {account.email}: {raw.subject!r}")
                continue
            event = raw.to_event(account.email)
            try:
                outcome = await asyncio.to_thread(self.gate.admit, event)
            except StoreError as e:
                # Retried naturally while the message stays inside the window
                result.dropped += 1
                logger.error(f"Failed to save notification {event.message_id}: {e}")
                continue

            if outcome is AdmitResult.DUPLICATE:
                result.duplicates += 1
                continue

            result.inserted += 1
            result.new_events.append(event)
            logger.info(f"New email for {account.email}: {event.sender} - {event.subject}")
            if self.on_new_event is not None:
                try:
                    await self.on_new_event(event)
                except Exception as e:
                    logger.error(f"Failed to publish {event.message_id}: {e}")

    async def _touch(self, account: Account) -> None:
        try:
            await asyncio.to_thread(self.accounts.touch_last_check, account.id, utcnow())
        except Exception as e:
            logger.error(f"Failed to update last check for {account.email}: {e}")
