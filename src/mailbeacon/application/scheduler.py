"""Poll scheduler - re-checks every active account on a fixed interval."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from mailbeacon.application.ports.account_store import AccountStore
from mailbeacon.application.use_cases.check_mailbox import CheckMailboxUseCase, CheckResult
from mailbeacon.domain.models import Account, utcnow


@dataclass
class SchedulerStats:
    """Track scheduler statistics."""

    cycles: int = 0
    checks_started: int = 0
    checks_failed: int = 0
    events_inserted: int = 0
    last_cycle: datetime | None = None


class PollScheduler:
    """
    Fires a poll cycle every ``interval`` seconds.

    Each cycle reads the active accounts fresh from the store and spawns one
    task per account. Tasks are never joined or bounded by the timer: a slow
    server delays only its own account, and a check that outlives the
    interval simply overlaps with the next one for the same account.
    """

    def __init__(
        self,
        accounts: AccountStore,
        check: CheckMailboxUseCase,
        interval: float = 10.0,
    ) -> None:
        self.accounts = accounts
        self.check = check
        self.interval = interval
        self.stats = SchedulerStats()
        self._timer: asyncio.Task | None = None
        # Strong refs so in-flight checks are not garbage collected
        self._inflight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Poll scheduler starting (interval {self.interval}s)")
        self._timer = asyncio.create_task(self._loop(), name="poll-scheduler")

    async def stop(self) -> None:
        """Stop the timer. In-flight checks are left to finish on their own."""
        if self._timer is None:
            return
        self._timer.cancel()
        try:
            await self._timer
        except asyncio.CancelledError:
            pass
        self._timer = None
        logger.info("Poll scheduler stopped")

    async def run_cycle(self) -> list[asyncio.Task]:
        """Spawn one check per active account and return the spawned tasks."""
        self.stats.cycles += 1
        self.stats.last_cycle = utcnow()

        try:
            active = await asyncio.to_thread(self.accounts.list_active)
        except Exception as e:
            logger.error(f"Failed to list active accounts: {e}")
            return []

        logger.debug(f"Poll cycle #{self.stats.cycles}: {len(active)} active account(s)")
        return [self._spawn(account) for account in active]

    def _spawn(self, account: Account) -> asyncio.Task:
        task = asyncio.create_task(self._check(account), name=f"check-{account.email}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        self.stats.checks_started += 1
        return task

    async def _check(self, account: Account) -> CheckResult:
        result = await self.check.run(account)
        if not result.ok:
            self.stats.checks_failed += 1
        self.stats.events_inserted += result.inserted
        return result

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_cycle()
