"""In-process broadcaster pushing hub messages to live subscribers."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field

from loguru import logger

from mailbeacon.application.ports.account_store import AccountStore
from mailbeacon.application.ports.event_store import EventStore
from mailbeacon.application.ports.subscriber import SubscriberChannel
from mailbeacon.domain.models import HubMessage, NotificationEvent


@dataclass(frozen=True)
class SubscriberHandle:
    """Opaque token returned by ``FanOutHub.subscribe``."""

    id: int


@dataclass
class _Subscriber:
    handle: SubscriberHandle
    channel: SubscriberChannel
    queue: asyncio.Queue
    writer: asyncio.Task | None = field(default=None)


class FanOutHub:
    """Live subscriber set with catch-up on join.

    Every subscriber owns a bounded outbound queue drained by its own writer
    task, so a slow or dead transport never stalls ``publish`` for the others.
    One coarse lock guards the subscriber set. ``subscribe`` holds it while it
    reads the snapshots and enqueues them, so the snapshot burst is always
    ahead of any live message in that subscriber's queue.
    """

    def __init__(
        self,
        accounts: AccountStore,
        events: EventStore,
        replay_size: int = 50,
        queue_size: int = 256,
    ) -> None:
        self.accounts = accounts
        self.events = events
        self.replay_size = replay_size
        self.queue_size = queue_size
        self._subscribers: dict[SubscriberHandle, _Subscriber] = {}
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self, channel: SubscriberChannel) -> SubscriberHandle:
        """Register ``channel`` and queue its accounts and events snapshots."""
        handle = SubscriberHandle(next(self._ids))
        sub = _Subscriber(handle=handle, channel=channel, queue=asyncio.Queue(maxsize=self.queue_size))

        async with self._lock:
            accounts = await asyncio.to_thread(self.accounts.list)
            recent = await asyncio.to_thread(self.events.recent, self.replay_size)
            sub.queue.put_nowait(HubMessage.accounts_snapshot(accounts))
            sub.queue.put_nowait(HubMessage.events_snapshot(recent))
            self._subscribers[handle] = sub
            sub.writer = asyncio.create_task(self._drain(sub), name=f"subscriber-{handle.id}")

        logger.info(f"Subscriber {handle.id} joined ({len(recent)} events replayed)")
        return handle

    async def unsubscribe(self, handle: SubscriberHandle) -> bool:
        """Remove a subscriber. Unknown or already-removed handles are ignored.

        Returns True only for the call that actually removed it.
        """
        async with self._lock:
            sub = self._subscribers.pop(handle, None)
        if sub is None:
            return False
        if sub.writer is not None and sub.writer is not asyncio.current_task():
            sub.writer.cancel()
        logger.info(f"Subscriber {handle.id} left")
        return True

    async def publish(self, message: HubMessage) -> None:
        """Queue ``message`` for every registered subscriber."""
        async with self._lock:
            targets = list(self._subscribers.values())

        for sub in targets:
            try:
                sub.queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber {sub.handle.id} is not keeping up, dropping it")
                await self._drop(sub)

    async def publish_event(self, event: NotificationEvent) -> None:
        await self.publish(HubMessage.new_event(event))

    async def publish_accounts(self) -> None:
        """Broadcast the refreshed account list after an account mutation."""
        accounts = await asyncio.to_thread(self.accounts.list)
        await self.publish(HubMessage.accounts_snapshot(accounts))

    async def close(self) -> None:
        async with self._lock:
            subs = list(self._subscribers.values())
            self._subscribers.clear()
        for sub in subs:
            if sub.writer is not None:
                sub.writer.cancel()

    async def _drain(self, sub: _Subscriber) -> None:
        while True:
            message = await sub.queue.get()
            try:
                await sub.channel.send(message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Delivery to subscriber {sub.handle.id} failed, dropping it: {e}")
                await self._drop(sub)
                return

    async def _drop(self, sub: _Subscriber) -> None:
        """Unsubscribe and close the channel so its peer stops waiting."""
        if not await self.unsubscribe(sub.handle):
            return
        close = getattr(sub.channel, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logger.debug(f"Closing subscriber {sub.handle.id} failed: {e}")
