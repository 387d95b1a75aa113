"""Port for live subscriber transports."""

from __future__ import annotations

from typing import Protocol

from mailbeacon.domain.models import HubMessage


class SubscriberChannel(Protocol):
    """Anything that can receive hub messages in order (e.g. a websocket).

    A channel may also define ``async close()``; the hub calls it when it drops
    the subscriber so the remote end knows to reconnect.
    """

    async def send(self, message: HubMessage) -> None: ...