"""WebSocket endpoint streaming hub messages to browser subscribers."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket
from loguru import logger

from mailbeacon.domain.models import HubMessage

router = APIRouter()


class WebSocketChannel:
    """Adapts a FastAPI websocket to the hub's subscriber channel."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, message: HubMessage) -> None:
        await self.websocket.send_json(message.to_wire())

    async def close(self) -> None:
        await self.websocket.close(code=1011)


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket) -> None:
    """
    Subscribe a client to the notification stream.

    The first two frames are always the ``accounts-snapshot`` and the
    ``events-snapshot``; ``new-event`` and later ``accounts-snapshot`` frames
    follow as they happen. Frames sent by the client, text or binary, are
    ignored.
    """
    hub = websocket.app.state.monitor.hub
    await websocket.accept()
    handle = await hub.subscribe(WebSocketChannel(websocket))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(f"WebSocket closed (code {message.get('code')})")
                break
    finally:
        await hub.unsubscribe(handle)
