"""
WebSocket fan-out of editor state.

Each change is published to every connected canvas as one `diagram_updated`
message carrying the full state snapshot. Sockets whose send fails are
dropped.
"""
import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class StateBroadcaster:
    """Tracks open canvas sockets and pushes state snapshots to them."""

    def __init__(self):
        self._sockets: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._sockets.add(websocket)
        logger.info("Canvas connected (%d open)", len(self._sockets))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._sockets.discard(websocket)
        logger.info("Canvas disconnected (%d open)", len(self._sockets))

    async def publish(self, state: dict[str, Any]):
        """Send a state snapshot to every socket."""
        if not self._sockets:
            return
        text = json.dumps({
            "type": "diagram_updated",
            "diagram_id": state["diagram"]["id"],
            "state": state,
        })
        async with self._lock:
            stale = set()
            for websocket in self._sockets:
                try:
                    await websocket.send_text(text)
                except (WebSocketDisconnect, RuntimeError, OSError) as e:
                    logger.debug("Dropping canvas socket after failed send: %s", e)
                    stale.add(websocket)
            self._sockets -= stale


broadcaster = StateBroadcaster()
