from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks dashboard WebSocket connections and broadcasts service updates."""

    def __init__(self) -> None:
        self._connections: list[WebSocket] = []
        self._pending: set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.append(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections = [ws for ws in self._connections if ws != websocket]

    async def broadcast(self, event: dict) -> None:
        """Send an event to every open connection, dropping dead ones."""
        if "timestamp" not in event:
            event["timestamp"] = datetime.now(timezone.utc).isoformat()

        payload = json.dumps(event)
        dead = []
        for ws in list(self._connections):
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)

    def publish(self, event_name: str, data: list[Any]) -> None:
        """Schedule a broadcast from synchronous code (service listeners).

        Does nothing when no client is connected or no event loop is running.
        """
        if not self._connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; dropping %s broadcast", event_name)
            return
        task = loop.create_task(self.broadcast({"event": event_name, "data": data}))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for scheduled broadcasts to be sent."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def connection_count(self) -> int:
        return len(self._connections)
