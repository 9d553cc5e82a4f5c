"""
WebSocket Manager - Tracks live connections and sends messages.

Each connection owns its own VisualizationSession; the manager only knows
about sockets. Broadcasts reach every client (used for server notices).
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger("uvicorn.error")


class WebSocketManager:
    """
    Manages WebSocket connections.

    Failed sends mark the connection as gone so later broadcasts skip it.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("WebSocket connected. Total connections: %d", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected. Total connections: %d", len(self._connections))

    async def send(self, websocket: WebSocket, message: dict) -> bool:
        """Send one message to one client. Returns False if the send failed."""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception:
            async with self._lock:
                self._connections.discard(websocket)
            return False
        return True

    async def broadcast(self, message: dict):
        """
        Broadcast a message to all connected clients.

        Failed sends (disconnected clients) are handled gracefully.
        """
        if not self._connections:
            return

        # Serialize once for all clients
        message_text = json.dumps(message)

        failed: Set[WebSocket] = set()

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except Exception:
                    failed.add(websocket)

            self._connections -= failed

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)


# Global instance
ws_manager = WebSocketManager()
