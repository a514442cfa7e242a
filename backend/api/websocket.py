"""WebSocket connection hub: addressing and fan-out of events."""

import asyncio
import json
import logging
import uuid

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class _Connection:
    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.send_lock = asyncio.Lock()  # one writer per socket keeps frame order


class ConnectionManager:
    """Manages WebSocket connections, addressed by a per-connection session id."""

    def __init__(self) -> None:
        self._connections: dict[str, _Connection] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> str:
        """Accept the socket and return the session id assigned to it."""
        await websocket.accept()
        session_id = uuid.uuid4().hex
        async with self._lock:
            self._connections[session_id] = _Connection(websocket)
        logger.info(f"New connection: {session_id}. Total: {len(self._connections)}")
        await self.send_to(session_id, "connected", {"id": session_id})
        return session_id

    async def disconnect(self, session_id: str) -> None:
        async with self._lock:
            self._connections.pop(session_id, None)
        logger.info(f"Connection closed: {session_id}. Total: {len(self._connections)}")

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._connections

    async def send_to(self, session_id: str, event: str, data: dict) -> bool:
        """Send one event to one connection.

        Fire-and-forget: an unknown or failing connection is logged and
        dropped, and the call returns False instead of raising.
        """
        conn = self._connections.get(session_id)
        if conn is None:
            logger.debug(f"No connection {session_id} for {event}")
            return False

        message = json.dumps({"event": event, "data": data})
        try:
            async with conn.send_lock:
                await conn.websocket.send_text(message)
            return True
        except Exception as e:
            logger.debug(f"Send of {event} to {session_id} failed: {e}")
            async with self._lock:
                self._connections.pop(session_id, None)
            return False

    async def broadcast(self, event: str, data: dict) -> None:
        """Broadcast an event to all connected WebSocket clients."""
        async with self._lock:
            targets = list(self._connections)
        for session_id in targets:
            await self.send_to(session_id, event, data)
