"""Tracking of admitted upstream connections"""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import websockets

from craftgate.errors import DisconnectionError
from .events import EventBus, EventTypes

logger = logging.getLogger(__name__)


class Connection:
    """Handle to one admitted transport

    Wraps a websockets ServerConnection (or anything with async ``send`` and
    ``close``) and gives it a stable identity inside the gateway.
    """

    def __init__(self, transport: Any, connection_id: Optional[str] = None):
        self.transport = transport
        self.id = connection_id or uuid.uuid4().hex[:12]
        self.opened_at = time.time()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def remote_address(self) -> Any:
        return getattr(self.transport, "remote_address", None)

    def mark_closed(self):
        self._closed = True

    async def send(self, text: str):
        """Write one text frame

        Raises:
            DisconnectionError: The transport is already closed
        """
        if self._closed:
            raise DisconnectionError(f"Connection {self.id} is closed")
        try:
            await self.transport.send(text)
        except websockets.exceptions.ConnectionClosed as e:
            self._closed = True
            raise DisconnectionError(f"Connection {self.id} closed during send") from e

    async def close(self, code: int = 1001, reason: str = "Gateway shutting down"):
        self._closed = True
        await self.transport.close(code, reason)

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"<Connection {self.id} {state}>"


class ConnectionRegistry:
    """Set of currently admitted connections

    Emits ``connection``/``disconnection`` through the event bus and runs
    removal hooks (the command broker's disconnection cascade) after a
    connection leaves.
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        # insertion order doubles as admission order
        self._connections: Dict[str, Connection] = {}
        self._removal_hooks: List[Callable[[Connection], None]] = []

    def on_removed(self, hook: Callable[[Connection], None]):
        """Register a callback run after each successful remove()"""
        self._removal_hooks.append(hook)

    @property
    def count(self) -> int:
        return len(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: Connection) -> bool:
        return self._connections.get(connection.id) is connection

    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def add(self, connection: Connection):
        self._connections[connection.id] = connection
        logger.info(
            f"Upstream connected from {connection.remote_address}",
            extra={"connection_id": connection.id},
        )
        if len(self._connections) > 1:
            logger.warning(
                f"{len(self._connections)} upstream connections open; "
                f"commands go to the most recently admitted ({connection.id})"
            )
        self.event_bus.emit(EventTypes.CONNECTION, {"count": self.count})

    def remove(self, connection: Connection):
        """Forget a connection; a no-op when it is not registered"""
        if connection not in self:
            return
        del self._connections[connection.id]
        connection.mark_closed()
        logger.info("Upstream disconnected", extra={"connection_id": connection.id})
        self.event_bus.emit(EventTypes.DISCONNECTION, {"count": self.count})

        for hook in list(self._removal_hooks):
            hook(connection)

    def pick(self) -> Optional[Connection]:
        """Return the most recently admitted open connection, if any"""
        for connection in reversed(self._connections.values()):
            if connection.is_open:
                return connection
        return None

    async def close_all(self):
        """Close every open connection and drop them from the registry"""
        connections = self.connections()
        if not connections:
            return

        results = await asyncio.gather(
            *[connection.close() for connection in connections],
            return_exceptions=True,
        )
        for connection, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to close connection {connection.id}: {result}")
            self.remove(connection)
