"""WebSocket gateway server - bridge between the game-server plugin and Python"""

import logging
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Optional, Union

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from craftgate.config import Settings
from craftgate.errors import AlreadyRunningError, AuthError, OriginError, ProtocolError
from craftgate.observability.metrics import GatewayMetrics
from .auth import AuthGate
from .broker import CommandBroker
from .events import EventBus, EventTypes, Listener
from .protocol import parse_inbound
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


class ServerState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class GatewayServer:
    """WebSocket server the upstream plugin connects to

    Admits connections that carry a valid bearer token and an allowed
    Origin, routes command responses back to their callers and fans
    upstream events out to listeners registered with ``on()``.

    Example:
        gateway = GatewayServer(Settings(jwt_secret="...", allowed_origins=[...]))
        gateway.on("player_joined", print)
        await gateway.start()
        result = await gateway.send_command("/give @a diamond")
    """

    def __init__(self, settings: Settings):
        """Initialize gateway server

        Args:
            settings: Listener, admission and command settings
        """
        self.settings = settings
        self.state = ServerState.IDLE

        # Core components, one aggregate per server
        self.metrics = GatewayMetrics()
        self.event_bus = EventBus()
        self.registry = ConnectionRegistry(self.event_bus)
        self.broker = CommandBroker(
            self.registry,
            self.event_bus,
            timeout=settings.command_timeout,
            metrics=self.metrics,
        )

        self.auth_gate: Optional[AuthGate] = None
        self.server: Optional[Server] = None

    @property
    def is_running(self) -> bool:
        return self.state == ServerState.RUNNING

    @property
    def connection_count(self) -> int:
        """Number of connected upstream servers"""
        return self.registry.count

    @property
    def port(self) -> Optional[int]:
        """Port actually bound; differs from settings.port when that is 0"""
        if self.server is None:
            return None
        for sock in self.server.sockets:
            return sock.getsockname()[1]
        return None

    # Listener registration

    def on(self, event_type: str, listener: Listener):
        """Register a listener for upstream or lifecycle events"""
        self.event_bus.on(event_type, listener)

    def off(self, event_type: str, listener: Listener):
        """Remove an event listener"""
        self.event_bus.off(event_type, listener)

    def remove_all_listeners(self, event_type: str):
        """Remove all event listeners for a specific event type"""
        self.event_bus.remove_all(event_type)

    # Commands

    async def send_command(self, command: str, timeout: Optional[float] = None) -> str:
        """Send a command to the upstream server and wait for its response"""
        return await self.broker.send(command, timeout=timeout)

    # Lifecycle

    async def start(self):
        """Start the gateway server"""
        if self.state not in (ServerState.IDLE, ServerState.STOPPED):
            raise AlreadyRunningError()

        self.state = ServerState.STARTING
        self.auth_gate = AuthGate(self.settings.jwt_secret, self.settings.allowed_origins)
        logger.info(f"Starting Gateway server on ws://{self.settings.host}:{self.settings.port}")

        try:
            self.server = await serve(
                self._handle_connection,
                self.settings.host,
                self.settings.port,
                process_request=self._process_request,
            )
        except Exception:
            logger.error("Gateway server failed to start", exc_info=True)
            self.auth_gate = None
            self.server = None
            self.state = ServerState.STOPPED
            raise

        self.state = ServerState.RUNNING
        logger.info(f"✓ Gateway server running on port {self.port}")

    async def stop(self):
        """Stop the gateway server; a no-op unless it is running"""
        if self.state != ServerState.RUNNING:
            return

        self.state = ServerState.STOPPING
        logger.info("Stopping Gateway server...")

        # Stop accepting and close open connections; handlers unregister themselves
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        await self.registry.close_all()
        self.broker.clear()
        self.event_bus.clear()
        self.auth_gate = None

        self.state = ServerState.STOPPED
        logger.info("Gateway server stopped")

    async def wait_closed(self):
        """Wait until the listener shuts down"""
        if self.server:
            await self.server.wait_closed()

    def stats(self) -> Dict[str, Any]:
        """Gateway status snapshot"""
        return {
            "state": self.state.value,
            "port": self.port,
            "connections": self.connection_count,
            "pending_commands": self.broker.pending_count,
            "event_types": self.event_bus.event_types(),
            "metrics": self.metrics.get_stats(),
        }

    # Transport

    def _process_request(
        self, connection: ServerConnection, request: Request
    ) -> Optional[Response]:
        """Admission hook run before the WebSocket handshake completes"""
        try:
            upgrade = request.headers.get("Upgrade", "")
        except LookupError:
            # duplicated Upgrade headers
            upgrade = ""
        if upgrade.lower() != "websocket":
            return self._reject(connection, HTTPStatus.NOT_IMPLEMENTED, "Not Implemented\n")

        if self.auth_gate is None:
            return self._reject(connection, HTTPStatus.SERVICE_UNAVAILABLE, "Shutting down\n")

        try:
            self.auth_gate.admit(request.headers)
        except AuthError:
            return self._reject(connection, HTTPStatus.UNAUTHORIZED, "Unauthorized\n")
        except OriginError:
            return self._reject(connection, HTTPStatus.FORBIDDEN, "Invalid origin\n")
        return None

    def _reject(self, connection: ServerConnection, status: HTTPStatus, body: str) -> Response:
        logger.info(f"Rejected handshake: {body.strip()}", extra={"status": status.value})
        self.metrics.record_connection_rejected(status.value)
        return connection.respond(status, body)

    async def _handle_connection(self, websocket: ServerConnection):
        """Handle one admitted upstream connection until it closes"""
        connection = Connection(websocket)
        self.registry.add(connection)
        self.metrics.record_connection_admitted()

        try:
            async for frame in websocket:
                self._dispatch(connection, frame)
        except websockets.exceptions.ConnectionClosedError as e:
            logger.warning(
                f"Upstream closed abnormally: {e}", extra={"connection_id": connection.id}
            )
            self.event_bus.emit(
                EventTypes.ERROR,
                {"connection_id": connection.id, "error": str(e)},
            )
        finally:
            self.registry.remove(connection)

    def _dispatch(self, connection: Connection, frame: Union[str, bytes]):
        """Route one inbound frame to the broker or the event bus"""
        try:
            message = parse_inbound(frame)
        except ProtocolError as e:
            self.metrics.record_protocol_error()
            logger.error(
                f"Error handling upstream message: {e}", extra={"connection_id": connection.id}
            )
            return

        if message.id is not None and self.broker.has_pending(message.id):
            if message.is_error:
                self.broker.reject(message.id, message.error)
            else:
                self.broker.resolve(message.id, message.result_text)
        elif message.event_type:
            self.metrics.record_event_received()
            self.event_bus.emit(message.event_type, message.data)
        else:
            logger.debug(
                "Ignoring response for unknown command",
                extra={"command_id": message.id, "connection_id": connection.id},
            )
