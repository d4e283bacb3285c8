"""Inter-process communication between the running gateway and the CLI"""

import asyncio
import json
import logging
import socket
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from craftgate.errors import GatewayError

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "~/.craftgate/daemon.sock"


def _resolve(socket_path: Optional[str]) -> str:
    return str(Path(socket_path or DEFAULT_SOCKET_PATH).expanduser())


class IPCServer:
    """IPC server running in the daemon to receive commands

    One JSON request per connection: ``{"command": ..., "args": {...}}``.
    """

    def __init__(self, socket_path: Optional[str] = None):
        """Initialize IPC server

        Args:
            socket_path: Path to Unix socket, defaults to ~/.craftgate/daemon.sock
        """
        self.socket_path = _resolve(socket_path)
        self.server: Optional[asyncio.AbstractServer] = None
        self.handlers: Dict[str, Callable[..., Awaitable[Any]]] = {}

    def register_handler(self, command: str, handler: Callable[..., Awaitable[Any]]):
        """Register a command handler

        Args:
            command: Command name (e.g., 'status', 'command')
            handler: Async function to handle the command
        """
        self.handlers[command] = handler

    async def start(self):
        """Start the IPC server"""
        # Remove existing socket file if it exists
        socket_file = Path(self.socket_path)
        if socket_file.exists():
            socket_file.unlink()

        # Ensure directory exists
        socket_file.parent.mkdir(parents=True, exist_ok=True)

        # Start Unix socket server
        self.server = await asyncio.start_unix_server(
            self._handle_client,
            path=self.socket_path
        )

        logger.info(f"IPC server listening on {self.socket_path}")

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle incoming client connection"""
        try:
            data = await reader.read()
            if not data:
                return

            response = await self.handle_request(data)

            writer.write(json.dumps(response).encode())
            await writer.drain()

        except Exception as e:
            logger.error(f"Error handling IPC client: {e}", exc_info=True)
        finally:
            writer.close()
            await writer.wait_closed()

    async def handle_request(self, data: bytes) -> Dict[str, Any]:
        """Decode one request and run its handler"""
        try:
            request = json.loads(data.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return {"status": "error", "error": f"Invalid request: {e}"}

        if not isinstance(request, dict):
            return {"status": "error", "error": "Invalid request: expected an object"}

        command = request.get("command")
        args = request.get("args") or {}

        logger.info(f"Received IPC command: {command}")

        handler = self.handlers.get(command)
        if handler is None:
            return {"status": "error", "error": f"Unknown command: {command}"}

        try:
            result = await handler(**args)
        except GatewayError as e:
            return {"status": "error", "error": str(e), "code": e.code}
        except Exception as e:
            logger.error(f"Error handling command {command}: {e}", exc_info=True)
            return {"status": "error", "error": str(e)}
        return {"status": "success", "result": result}

    async def stop(self):
        """Stop the IPC server"""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        # Clean up socket file
        socket_file = Path(self.socket_path)
        if socket_file.exists():
            socket_file.unlink()

        logger.info("IPC server stopped")


class IPCClient:
    """IPC client for the CLI to send commands to the daemon"""

    def __init__(self, socket_path: Optional[str] = None):
        """Initialize IPC client

        Args:
            socket_path: Path to Unix socket, defaults to ~/.craftgate/daemon.sock
        """
        self.socket_path = _resolve(socket_path)

    async def send_command(self, name: str, **args) -> Dict[str, Any]:
        """Send a command to the daemon

        Args:
            name: Handler name registered on the daemon (e.g. "status")
            **args: Handler keyword arguments

        Returns:
            Response from daemon

        Raises:
            ConnectionError: If daemon is not running
        """
        try:
            reader, writer = await asyncio.open_unix_connection(self.socket_path)
        except (FileNotFoundError, ConnectionRefusedError):
            raise ConnectionError("Daemon is not running")

        try:
            request = {"command": name, "args": args}
            writer.write(json.dumps(request).encode())
            await writer.drain()
            writer.write_eof()

            data = await reader.read()
            return json.loads(data.decode())
        except (OSError, ValueError) as e:
            raise ConnectionError(f"Failed to communicate with daemon: {e}") from e
        finally:
            writer.close()
            await writer.wait_closed()

    def is_daemon_running(self) -> bool:
        """Check if daemon is running

        Returns:
            True if daemon is running, False otherwise
        """
        socket_file = Path(self.socket_path)
        if not socket_file.exists():
            return False

        # Try to connect
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self.socket_path)
            return True
        except OSError:
            return False
        finally:
            sock.close()
