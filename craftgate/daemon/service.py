"""Foreground daemon: runs the gateway plus the local IPC control socket"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, Dict, Optional

from craftgate.config import Settings, get_config_path
from craftgate.daemon.ipc import IPCServer
from craftgate.gateway.events import EventTypes
from craftgate.gateway.server import GatewayServer
from craftgate.observability.logging_config import setup_logging

logger = logging.getLogger(__name__)


class DaemonService:
    """Owns one GatewayServer and the IPC server that controls it"""

    def __init__(
        self,
        config_path: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize daemon service

        Args:
            config_path: Path to config file, defaults to ~/.craftgate/config.yaml
            settings: Prebuilt settings; skips loading from file/environment
        """
        self.config_path = config_path or str(get_config_path())
        self.settings = settings
        self.gateway: Optional[GatewayServer] = None
        self.ipc_server: Optional[IPCServer] = None
        self.running = False
        self._stop_event: Optional[asyncio.Event] = None

    def load_settings(self) -> Settings:
        """Load settings from the config file, or the environment if it is absent"""
        config_file = Path(self.config_path)
        if config_file.exists():
            settings = Settings.from_file(str(config_file))
            logger.info(f"Loaded configuration from {self.config_path}")
        else:
            settings = Settings()
            logger.warning("Config file not found, using environment settings")
        return settings

    async def start(self):
        """Start the gateway and the IPC server"""
        if self.settings is None:
            self.settings = self.load_settings()

        if self.settings.log_file:
            Path(self.settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        setup_logging(
            level=self.settings.log_level,
            json_format=self.settings.log_json,
            log_file=self.settings.log_file,
        )

        self._stop_event = asyncio.Event()

        self.gateway = GatewayServer(self.settings)
        self._register_event_handlers()
        await self.gateway.start()

        self.ipc_server = IPCServer(self.settings.ipc_socket_path)
        self._register_ipc_handlers()
        await self.ipc_server.start()

        self.running = True
        logger.info("craftgate daemon started")

    async def run(self):
        """Start, block until a stop is requested, then shut down"""
        await self.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError):
                pass

        try:
            await self._stop_event.wait()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.remove_signal_handler(sig)
                except (NotImplementedError, RuntimeError):
                    pass
            await self.stop()

    def request_stop(self):
        logger.info("Shutdown requested")
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self):
        """Stop the daemon service gracefully"""
        logger.info("Stopping craftgate daemon...")
        self.running = False

        if self.ipc_server:
            await self.ipc_server.stop()

        if self.gateway:
            await self.gateway.stop()

        logger.info("craftgate daemon stopped")

    def _register_event_handlers(self):
        """Log upstream lifecycle events"""
        self.gateway.on(EventTypes.CONNECTION, self._on_connection)
        self.gateway.on(EventTypes.DISCONNECTION, self._on_disconnection)
        self.gateway.on(EventTypes.ERROR, self._on_error)

    def _on_connection(self, data: Dict[str, Any]):
        logger.info(f"Minecraft server connected. Total connections: {data['count']}")

    def _on_disconnection(self, data: Dict[str, Any]):
        logger.info(f"Minecraft server disconnected. Total connections: {data['count']}")

    def _on_error(self, data: Any):
        logger.error(f"WebSocket error: {data}")

    def _register_ipc_handlers(self):
        """Register IPC command handlers"""
        self.ipc_server.register_handler("command", self._handle_command)
        self.ipc_server.register_handler("status", self._handle_status)
        self.ipc_server.register_handler("stop", self._handle_stop)

    async def _handle_command(self, command: str, timeout: Optional[float] = None) -> str:
        """Forward a command to the upstream server"""
        return await self.gateway.send_command(command, timeout=timeout)

    async def _handle_status(self) -> dict:
        """Handle status command"""
        return {"running": self.running, **self.gateway.stats()}

    async def _handle_stop(self) -> dict:
        """Handle stop command: gracefully shut down the daemon."""
        logger.info("Received stop command via IPC")
        self.request_stop()
        return {"status": "ok"}
