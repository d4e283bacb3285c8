"""Gateway core: admission, connection tracking, command correlation, events"""

from .server import GatewayServer, ServerState
from .events import EventBus, EventTypes
from .registry import Connection, ConnectionRegistry
from .broker import CommandBroker, PendingCommand
from .auth import AuthGate

__all__ = [
    "GatewayServer",
    "ServerState",
    "EventBus",
    "EventTypes",
    "Connection",
    "ConnectionRegistry",
    "CommandBroker",
    "PendingCommand",
    "AuthGate",
]
