"""craftgate - WebSocket gateway between a game-server plugin and Python code"""

__version__ = "0.1.0"

from craftgate.config import Settings
from craftgate.errors import (
    AlreadyRunningError,
    AuthError,
    CommandError,
    CommandTimeoutError,
    DisconnectionError,
    GatewayError,
    NoConnectionError,
    OriginError,
    ProtocolError,
)
from craftgate.gateway import GatewayServer

__all__ = [
    "__version__",
    "Settings",
    "GatewayServer",
    "GatewayError",
    "AlreadyRunningError",
    "AuthError",
    "OriginError",
    "NoConnectionError",
    "CommandTimeoutError",
    "CommandError",
    "DisconnectionError",
    "ProtocolError",
]
