"""Gateway exceptions"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base for craftgate errors"""

    code = "gateway_error"

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}


class ConfigurationError(GatewayError):
    """Settings could not be loaded or failed validation"""

    code = "configuration_error"


# Admission


class AuthError(GatewayError):
    """Missing, malformed or unverifiable bearer credential"""

    code = "unauthorized"


class OriginError(GatewayError):
    """Origin header missing or not in the allow-list"""

    code = "forbidden_origin"


# Commands


class NoConnectionError(GatewayError, ConnectionError):
    """No upstream server is connected"""

    code = "no_connection"

    def __init__(self, message: str = "No Minecraft server connected", **kwargs):
        super().__init__(message, **kwargs)


class CommandTimeoutError(GatewayError, TimeoutError):
    """Upstream did not answer a command before its deadline"""

    code = "command_timeout"

    def __init__(self, command_id: str, timeout: float):
        super().__init__(
            "Command timed out",
            details={"id": command_id, "timeout": timeout},
        )
        self.command_id = command_id
        self.timeout = timeout


class CommandError(GatewayError):
    """Upstream answered a command with an error payload"""

    code = "command_error"

    def __init__(self, error: str, command_id: Optional[str] = None):
        super().__init__(str(error), details={"id": command_id})
        self.error = error
        self.command_id = command_id


class DisconnectionError(GatewayError, ConnectionError):
    """Upstream went away while a command was outstanding"""

    code = "disconnected"

    def __init__(self, message: str = "Minecraft server disconnected", **kwargs):
        super().__init__(message, **kwargs)


# Transport


class ProtocolError(GatewayError, ValueError):
    """Inbound frame could not be understood"""

    code = "protocol_error"


class AlreadyRunningError(GatewayError, RuntimeError):
    """start() called while the server is not idle"""

    code = "already_running"

    def __init__(self, message: str = "Server is already running", **kwargs):
        super().__init__(message, **kwargs)
