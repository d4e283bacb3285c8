"""Correlated command/response exchange with the upstream

Each outbound command gets a fresh id and a PendingCommand entry. The entry
is settled exactly once by whichever comes first: a response, its deadline,
or the upstream disconnecting. Every settle path pops the id from the table
before touching the future, so a late response or a stale timer finds
nothing and does nothing.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from craftgate.errors import (
    CommandError,
    CommandTimeoutError,
    DisconnectionError,
    NoConnectionError,
)
from craftgate.observability.metrics import GatewayMetrics
from .events import EventBus, EventTypes
from .protocol import encode_command, result_text
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 5.0


class CommandState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


@dataclass
class PendingCommand:
    """An outbound command awaiting its response"""

    id: str
    command: str
    future: asyncio.Future
    created_at: float
    deadline: float
    connection_id: Optional[str] = None
    timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)
    state: CommandState = CommandState.PENDING

    def resolve(self, result: str):
        self._cancel_timer()
        self.state = CommandState.RESOLVED
        if not self.future.done():
            self.future.set_result(result)

    def reject(self, error: BaseException):
        self._cancel_timer()
        self.state = CommandState.REJECTED
        if not self.future.done():
            self.future.set_exception(error)

    def discard(self):
        self._cancel_timer()
        self.state = CommandState.REJECTED
        self.future.cancel()

    def _cancel_timer(self):
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class CommandBroker:
    """Issues commands over the registry's connection and correlates replies"""

    def __init__(
        self,
        registry: ConnectionRegistry,
        event_bus: EventBus,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        metrics: Optional[GatewayMetrics] = None,
    ):
        self.registry = registry
        self.event_bus = event_bus
        self.timeout = timeout
        self.metrics = metrics or GatewayMetrics()
        self._ids = itertools.count()
        self._pending: Dict[str, PendingCommand] = {}

        registry.on_removed(self._on_connection_removed)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def has_pending(self, command_id: str) -> bool:
        return command_id in self._pending

    def next_id(self) -> str:
        return str(next(self._ids))

    async def send(self, command: str, timeout: Optional[float] = None) -> str:
        """Send a command to the upstream and wait for its result

        Args:
            command: Command text, e.g. "/time set day"
            timeout: Seconds to wait; defaults to the broker timeout

        Raises:
            NoConnectionError: No upstream is connected
            CommandTimeoutError: No response before the deadline
            CommandError: Upstream reported an error
            DisconnectionError: Upstream went away first
        """
        command_id = self.next_id()
        connection = self.registry.pick()
        if connection is None:
            self.metrics.record_no_connection()
            raise NoConnectionError()

        loop = asyncio.get_running_loop()
        timeout = self.timeout if timeout is None else timeout
        now = loop.time()
        pending = PendingCommand(
            id=command_id,
            command=command,
            future=loop.create_future(),
            created_at=now,
            deadline=now + timeout,
            connection_id=connection.id,
        )
        self._pending[command_id] = pending
        # the timer only knows the id; resolution is a table lookup
        pending.timer = loop.call_later(timeout, self._expire, command_id, timeout)
        self.metrics.record_command_sent()
        logger.debug(
            f"Sending command {command_id}: {command}",
            extra={"command_id": command_id, "connection_id": connection.id},
        )

        try:
            try:
                await connection.send(encode_command(command_id, command))
            except DisconnectionError as e:
                logger.error(
                    f"Failed to send command {command_id}: {e}",
                    extra={"command_id": command_id, "connection_id": connection.id},
                )
                self.event_bus.emit(
                    EventTypes.ERROR,
                    {"connection_id": connection.id, "error": str(e)},
                )
                if self._pop(command_id) is not None:
                    self.metrics.record_command_disconnected()
                    pending.reject(e)
            return await pending.future
        finally:
            # cancelled or failed write: drop the entry so the timer has nothing to do
            leftover = self._pop(command_id)
            if leftover is not None:
                leftover.discard()

    def resolve(self, command_id: str, result: Any = None) -> bool:
        """Settle a command with a success response; False if not pending"""
        pending = self._pop(command_id)
        if pending is None:
            logger.debug(f"Ignoring response for unknown command id {command_id}")
            return False
        result = result_text(result)
        latency = pending.future.get_loop().time() - pending.created_at
        self.metrics.record_command_resolved(latency)
        pending.resolve(result)
        return True

    def reject(self, command_id: str, error: Any) -> bool:
        """Settle a command with an upstream error; False if not pending"""
        pending = self._pop(command_id)
        if pending is None:
            logger.debug(f"Ignoring error for unknown command id {command_id}")
            return False
        self.metrics.record_command_failed()
        pending.reject(CommandError(error, command_id=command_id))
        return True

    def fail_all(self, exc_factory: Callable[[], BaseException] = DisconnectionError) -> int:
        """Reject every pending command and empty the table"""
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            entry.reject(exc_factory())
        if pending:
            self.metrics.record_command_disconnected(len(pending))
            logger.warning(f"Rejected {len(pending)} pending commands")
        return len(pending)

    def clear(self) -> int:
        return self.fail_all()

    def _pop(self, command_id: str) -> Optional[PendingCommand]:
        return self._pending.pop(command_id, None)

    def _expire(self, command_id: str, timeout: float):
        pending = self._pop(command_id)
        if pending is None:
            return
        pending.timer = None
        self.metrics.record_command_timed_out()
        logger.warning(
            f"Command {command_id} timed out after {timeout}s: {pending.command}",
            extra={"command_id": command_id, "connection_id": pending.connection_id},
        )
        pending.reject(CommandTimeoutError(command_id, timeout))

    def _on_connection_removed(self, connection: Connection):
        # one table for the whole gateway: any disconnect fails everything
        self.fail_all()
