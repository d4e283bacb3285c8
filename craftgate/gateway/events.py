"""Event bus for upstream notifications"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Set

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class EventBus:
    """Maps event type names to ordered listener sets and fans payloads out

    Listeners are held by reference and removed by equality, so bound
    methods can be unregistered with a fresh ``obj.method`` expression.
    Emission is synchronous; a listener that returns an awaitable has it
    scheduled as a task on the running loop.
    """

    def __init__(self):
        # dict keys give an insertion-ordered set
        self.handlers: Dict[str, Dict[Listener, None]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def on(self, event_type: str, listener: Listener):
        """Subscribe to an event type

        Args:
            event_type: Type of event to listen for
            listener: Callable receiving the event payload
        """
        listeners = self.handlers.setdefault(event_type, {})
        if listener not in listeners:
            listeners[listener] = None
            logger.debug(f"Registered handler for event: {event_type}")

    def off(self, event_type: str, listener: Listener):
        """Unsubscribe from an event type

        Args:
            event_type: Event type
            listener: Listener to remove
        """
        listeners = self.handlers.get(event_type)
        if listeners is None or listener not in listeners:
            return
        del listeners[listener]
        if not listeners:
            del self.handlers[event_type]
        logger.debug(f"Unregistered handler for event: {event_type}")

    def remove_all(self, event_type: str):
        """Drop every listener for one event type"""
        self.handlers.pop(event_type, None)

    def clear(self):
        """Drop the whole listener table and forget in-flight async listeners"""
        self.handlers.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def listener_count(self, event_type: str) -> int:
        return len(self.handlers.get(event_type, ()))

    def event_types(self) -> List[str]:
        return list(self.handlers)

    def emit(self, event_type: str, payload: Any = None):
        """Deliver payload to every listener registered when the call starts

        Listener failures are logged and never reach the caller.
        """
        listeners = self.handlers.get(event_type)
        if not listeners:
            return

        snapshot = list(listeners)
        logger.debug(f"Emitting event '{event_type}' to {len(snapshot)} handlers")

        for listener in snapshot:
            try:
                result = listener(payload)
            except Exception as e:
                logger.error(f"Error in {event_type} event handler: {e}", exc_info=True)
                continue

            if inspect.isawaitable(result):
                self._schedule(event_type, result)

    def _schedule(self, event_type: str, awaitable: Any):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"Async {event_type} event handler needs a running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)

        def _done(t: asyncio.Task):
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error(
                    f"Error in {event_type} event handler: {exc}",
                    exc_info=(type(exc), exc, exc.__traceback__),
                )

        task.add_done_callback(_done)


# Built-in event types
class EventTypes:
    """Event types emitted by the gateway itself"""

    CONNECTION = "connection"
    DISCONNECTION = "disconnection"
    ERROR = "error"
