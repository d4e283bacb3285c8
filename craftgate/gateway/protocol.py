"""Wire envelopes exchanged with the upstream plugin

Outbound command::

    {"id": "0", "type": "command", "data": "/give @a diamond"}

Inbound frames are either a response to a command::

    {"id": "0", "result": "Gave 1 diamond"}
    {"id": "0", "error": "Unknown command"}

or an event notification::

    {"eventType": "player_joined", "data": {...}}
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from craftgate.errors import ProtocolError

COMMAND_TYPE = "command"

# Result reported when the upstream acknowledges without one.
DEFAULT_RESULT = "Command completed"


@dataclass
class InboundMessage:
    """One parsed inbound frame

    A frame may carry both an ``id`` and an ``eventType``; the gateway
    settles the command when the id is pending and otherwise emits the event.
    """

    id: Optional[str] = None
    result: Any = None
    error: Any = None
    event_type: Optional[str] = None
    data: Any = None

    @property
    def is_error(self) -> bool:
        return bool(self.error)

    @property
    def result_text(self) -> str:
        return result_text(self.result)


def result_text(result: Any) -> str:
    """Text handed back to the caller for a success response

    Absent or falsy results (None, "", 0, false) become DEFAULT_RESULT;
    other non-string values are returned as JSON.
    """
    if result is None or result is False or result == "" or result == 0:
        return DEFAULT_RESULT
    if isinstance(result, str):
        return result
    return json.dumps(result)


def encode_command(command_id: str, command: str) -> str:
    return json.dumps({"id": command_id, "type": COMMAND_TYPE, "data": command})


def parse_inbound(frame: Union[str, bytes]) -> InboundMessage:
    """Parse a text frame from the upstream

    Raises:
        ProtocolError: Binary frame, invalid JSON, wrong shape or field types
    """
    if not isinstance(frame, str):
        raise ProtocolError("Binary frames are not supported")

    try:
        data = json.loads(frame)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(data).__name__}")

    return _from_dict(data)


def _from_dict(data: Dict[str, Any]) -> InboundMessage:
    command_id = data.get("id")
    event_type = data.get("eventType")

    if command_id is not None and not isinstance(command_id, str):
        raise ProtocolError(f"Message id must be a string, got {command_id!r}")
    if event_type is not None and not isinstance(event_type, str):
        raise ProtocolError(f"eventType must be a string, got {event_type!r}")
    if not command_id and not event_type:
        raise ProtocolError("Message has neither an id nor an eventType")

    return InboundMessage(
        id=command_id or None,
        result=data.get("result"),
        error=data.get("error"),
        event_type=event_type or None,
        data=data.get("data"),
    )
