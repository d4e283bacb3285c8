"""Logging configuration for the gateway and daemon.

Gateway modules attach correlation fields through ``extra=``, e.g.::

    logger.warning("Command timed out", extra={"command_id": "7", "connection_id": "ab12"})

JSON output promotes those fields to top-level keys; text output appends
them as ``key=value`` pairs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Record attributes carried through ``extra=`` by gateway code.
CONTEXT_FIELDS = ("connection_id", "command_id", "event_type", "status")


def record_context(record: logging.LogRecord, fields: Iterable[str] = CONTEXT_FIELDS) -> Dict[str, Any]:
    """Correlation fields present on a record, in declaration order"""
    return {
        name: getattr(record, name)
        for name in fields
        if getattr(record, name, None) is not None
    }


class JsonFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def __init__(self, fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_obj.update(record_context(record, self.fields))
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text lines with correlation fields appended"""

    def __init__(self, fmt: str = DEFAULT_FORMAT, fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__(fmt)
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record, self.fields)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{pairs}]"


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure root logging for the daemon.

    Replaces any existing root handlers with a stdout handler and, when
    ``log_file`` is set, a file handler sharing the same formatter.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in root.handlers[:]:
        root.removeHandler(h)

    formatter: logging.Formatter = JsonFormatter() if json_format else ContextFormatter()
    for handler in _build_handlers(log_file):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # websockets logs every failed handshake at INFO
    logging.getLogger("websockets").setLevel(max(root.level, logging.WARNING))


def _build_handlers(log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    return handlers
