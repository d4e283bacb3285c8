"""Observability: structured logging and gateway metrics."""

from .logging_config import setup_logging, ContextFormatter, JsonFormatter
from .metrics import GatewayMetrics

__all__ = [
    "setup_logging",
    "ContextFormatter",
    "JsonFormatter",
    "GatewayMetrics",
]
