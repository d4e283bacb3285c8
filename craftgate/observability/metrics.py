"""Simple in-memory metrics for command latency, outcomes and traffic."""

import time
from typing import Dict, List


class GatewayMetrics:
    """Counters for one gateway instance."""

    def __init__(self, max_samples: int = 1000):
        self._max_samples = max_samples
        self._latencies: List[float] = []
        self.started_at = time.time()
        self.reset()

    def record_command_sent(self) -> None:
        self._commands_sent += 1

    def record_command_resolved(self, latency_sec: float) -> None:
        self._commands_resolved += 1
        self._latencies.append(latency_sec)
        if len(self._latencies) > self._max_samples:
            self._latencies.pop(0)

    def record_command_failed(self) -> None:
        self._commands_failed += 1

    def record_command_timed_out(self) -> None:
        self._commands_timed_out += 1

    def record_command_disconnected(self, count: int = 1) -> None:
        self._commands_disconnected += count

    def record_no_connection(self) -> None:
        self._no_connection += 1

    def record_event_received(self) -> None:
        self._events_received += 1

    def record_protocol_error(self) -> None:
        self._protocol_errors += 1

    def record_connection_admitted(self) -> None:
        self._connections_admitted += 1

    def record_connection_rejected(self, status: int) -> None:
        self._connections_rejected[status] = self._connections_rejected.get(status, 0) + 1

    def get_stats(self) -> Dict:
        """Return current metrics snapshot."""
        latencies = self._latencies[-100:] if self._latencies else []
        return {
            "commands": {
                "sent": self._commands_sent,
                "resolved": self._commands_resolved,
                "failed": self._commands_failed,
                "timed_out": self._commands_timed_out,
                "disconnected": self._commands_disconnected,
                "no_connection": self._no_connection,
                "latency_mean_sec": sum(latencies) / len(latencies) if latencies else 0,
                "latency_p99_sec": sorted(latencies)[int(len(latencies) * 0.99)] if len(latencies) > 10 else 0,
            },
            "events": {
                "received": self._events_received,
                "protocol_errors": self._protocol_errors,
            },
            "connections": {
                "admitted": self._connections_admitted,
                "rejected": dict(self._connections_rejected),
            },
            "uptime_seconds": time.time() - self.started_at,
        }

    def reset(self) -> None:
        self._latencies.clear()
        self._commands_sent = 0
        self._commands_resolved = 0
        self._commands_failed = 0
        self._commands_timed_out = 0
        self._commands_disconnected = 0
        self._no_connection = 0
        self._events_received = 0
        self._protocol_errors = 0
        self._connections_admitted = 0
        self._connections_rejected: Dict[int, int] = {}
