"""Test metrics counters and the log formatters."""

import json
import logging

from craftgate.observability import ContextFormatter, GatewayMetrics, JsonFormatter


class TestGatewayMetrics:
    def test_command_counters(self):
        metrics = GatewayMetrics()
        metrics.record_command_sent()
        metrics.record_command_sent()
        metrics.record_command_resolved(0.2)
        metrics.record_command_timed_out()
        metrics.record_command_disconnected(3)

        commands = metrics.get_stats()["commands"]

        assert commands["sent"] == 2
        assert commands["resolved"] == 1
        assert commands["timed_out"] == 1
        assert commands["disconnected"] == 3
        assert commands["latency_mean_sec"] == 0.2

    def test_latency_samples_are_bounded(self):
        metrics = GatewayMetrics(max_samples=5)
        for i in range(10):
            metrics.record_command_resolved(float(i))
        assert len(metrics._latencies) == 5

    def test_rejections_grouped_by_status(self):
        metrics = GatewayMetrics()
        metrics.record_connection_rejected(401)
        metrics.record_connection_rejected(401)
        metrics.record_connection_rejected(403)
        assert metrics.get_stats()["connections"]["rejected"] == {401: 2, 403: 1}

    def test_reset(self):
        metrics = GatewayMetrics()
        metrics.record_event_received()
        metrics.reset()
        assert metrics.get_stats()["events"]["received"] == 0


def make_record(**context) -> logging.LogRecord:
    record = logging.LogRecord(
        "craftgate.gateway", logging.WARNING, __file__, 1, "Command %s timed out", ("7",), None
    )
    record.__dict__.update(context)
    return record


class TestFormatters:
    def test_json_promotes_correlation_fields(self):
        payload = json.loads(
            JsonFormatter().format(make_record(command_id="7", connection_id="ab12"))
        )

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "craftgate.gateway"
        assert payload["message"] == "Command 7 timed out"
        assert payload["command_id"] == "7"
        assert payload["connection_id"] == "ab12"
        assert "status" not in payload

    def test_text_appends_correlation_fields(self):
        line = ContextFormatter("%(message)s").format(make_record(connection_id="ab12"))
        assert line == "Command 7 timed out [connection_id=ab12]"

    def test_text_without_context_is_unchanged(self):
        assert ContextFormatter("%(message)s").format(make_record()) == "Command 7 timed out"

    def test_fields_from_logger_extra(self, caplog):
        logger = logging.getLogger("craftgate.gateway.broker")
        with caplog.at_level(logging.WARNING, logger="craftgate.gateway.broker"):
            logger.warning("timed out", extra={"command_id": "3"})

        payload = json.loads(JsonFormatter().format(caplog.records[-1]))
        assert payload["command_id"] == "3"
