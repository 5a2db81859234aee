"""
Unit tests for the structured logging helpers.
"""

import io
import json
import logging

from nearby.monitoring.logging import (
    JsonFormatter,
    LoggingOptions,
    TextFormatter,
    setup_logging,
    with_context,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("nearby.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestFormatters:
    """Tests for JsonFormatter and TextFormatter."""

    def test_json_formatter(self):
        """Should emit one JSON object with context and payload."""
        line = JsonFormatter().format(_record(request_id="abc", payload={"count": 3}))

        data = json.loads(line)
        assert data["level"] == "INFO"
        assert data["logger"] == "nearby.test"
        assert data["msg"] == "hello"
        assert data["request_id"] == "abc"
        assert data["payload"] == {"count": 3}

    def test_text_formatter(self):
        """Should render context in brackets and payload as key=value."""
        line = TextFormatter().format(_record(provider="meetup", stage="fanout", payload={"n": 2}))

        assert line == "INFO nearby.test [provider=meetup stage=fanout] hello n=2"

    def test_text_formatter_without_context(self):
        """Should omit the brackets when there is no context."""
        assert TextFormatter().format(_record()) == "INFO nearby.test hello"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_replaces_handlers(self):
        """Should not stack handlers across calls."""
        setup_logging(LoggingOptions(level="DEBUG"))
        logger = setup_logging(LoggingOptions(level="DEBUG"))

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_json_output(self):
        """Should write JSON lines to the given stream."""
        stream = io.StringIO()
        setup_logging(LoggingOptions(json_logs=True), stream=stream)

        logging.getLogger("nearby.ingestion.test").info("fan-out done")

        data = json.loads(stream.getvalue().strip())
        assert data["msg"] == "fan-out done"

    def test_console_disabled(self):
        """Should install no handler when console output is off."""
        logger = setup_logging(LoggingOptions(enable_console=False))
        assert logger.handlers == []


class TestContextAdapter:
    """Tests for with_context."""

    def test_injects_context(self):
        """Should attach request_id/provider/stage to every record."""
        stream = io.StringIO()
        setup_logging(LoggingOptions(), stream=stream)

        log = with_context(logging.getLogger("nearby.pipeline"), request_id="r1", stage="rank")
        log.info("ranked", extra={"payload": {"count": 5}})

        assert stream.getvalue().strip() == "INFO nearby.pipeline [request_id=r1 stage=rank] ranked count=5"

    def test_skips_empty_fields(self):
        """Should only carry the fields that were given."""
        adapter = with_context(logging.getLogger("nearby"), provider="meetup")
        assert adapter.extra == {"provider": "meetup"}
