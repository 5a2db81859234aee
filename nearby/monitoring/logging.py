"""Structured logging with context injection.

Features:
- console handler (text or JSON)
- context injection (request_id/provider/stage) through a LoggerAdapter
- structured ``payload`` dicts passed via ``extra``
"""

from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Any, TextIO

ROOT_LOGGER_NAME = "nearby"
CONTEXT_FIELDS = ("request_id", "provider", "stage")

# ---------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in CONTEXT_FIELDS:
            if hasattr(record, k):
                base[k] = getattr(record, k)

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            base["payload"] = payload

        return json.dumps(base, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Format log records as human-readable text."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [record.levelname, record.name]

        ctx = []
        for k in CONTEXT_FIELDS:
            value = getattr(record, k, None)
            if value:
                ctx.append(f"{k}={value}")
        if ctx:
            parts.append("[" + " ".join(ctx) + "]")

        parts.append(record.getMessage())

        payload = getattr(record, "payload", None)
        if isinstance(payload, dict) and payload:
            parts.append(" ".join(f"{k}={v}" for k, v in payload.items()))

        s = " ".join(parts)
        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)
        return s


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingOptions:
    """Configure logging behavior."""

    level: str = "INFO"
    json_logs: bool = False
    enable_console: bool = True


def setup_logging(
    options: LoggingOptions | None = None,
    *,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure the package root logger.

    Safe to call repeatedly: existing handlers are replaced, never stacked.
    """
    options = options or LoggingOptions()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, options.level.upper(), logging.INFO))
    logger.propagate = False

    for h in list(logger.handlers):
        logger.removeHandler(h)

    if options.enable_console:
        fmt = JsonFormatter() if options.json_logs else TextFormatter()
        ch = logging.StreamHandler(stream or sys.stderr)
        ch.setLevel(logger.level)
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    return logger


# ---------------------------------------------------------------------
# Context injection
# ---------------------------------------------------------------------


class ContextAdapter(logging.LoggerAdapter):
    """Inject context fields into log records."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        merged = dict(self.extra)
        merged.update(extra)
        kwargs["extra"] = merged
        return msg, kwargs


def with_context(
    logger: logging.Logger,
    *,
    request_id: str | None = None,
    provider: str | None = None,
    stage: str | None = None,
) -> ContextAdapter:
    """Create a context adapter with request, provider and stage info."""
    extra: dict[str, Any] = {}
    if request_id:
        extra["request_id"] = request_id
    if provider:
        extra["provider"] = provider
    if stage:
        extra["stage"] = stage
    return ContextAdapter(logger, extra)
