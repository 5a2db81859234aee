"""In-process pipeline metrics: labelled counters and duration summaries.

Exported as a plain dict so a caller can publish them to any backend.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

SUGGEST_REQUESTS = "suggest_requests_total"
SUGGEST_DURATION = "suggest_duration_seconds"
SUGGEST_RESULTS = "suggest_results_count"
AGGREGATION_SOURCE = "aggregation_source_total"
PROVIDER_CALLS = "provider_calls_total"
PROVIDER_DURATION = "provider_call_duration_seconds"


def metric_key(name: str, labels: dict[str, str] | None = None) -> str:
    """``name|k1=v1|k2=v2`` with labels sorted by key."""
    if not labels:
        return name
    return "|".join([name, *(f"{k}={v}" for k, v in sorted(labels.items()))])


@dataclass
class MetricsRegistry:
    """Counters plus count/sum/min/max summaries, keyed by name and labels."""

    counters: dict[str, float] = field(default_factory=dict)
    summaries: dict[str, dict[str, float]] = field(default_factory=dict)

    def inc(self, name: str, value: float = 1.0, *, labels: dict[str, str] | None = None) -> None:
        key = metric_key(name, labels)
        self.counters[key] = self.counters.get(key, 0.0) + float(value)

    def observe(self, name: str, value: float, *, labels: dict[str, str] | None = None) -> None:
        """Add one observation to a summary."""
        key = metric_key(name, labels)
        value = float(value)
        summary = self.summaries.setdefault(
            key, {"count": 0.0, "sum": 0.0, "min": value, "max": value}
        )
        summary["count"] += 1.0
        summary["sum"] += value
        summary["min"] = min(summary["min"], value)
        summary["max"] = max(summary["max"], value)

    @contextmanager
    def timer(self, name: str, *, labels: dict[str, str] | None = None) -> Iterator[None]:
        """Observe the wall time spent in the block, in seconds."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - started, labels=labels)

    def counter(self, name: str, *, labels: dict[str, str] | None = None) -> float:
        return self.counters.get(metric_key(name, labels), 0.0)

    def snapshot(self) -> dict[str, Any]:
        """JSON-friendly copy of every metric."""
        return {
            "counters": dict(self.counters),
            "summaries": {k: dict(v) for k, v in self.summaries.items()},
        }

    def reset(self) -> None:
        self.counters.clear()
        self.summaries.clear()
