"""
Metrics emission.

Metrics are fire-and-forget: recording never raises into the caller and
never blocks on a backend. Each metric is logged through loguru with the
metric attached as structured ``extra`` data, and the most recent ones are
kept in memory for health reporting.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from loguru import logger

MetricSink = Callable[["Metric"], None]


@dataclass
class Metric:
    """A single measurement."""

    name: str
    value: float
    unit: str = "ms"
    tags: dict[str, str] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "tags": self.tags,
            "timestamp": self.timestamp,
        }


class MetricsRecorder:
    """
    Records metrics to the log and to a bounded in-memory window.

    Extra sinks (e.g. a StatsD or OTLP shipper) can be attached with
    ``add_sink``; a failing sink is logged and skipped.
    """

    def __init__(self, window: int = 500):
        self._recent: deque[Metric] = deque(maxlen=window)
        self._sinks: list[MetricSink] = []
        self._total = 0

    def add_sink(self, sink: MetricSink) -> None:
        self._sinks.append(sink)

    def metric(
        self,
        name: str,
        value: float,
        unit: str = "ms",
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record one metric."""
        entry = Metric(name=name, value=value, unit=unit, tags=dict(tags or {}))
        self._recent.append(entry)
        self._total += 1
        logger.bind(metric=entry.to_dict()).debug(
            f"[METRIC] {name}={value:.2f}{unit} {entry.tags}"
        )

        for sink in self._sinks:
            try:
                sink(entry)
            except Exception as e:
                logger.warning(f"Metric sink failed for {name}: {e}")

    @property
    def recent(self) -> list[Metric]:
        return list(self._recent)

    def named(self, name: str) -> list[Metric]:
        return [m for m in self._recent if m.name == name]

    def get_stats(self) -> dict[str, Any]:
        return {"recorded": self._total, "window": len(self._recent)}
