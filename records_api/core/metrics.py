"""
In-process counters with Prometheus text exposition.

Counters are per-worker and reset on restart; they are the only mutable
state shared between requests.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any


class MetricsCollector:
    """Counters and gauges for request and authorization outcomes."""

    def __init__(self, prefix: str = "records") -> None:
        self._prefix = prefix
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def _name(self, name: str) -> str:
        return f"{self._prefix}_{name}"

    def inc(self, name: str, value: int = 1) -> None:
        """Increment a counter."""
        self._counters[self._name(name)] += value

    def set_gauge(self, name: str, value: float) -> None:
        """Set a gauge value."""
        self._gauges[self._name(name)] = value

    def get(self, name: str) -> int | float:
        """Get a metric value."""
        full = self._name(name)
        if full in self._gauges:
            return self._gauges[full]
        return self._counters.get(full, 0)

    @property
    def uptime(self) -> float:
        return time.time() - self._start_time

    def reset(self) -> None:
        self._counters.clear()
        self._gauges.clear()

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines = []
        for name, value in sorted(self._counters.items()):
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")
        for name, value in sorted(self._gauges.items()):
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {value}")
        lines.append(f"# TYPE {self._prefix}_uptime_seconds gauge")
        lines.append(f"{self._prefix}_uptime_seconds {self.uptime:.1f}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        """Export metrics as a dictionary."""
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "uptime_seconds": round(self.uptime, 1),
        }


metrics = MetricsCollector()
