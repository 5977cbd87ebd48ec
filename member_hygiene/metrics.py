"""
Run metrics with Prometheus text exposition.

Each job run tallies what it scanned, found and wrote. The exposition can be
written to a file for a node-exporter textfile collector.
"""

from __future__ import annotations

import os
import time
from collections import defaultdict
from pathlib import Path


class MetricsCollector:
    """Counters and gauges for one audit or fix run."""

    def __init__(self, job: str) -> None:
        self._job = job
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def _name(self, name: str) -> str:
        return f"hygiene_{self._job}_{name}"

    def inc(self, name: str, value: int = 1) -> None:
        """Increment a counter."""
        self._counters[self._name(name)] += value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[self._name(name)] = value

    def get(self, name: str) -> int | float:
        full = self._name(name)
        if full in self._gauges:
            return self._gauges[full]
        return self._counters.get(full, 0)

    def to_prometheus(self) -> str:
        lines = []
        for name, value in sorted(self._counters.items()):
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")
        for name, value in sorted(self._gauges.items()):
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {value}")
        duration = self._name("duration_seconds")
        lines.append(f"# TYPE {duration} gauge")
        lines.append(f"{duration} {time.time() - self._start_time:.1f}")
        return "\n".join(lines) + "\n"

    def write_textfile(self, path: str | Path) -> None:
        """Write the exposition atomically (temp file, then rename)."""
        path = Path(path)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(self.to_prometheus())
        os.replace(tmp, path)
