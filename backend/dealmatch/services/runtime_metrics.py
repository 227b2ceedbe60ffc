# backend/dealmatch/services/runtime_metrics.py
from __future__ import annotations

import threading


class _Metrics:
    """Process-local counters and duration totals, exposed at /api/metrics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}

    def inc(self, name: str, n: float = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + n

    def observe_ms(self, name: str, ms: float) -> None:
        with self._lock:
            self._counters[f"{name}_ms_sum"] = self._counters.get(f"{name}_ms_sum", 0) + float(ms)
            self._counters[f"{name}_count"] = self._counters.get(f"{name}_count", 0) + 1

    def snapshot(self) -> dict[str, float]:
        with self._lock:
            return dict(sorted(self._counters.items()))

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


METRICS = _Metrics()
