"""Named-phase timer."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class _Metric:
    start: float
    end: float | None = None

    @property
    def duration_ms(self) -> float | None:
        if self.end is None:
            return None
        return round((self.end - self.start) * 1000, 1)


class Performance:
    """Track how long named phases take, in milliseconds."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._metrics: dict[str, _Metric] = {}

    def start(self, name: str) -> None:
        self._metrics[name] = _Metric(start=self._clock())

    def end(self, name: str) -> float:
        """Stop ``name`` and return its duration.

        Raises:
            KeyError: if ``name`` was never started.
        """
        metric = self._metrics.get(name)
        if metric is None:
            raise KeyError(f"Performance metric '{name}' not found")
        metric.end = self._clock()
        return metric.duration_ms or 0.0

    def get(self, name: str) -> float:
        metric = self._metrics.get(name)
        if metric is None or metric.duration_ms is None:
            return 0.0
        return metric.duration_ms

    def get_all(self) -> dict[str, float]:
        return {
            name: metric.duration_ms
            for name, metric in self._metrics.items()
            if metric.duration_ms is not None
        }

    def reset(self) -> None:
        self._metrics.clear()

    def summary(self) -> str:
        entries = ", ".join(f"{name}: {ms}ms" for name, ms in self.get_all().items())
        return entries or "No metrics recorded"
