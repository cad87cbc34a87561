"""Per-run execution state."""

from __future__ import annotations

import threading

from stepflow.concurrency import SharedCell
from stepflow.models.performance_metrics import PerformanceMetrics


class ExecutionState:
    """The running last output plus timings of every step that finished."""

    def __init__(self, last_output: str = "") -> None:
        self._last_output: SharedCell[str] = SharedCell(last_output)
        self._metrics: dict[str, PerformanceMetrics] = {}
        self._metrics_lock = threading.Lock()

    @property
    def last_output(self) -> str:
        return self._last_output.get()

    def set_last_output(self, value: str) -> None:
        self._last_output.set(value)

    def record_metrics(self, step_name: str, metrics: PerformanceMetrics) -> None:
        with self._metrics_lock:
            self._metrics[step_name] = metrics

    @property
    def metrics(self) -> dict[str, PerformanceMetrics]:
        with self._metrics_lock:
            return dict(self._metrics)

    def snapshot(self) -> "ExecutionState":
        """A private copy seeded with the current last output and no metrics."""
        return ExecutionState(self.last_output)

    def merge_metrics(self, other: "ExecutionState") -> None:
        for step_name, metrics in other.metrics.items():
            self.record_metrics(step_name, metrics)
