"""Per-step timing information."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PerformanceMetrics:
    input_processing_ms: int = 0
    model_processing_ms: int = 0
    action_processing_ms: int = 0
    output_processing_ms: int = 0
    total_processing_ms: int = 0
