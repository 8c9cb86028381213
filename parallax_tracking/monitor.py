from __future__ import annotations
from collections import Counter, deque

from .types import EmissionKind


class PerformanceMonitor:
    """Tracks detector timing and emission counts for debugging and tuning."""

    def __init__(self, history_len: int = 30):
        self.detect_ms = deque(maxlen=history_len)
        self.emissions = Counter()
        self.misses = 0

    def record_detection(self, elapsed_ms: float):
        self.detect_ms.append(float(elapsed_ms))

    def record_emission(self, kind: EmissionKind):
        self.emissions[kind] += 1

    def record_miss(self):
        self.misses += 1

    def reset(self):
        self.detect_ms.clear()
        self.emissions.clear()
        self.misses = 0

    def summary(self) -> dict:
        avg = float(sum(self.detect_ms) / len(self.detect_ms)) if self.detect_ms else 0.0
        return {
            "avg_detect_ms": avg,
            "detections_per_s": (1000.0 / avg) if avg > 0.0 else 0.0,
            "fresh": self.emissions[EmissionKind.FRESH],
            "held": self.emissions[EmissionKind.HELD],
            "no_target": self.emissions[EmissionKind.NO_TARGET],
            "misses": self.misses,
        }
