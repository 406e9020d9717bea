"""
Metrics collection and calculation for benchmarks.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence


@dataclass(frozen=True)
class TimingSample:
    """Wall-clock cost of one measured call, in milliseconds."""
    duration_ms: float
    errored: bool = False


@dataclass(frozen=True)
class RunStats:
    """
    Summary statistics of one measured loop.

    All values are in milliseconds. Every field is 0.0 when no samples
    were collected.
    """
    mean: float = 0.0
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    min: float = 0.0
    max: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for serialization."""
        return {
            "mean": self.mean,
            "p50": self.p50,
            "p95": self.p95,
            "p99": self.p99,
            "min": self.min,
            "max": self.max,
        }


def percentile(sorted_data: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile of already sorted data.

    Selects ``sorted_data[ceil(p/100 * n) - 1]`` clamped to the valid index
    range; never interpolates. Returns 0.0 for empty data.
    """
    n = len(sorted_data)
    if n == 0:
        return 0.0

    index = math.ceil(p / 100 * n) - 1
    index = min(max(index, 0), n - 1)
    return sorted_data[index]


def compute_stats(timings: Sequence[float]) -> RunStats:
    """
    Reduce durations to mean, nearest-rank p50/p95/p99, min and max.

    The input is not modified.
    """
    if not timings:
        return RunStats()

    sorted_times = sorted(timings)
    n = len(sorted_times)

    return RunStats(
        mean=sum(sorted_times) / n,
        p50=percentile(sorted_times, 50),
        p95=percentile(sorted_times, 95),
        p99=percentile(sorted_times, 99),
        min=sorted_times[0],
        max=sorted_times[-1],
    )


class MetricsCollector:
    """
    Collects timing samples during a measured loop.

    Usage:
        collector = MetricsCollector()

        for _ in range(iterations):
            collector.record(elapsed_ms, errored=failed)

        stats = collector.calculate()
    """

    def __init__(self):
        self.samples: List[TimingSample] = []

    def record(self, duration_ms: float, errored: bool = False) -> None:
        """
        Record a single measured call.

        Args:
            duration_ms: Elapsed wall-clock time in milliseconds
            errored: Whether the call raised
        """
        self.samples.append(TimingSample(max(duration_ms, 0.0), errored))

    @property
    def timings(self) -> List[float]:
        return [s.duration_ms for s in self.samples]

    @property
    def error_count(self) -> int:
        return sum(1 for s in self.samples if s.errored)

    def calculate(self) -> RunStats:
        """
        Calculate aggregated statistics.

        Errored samples are included: a failed call still costs time.
        """
        return compute_stats(self.timings)
