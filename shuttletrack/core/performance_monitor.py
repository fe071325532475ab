"""
Per-stage timing for the tracking pipeline.

Stages are named by the caller (preprocess, detect, depth, track, collision).
Each keeps lifetime totals plus a sliding window so slow frames show up in
the periodic log without being averaged away.
"""
import time
from typing import Dict, Optional
from dataclasses import dataclass, field
from collections import deque
import logging

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 100


@dataclass
class TimingStats:
    """Durations (seconds) recorded for one stage."""
    window: int = DEFAULT_WINDOW
    call_count: int = 0
    total_time: float = 0.0
    min_time: float = float('inf')
    max_time: float = 0.0
    last_time: float = 0.0
    recent_times: deque = field(init=False, repr=False)

    def __post_init__(self):
        self.recent_times = deque(maxlen=max(1, self.window))

    def update(self, duration: float) -> None:
        self.call_count += 1
        self.total_time += duration
        self.last_time = duration
        if duration < self.min_time:
            self.min_time = duration
        if duration > self.max_time:
            self.max_time = duration
        self.recent_times.append(duration)

    @property
    def avg_time(self) -> float:
        return self.total_time / self.call_count if self.call_count else 0.0

    @property
    def recent_avg_time(self) -> float:
        if not self.recent_times:
            return 0.0
        return sum(self.recent_times) / len(self.recent_times)

    @property
    def recent_max_time(self) -> float:
        return max(self.recent_times) if self.recent_times else 0.0

    def as_millis(self) -> Dict[str, float]:
        return {
            "avg_time_ms": self.avg_time * 1000,
            "recent_avg_ms": self.recent_avg_time * 1000,
            "recent_max_ms": self.recent_max_time * 1000,
            "min_ms": (self.min_time if self.call_count else 0.0) * 1000,
            "max_ms": self.max_time * 1000,
            "last_ms": self.last_time * 1000,
            "call_count": self.call_count,
        }


class PerformanceMonitor:
    """
    Collects timings for named pipeline stages.

    Usage:
        monitor = PerformanceMonitor()

        with monitor.measure("detect"):
            observation = detector.process_frame(image, timestamp)

        monitor.bottleneck()   # slowest stage over the recent window
        monitor.get_report()   # millisecond figures per stage
    """

    def __init__(self, enabled: bool = True, window: int = DEFAULT_WINDOW):
        self.enabled = enabled
        self.window = window
        self.timings: Dict[str, TimingStats] = {}

    def measure(self, name: str) -> "TimingContext":
        """Context manager recording the wall time of the enclosed block."""
        return TimingContext(self, name)

    def record(self, name: str, duration: float) -> None:
        if not self.enabled:
            return
        stats = self.timings.get(name)
        if stats is None:
            stats = self.timings[name] = TimingStats(window=self.window)
        stats.update(duration)

    def get_stats(self, name: str) -> Optional[TimingStats]:
        return self.timings.get(name)

    def frame_time(self) -> float:
        """Sum of recent stage averages, i.e. the typical cost of one processed frame."""
        return sum(stats.recent_avg_time for stats in self.timings.values())

    def stage_shares(self) -> Dict[str, float]:
        """Percentage of the recent frame time spent in each stage."""
        total = self.frame_time()
        if total <= 0.0:
            return {}
        return {
            name: stats.recent_avg_time / total * 100.0
            for name, stats in self.timings.items()
        }

    def bottleneck(self) -> Optional[str]:
        if not self.timings:
            return None
        return max(self.timings, key=lambda name: self.timings[name].recent_avg_time)

    def get_report(self) -> dict:
        """
        Timing report keyed by stage name.

        Each entry holds millisecond figures plus `share_pct`, the stage's
        share of the recent frame time.
        """
        shares = self.stage_shares()
        report = {}
        for name, stats in self.timings.items():
            entry = stats.as_millis()
            entry["share_pct"] = shares.get(name, 0.0)
            report[name] = entry
        return report

    def reset(self) -> None:
        self.timings.clear()
        logger.debug("Performance monitor reset")


class TimingContext:
    """Times one `with` block; exceptions from the block still propagate."""

    def __init__(self, monitor: PerformanceMonitor, name: str):
        self.monitor = monitor
        self.name = name
        self._start: Optional[float] = None

    def __enter__(self):
        if self.monitor.enabled:
            self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._start is not None:
            self.monitor.record(self.name, time.perf_counter() - self._start)
            self._start = None
        return False
