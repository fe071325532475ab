"""
Tests for performance monitoring.
"""
import time

import pytest

from shuttletrack.core.performance_monitor import PerformanceMonitor, TimingStats


def test_timing_stats_update():
    """Test statistics bookkeeping."""
    stats = TimingStats()
    stats.update(0.01)
    stats.update(0.03)

    assert stats.call_count == 2
    assert abs(stats.avg_time - 0.02) < 1e-12
    assert stats.min_time == 0.01
    assert stats.max_time == 0.03
    assert stats.last_time == 0.03
    assert abs(stats.recent_avg_time - 0.02) < 1e-12


def test_timing_stats_empty():
    stats = TimingStats()

    assert stats.avg_time == 0.0
    assert stats.recent_avg_time == 0.0


def test_monitor_measure():
    """Test context manager records stage timing."""
    monitor = PerformanceMonitor()

    with monitor.measure("detect"):
        time.sleep(0.01)

    stats = monitor.get_stats("detect")
    assert stats is not None
    assert stats.call_count == 1
    assert stats.last_time >= 0.005


def test_monitor_disabled():
    """Test disabled monitor records nothing."""
    monitor = PerformanceMonitor(enabled=False)

    with monitor.measure("detect"):
        pass
    monitor.record("track", 0.1)

    assert monitor.get_report() == {}


def test_monitor_report_and_reset():
    monitor = PerformanceMonitor()
    monitor.record("track", 0.002)
    monitor.record("track", 0.004)

    report = monitor.get_report()
    assert report["track"]["call_count"] == 2
    assert abs(report["track"]["avg_time_ms"] - 3.0) < 1e-9
    assert abs(report["track"]["max_ms"] - 4.0) < 1e-9

    monitor.reset()
    assert monitor.get_report() == {}


def test_measure_propagates_exceptions():
    """Test timing does not swallow errors from the measured block."""
    monitor = PerformanceMonitor()

    with pytest.raises(KeyError):
        with monitor.measure("collision"):
            raise KeyError("boom")

    assert monitor.get_stats("collision").call_count == 1


def test_bottleneck_and_stage_shares():
    """Test the slowest stage and per-stage share of the frame time."""
    monitor = PerformanceMonitor()
    monitor.record("detect", 0.003)
    monitor.record("track", 0.001)

    assert monitor.bottleneck() == "detect"
    assert monitor.frame_time() == pytest.approx(0.004)
    shares = monitor.stage_shares()
    assert shares["detect"] == pytest.approx(75.0)
    assert monitor.get_report()["track"]["share_pct"] == pytest.approx(25.0)


def test_bottleneck_empty():
    monitor = PerformanceMonitor()

    assert monitor.bottleneck() is None
    assert monitor.stage_shares() == {}


def test_sliding_window():
    """Test recent figures only cover the window."""
    stats = TimingStats(window=2)
    for duration in (0.1, 0.002, 0.004):
        stats.update(duration)

    assert stats.recent_avg_time == pytest.approx(0.003)
    assert stats.recent_max_time == pytest.approx(0.004)
    assert stats.max_time == 0.1
