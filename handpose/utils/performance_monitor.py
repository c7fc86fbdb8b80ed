"""
Performance Monitoring Module
==============================

Rolling per-stage timings and throughput for the recognition worker
and the benchmark mode.
"""

import time
import logging
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class Timer:
    """
    High-precision timer for measuring code execution time.

    Example:
        >>> with Timer("compose") as t:
        ...     draw_overlay(frame)
        >>> print(f"Took {t.elapsed_ms:.2f}ms")
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None
        self._elapsed: float = 0.0

    def start(self) -> "Timer":
        """Start the timer."""
        self._start_time = time.perf_counter()
        self._end_time = None
        return self

    def stop(self) -> float:
        """Stop the timer and return elapsed time in seconds."""
        self._end_time = time.perf_counter()
        if self._start_time is not None:
            self._elapsed = self._end_time - self._start_time
        return self._elapsed

    @property
    def elapsed(self) -> float:
        """Elapsed time in seconds (running time if not yet stopped)."""
        if self._start_time is None:
            return 0.0
        if self._end_time is None:
            return time.perf_counter() - self._start_time
        return self._elapsed

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed * 1000

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


@dataclass
class PerformanceMetrics:
    """Snapshot of pipeline performance."""
    fps: float = 0.0
    frame_time_ms: float = 0.0
    palm_detection_ms: float = 0.0
    landmark_ms: float = 0.0
    classification_ms: float = 0.0
    total_frames: int = 0
    failed_frames: int = 0


class PerformanceMonitor:
    """
    Rolling performance statistics for one recognition worker.

    Tracks:
    - Cycles per second
    - Per-stage latency (palm detection, landmark inference, classification)
    - Failed cycles (decode errors, inference failures)

    Example:
        >>> monitor = PerformanceMonitor()
        >>> monitor.frame_start()
        >>> with monitor.measure("palm_detection"):
        ...     regions = detector.detect(frame)
        >>> monitor.frame_complete()
    """

    def __init__(self, window_size: int = 30):
        self.window_size = window_size
        self._frame_times: deque = deque(maxlen=window_size)
        self._stage_times: Dict[str, deque] = {}
        self._frame_start: Optional[float] = None
        self._total_frames: int = 0
        self._failed_frames: int = 0
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all collected timings."""
        with self._lock:
            self._frame_times.clear()
            self._stage_times.clear()
            self._total_frames = 0
            self._failed_frames = 0
        self._frame_start = None

    def frame_start(self) -> None:
        """Mark the start of one processing cycle."""
        self._frame_start = time.perf_counter()

    def frame_complete(self) -> None:
        """Mark the cycle complete and record its duration."""
        if self._frame_start is None:
            return
        frame_time = time.perf_counter() - self._frame_start
        with self._lock:
            self._frame_times.append(frame_time)
            self._total_frames += 1
        self._frame_start = None

    def frame_failed(self) -> None:
        """Count a cycle that produced no result."""
        with self._lock:
            self._failed_frames += 1
        self._frame_start = None

    @contextmanager
    def measure(self, stage: str):
        """Context manager timing one stage of the current cycle."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                if stage not in self._stage_times:
                    self._stage_times[stage] = deque(maxlen=self.window_size)
                self._stage_times[stage].append(elapsed)

    @property
    def fps(self) -> float:
        """Cycles per second (rolling average)."""
        with self._lock:
            if not self._frame_times:
                return 0.0
            avg_frame_time = sum(self._frame_times) / len(self._frame_times)
        return 1.0 / avg_frame_time if avg_frame_time > 0 else 0.0

    @property
    def frame_time_ms(self) -> float:
        with self._lock:
            if not self._frame_times:
                return 0.0
            return (sum(self._frame_times) / len(self._frame_times)) * 1000

    def stage_time_ms(self, stage: str) -> float:
        """Average time for a stage in milliseconds."""
        with self._lock:
            times = self._stage_times.get(stage)
            if not times:
                return 0.0
            return (sum(times) / len(times)) * 1000

    def get_metrics(self) -> PerformanceMetrics:
        with self._lock:
            total, failed = self._total_frames, self._failed_frames
        return PerformanceMetrics(
            fps=self.fps,
            frame_time_ms=self.frame_time_ms,
            palm_detection_ms=self.stage_time_ms("palm_detection"),
            landmark_ms=self.stage_time_ms("landmark"),
            classification_ms=self.stage_time_ms("classification"),
            total_frames=total,
            failed_frames=failed,
        )

    def get_report(self) -> str:
        """Formatted multi-line performance report."""
        m = self.get_metrics()
        attempted = max(1, m.total_frames + m.failed_frames)
        return (
            f"Performance Report\n"
            f"{'=' * 40}\n"
            f"Throughput: {m.fps:.1f} cycles/s ({m.frame_time_ms:.1f}ms per cycle)\n"
            f"\nPer-Stage Breakdown:\n"
            f"  Palm detection: {m.palm_detection_ms:.2f}ms\n"
            f"  Landmarks: {m.landmark_ms:.2f}ms\n"
            f"  Classification: {m.classification_ms:.2f}ms\n"
            f"\nCycle Stats:\n"
            f"  Completed: {m.total_frames}\n"
            f"  Failed: {m.failed_frames} ({100 * m.failed_frames / attempted:.1f}%)\n"
        )
