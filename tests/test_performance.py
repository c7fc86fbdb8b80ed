"""
Tests for Performance Module
=============================
"""

import logging
import time

import pytest

from handpose.core.types import (
    FingerState, GestureDetail, GestureKind, GestureMotion, GestureResult, Handedness,
)
from handpose.utils.logger import GestureLogger, setup_logging
from handpose.utils.performance_monitor import PerformanceMonitor, Timer


class TestTimer:
    """Test suite for Timer class."""

    def test_basic_timing(self):
        """Test basic timer functionality."""
        timer = Timer("test")
        timer.start()
        time.sleep(0.05)
        elapsed = timer.stop()

        assert elapsed >= 0.04
        assert timer.elapsed == elapsed

    def test_context_manager(self):
        """Test timer as context manager."""
        with Timer("test") as t:
            time.sleep(0.02)

        assert t.elapsed >= 0.015
        assert t.elapsed_ms >= 15

    def test_elapsed_without_stop(self):
        """Test getting elapsed time while running."""
        timer = Timer("test").start()
        time.sleep(0.02)
        assert timer.elapsed >= 0.015

    def test_not_started(self):
        assert Timer().elapsed == 0.0


class TestPerformanceMonitor:
    """Test suite for PerformanceMonitor class."""

    @pytest.fixture
    def monitor(self):
        return PerformanceMonitor(window_size=5)

    def test_empty(self, monitor):
        assert monitor.fps == 0.0
        assert monitor.frame_time_ms == 0.0
        assert monitor.stage_time_ms("landmark") == 0.0

    def test_stage_timing(self, monitor):
        """Test per-stage timing."""
        for _ in range(3):
            monitor.frame_start()
            with monitor.measure("palm_detection"):
                time.sleep(0.002)
            with monitor.measure("landmark"):
                time.sleep(0.01)
            monitor.frame_complete()

        assert monitor.stage_time_ms("palm_detection") >= 1.5
        assert monitor.stage_time_ms("landmark") > monitor.stage_time_ms("palm_detection")
        assert monitor.frame_time_ms >= monitor.stage_time_ms("landmark")
        assert monitor.fps > 0

    def test_measure_records_on_error(self, monitor):
        with pytest.raises(RuntimeError):
            with monitor.measure("landmark"):
                raise RuntimeError("boom")
        assert monitor.stage_time_ms("landmark") >= 0.0
        assert monitor.get_metrics().landmark_ms >= 0.0

    def test_complete_without_start_ignored(self, monitor):
        monitor.frame_complete()
        assert monitor.get_metrics().total_frames == 0

    def test_failed_frames(self, monitor):
        monitor.frame_start()
        monitor.frame_failed()
        monitor.frame_complete()
        metrics = monitor.get_metrics()
        assert metrics.failed_frames == 1
        assert metrics.total_frames == 0

    def test_rolling_window(self, monitor):
        """Only the last ``window_size`` cycles count towards averages."""
        for _ in range(8):
            monitor.frame_start()
            monitor.frame_complete()
        assert len(monitor._frame_times) == 5
        assert monitor.get_metrics().total_frames == 8

    def test_report_generation(self, monitor):
        monitor.frame_start()
        monitor.frame_complete()
        report = monitor.get_report()
        assert "Throughput" in report
        assert "Palm detection" in report
        assert "Completed: 1" in report

    def test_reset(self, monitor):
        monitor.frame_start()
        monitor.frame_complete()
        monitor.frame_failed()
        monitor.reset()
        metrics = monitor.get_metrics()
        assert metrics.total_frames == 0
        assert metrics.failed_frames == 0
        assert metrics.fps == 0.0


def make_result(primary=GestureKind.FIST, motion=GestureMotion.STEADY, label="Fist"):
    detail = GestureDetail(
        primary=primary,
        secondary=None,
        handedness=Handedness.RIGHT,
        finger_states=(FingerState.FOLDED,) * 5,
        motion=motion,
    )
    return GestureResult(label=label, confidence=0.8, timestamp=0.0, landmarks=[], detail=detail)


class TestGestureLogger:
    """Test suite for gesture transition logging."""

    def test_logs_transitions_only(self, caplog):
        gesture_logger = GestureLogger()
        with caplog.at_level(logging.INFO, logger="gesture_events"):
            assert gesture_logger.observe(make_result())
            assert not gesture_logger.observe(make_result())
            assert gesture_logger.observe(make_result(motion=GestureMotion.MOVING))
        assert gesture_logger.total_transitions == 2
        assert len([r for r in caplog.records if r.name == "gesture_events"]) == 2

    def test_no_hand_entries(self):
        gesture_logger = GestureLogger()
        gesture_logger.observe(GestureResult(label="No hand", confidence=0.0, timestamp=0.0))
        entry = gesture_logger.get_history()[0]
        assert entry["gesture"] is None
        assert entry["label"] == "No hand"

    def test_history_bounded(self):
        gesture_logger = GestureLogger(max_history=3)
        kinds = [GestureKind.FIST, GestureKind.POINT, GestureKind.OK, GestureKind.ROCK]
        for kind in kinds:
            gesture_logger.observe(make_result(primary=kind))
        history = gesture_logger.get_history()
        assert [e["gesture"] for e in history] == ["point", "ok", "rock"]
        assert len(gesture_logger.get_history(last_n=1)) == 1


class TestSetupLogging:
    """Test suite for logging setup."""

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "handpose.log"
        root = setup_logging("DEBUG", log_file=str(log_file))
        try:
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert log_file.parent.is_dir()
        finally:
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)

    def test_unknown_level_defaults_to_info(self):
        root = setup_logging("chatty")
        try:
            assert root.level == logging.INFO
            assert len(root.handlers) == 1
        finally:
            root.handlers.clear()
