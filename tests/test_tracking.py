"""
Tests for Hand Tracking
========================
"""

import math

import pytest

from conftest import OPEN_PALM, to_projected

from handpose.core.types import CropTransform
from handpose.detection.tracking import (
    HandTracker,
    HandTrackerConfig,
    TrackedRoi,
    orientation_from_landmarks,
)


def transform(side=300.0, angle=0.0):
    return CropTransform(center=(185.0, 200.0), side=side, angle=angle, size=224)


class TestHandTracker:
    """Test suite for HandTracker."""

    @pytest.fixture
    def tracker(self):
        return HandTracker()

    @pytest.fixture
    def projected(self):
        # bbox x 100..270, y 100..300 -> span 200
        return to_projected(OPEN_PALM, scale=200.0, offset=(100.0, 100.0))

    def test_starts_empty(self, tracker):
        assert not tracker.is_tracking
        assert tracker.estimate_roi(0.0) is None

    def test_round_trip(self, tracker, projected):
        """A fresh update yields an ROI centred on the landmark box."""
        tracker.update(transform(), projected, 0.8, 1.0)
        roi = tracker.estimate_roi(1.1)
        assert isinstance(roi, TrackedRoi)
        assert roi.center == pytest.approx((185.0, 200.0))
        assert roi.side >= 200.0 * 1.8
        assert roi.side == pytest.approx(360.0)
        assert roi.confidence == pytest.approx(0.8)

    def test_orientation_from_landmarks(self, tracker, projected):
        """Angle follows the wrist -> MCP midpoint axis, not the stored crop angle."""
        tracker.update(transform(angle=1.0), projected, 0.8, 0.0)
        roi = tracker.estimate_roi(0.1)
        expected = orientation_from_landmarks(projected)
        assert roi.angle == pytest.approx(expected)
        assert abs(roi.angle) < 0.3

    def test_orientation_falls_back_to_previous_angle(self, tracker, projected):
        tracker.update(transform(angle=0.7), projected[:5], 0.8, 0.0)
        roi = tracker.estimate_roi(0.1)
        assert roi.angle == pytest.approx(0.7)

    def test_staleness_boundary(self, tracker, projected):
        """An estimate exactly max_age old is stale; just before it is usable."""
        max_age = tracker.config.max_age_s
        tracker.update(transform(), projected, 0.8, 0.0)
        assert tracker.estimate_roi(max_age - 0.001) is not None
        assert tracker.estimate_roi(max_age) is None

    @pytest.mark.parametrize("last_seen, now", [(1.0, 1.45), (1000.0, 1000.45)])
    def test_staleness_boundary_with_clock_offset(self, tracker, projected, last_seen, now):
        """Monotonic timestamps are far from zero; the boundary must still be inclusive."""
        tracker.update(transform(), projected, 0.8, last_seen)
        assert not tracker.is_stale(now - 0.001)
        assert tracker.is_stale(now)
        assert tracker.estimate_roi(now) is None

    def test_stale_read_clears(self, tracker, projected):
        tracker.update(transform(), projected, 0.8, 0.0)
        assert tracker.estimate_roi(5.0) is None
        assert not tracker.is_tracking
        # Even an earlier timestamp cannot revive it
        assert tracker.estimate_roi(0.1) is None

    def test_low_confidence_is_stale(self, tracker, projected):
        tracker.update(transform(), projected, 0.1, 0.0)
        assert tracker.estimate_roi(0.01) is None

    def test_empty_update_clears(self, tracker, projected):
        tracker.update(transform(), projected, 0.8, 0.0)
        tracker.update(transform(), [], 0.8, 0.1)
        assert not tracker.is_tracking
        assert tracker.estimate_roi(0.1) is None

    def test_full_replace(self, tracker, projected):
        """No smoothing: the newest update fully replaces the old state."""
        tracker.update(transform(), projected, 0.8, 0.0)
        moved = [(x + 50.0, y) for x, y in projected]
        tracker.update(transform(), moved, 0.6, 0.1)
        roi = tracker.estimate_roi(0.2)
        assert roi.center[0] == pytest.approx(235.0)
        assert roi.confidence == pytest.approx(0.6)

    def test_side_clamped_to_previous_crop(self, tracker, projected):
        tracker.update(transform(side=1000.0), projected, 0.8, 0.0)
        assert tracker.estimate_roi(0.1).side == pytest.approx(700.0)

        tracker.update(transform(side=100.0), projected, 0.8, 0.0)
        assert tracker.estimate_roi(0.1).side == pytest.approx(250.0)

    def test_minimum_side(self, tracker):
        tiny = to_projected(OPEN_PALM, scale=10.0, offset=(50.0, 50.0))
        tracker.update(transform(side=40.0), tiny, 0.8, 0.0)
        assert tracker.estimate_roi(0.1).side == pytest.approx(80.0)

    def test_too_few_points(self, tracker, projected):
        tracker.update(transform(), projected[:2], 0.8, 0.0)
        assert tracker.estimate_roi(0.1) is None

    def test_reset(self, tracker, projected):
        tracker.update(transform(), projected, 0.8, 0.0)
        tracker.reset()
        assert not tracker.is_tracking

    def test_config_from_dict(self):
        cfg = HandTrackerConfig.from_dict({"max_age_s": 1.0})
        assert cfg.max_age_s == 1.0
        assert cfg.expansion == 1.8
        assert cfg.min_side_px == 80.0


class TestOrientation:
    """Test suite for landmark-based orientation."""

    def test_upright_hand(self):
        points = [(0.0, 0.0)] * 21
        points[0] = (100.0, 200.0)
        points[5] = (90.0, 100.0)
        points[17] = (110.0, 100.0)
        assert orientation_from_landmarks(points) == pytest.approx(0.0)

    def test_hand_pointing_right(self):
        points = [(0.0, 0.0)] * 21
        points[0] = (100.0, 100.0)
        points[5] = (200.0, 90.0)
        points[17] = (200.0, 110.0)
        assert orientation_from_landmarks(points) == pytest.approx(math.pi / 2)

    def test_degenerate(self):
        assert orientation_from_landmarks([(1.0, 1.0)] * 21) is None
        assert orientation_from_landmarks([(0.0, 0.0)] * 10) is None
