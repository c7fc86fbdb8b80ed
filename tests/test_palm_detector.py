"""
Tests for Palm Detection
=========================
"""

import numpy as np
import pytest

from conftest import CENTER_ANCHOR, NUM_ANCHORS, FakeEngine, make_frame, palm_outputs

from handpose.core.errors import DecodeError
from handpose.core.types import PalmRegion
from handpose.detection.palm_detector import (
    PalmDetector,
    PalmDetectorConfig,
    generate_anchors,
    pick_primary_region,
)

# Anchor at grid cell (2, 2) of the stride-8 layer, far from CENTER_ANCHOR
CORNER_ANCHOR = (2 * 24 + 2) * 2


class TestAnchors:
    """Test suite for SSD anchor generation."""

    def test_count(self):
        anchors = generate_anchors(192, (8, 16, 16, 16))
        assert anchors.shape == (NUM_ANCHORS, 2)

    def test_layout(self):
        anchors = generate_anchors(192, (8, 16, 16, 16))
        # Two anchors per stride-8 cell, six per stride-16 cell
        np.testing.assert_allclose(anchors[0], [0.5 / 24, 0.5 / 24])
        np.testing.assert_allclose(anchors[1], anchors[0])
        np.testing.assert_allclose(anchors[2], [1.5 / 24, 0.5 / 24])
        np.testing.assert_allclose(anchors[24 * 24 * 2], [0.5 / 12, 0.5 / 12])
        np.testing.assert_allclose(anchors[-1], [11.5 / 12, 11.5 / 12])


class TestPalmDetector:
    """Test suite for PalmDetector decode and error handling."""

    @pytest.fixture
    def engine(self):
        return FakeEngine(palm_outputs())

    @pytest.fixture
    def detector(self, engine):
        return PalmDetector(engine, PalmDetectorConfig())

    def test_no_detections(self, detector, frame):
        assert detector.detect(frame) == []

    def test_single_detection(self, detector, engine, frame):
        engine.outputs = palm_outputs([(CENTER_ANCHOR, 10.0, 40.0)])
        regions = detector.detect(frame)
        assert len(regions) == 1
        region = regions[0]
        # 384px frame: centre 12.5/24 * 384 = 200, box 40/192 * 384 = 80
        assert region.bbox == pytest.approx((160.0, 160.0, 240.0, 240.0), abs=1e-3)
        assert region.score == pytest.approx(1.0 / (1.0 + np.exp(-10.0)))
        assert len(region.keypoints) == 7
        assert region.keypoints[0] == pytest.approx((200.0, 200.0), abs=1e-3)

    def test_input_tensor(self, detector, engine, frame):
        detector.detect(frame)
        tensor = engine.calls[0]
        assert tensor.shape == (1, 192, 192, 3)
        assert tensor.dtype == np.float32

    def test_nms_suppresses_overlaps(self, detector, engine, frame):
        engine.outputs = palm_outputs([
            (CENTER_ANCHOR, 10.0, 40.0),
            (CENTER_ANCHOR + 1, 3.0, 40.0),
        ])
        regions = detector.detect(frame)
        assert len(regions) == 1
        assert regions[0].score == pytest.approx(1.0 / (1.0 + np.exp(-10.0)))

    def test_separate_palms_sorted_by_score(self, detector, engine, frame):
        engine.outputs = palm_outputs([
            (CORNER_ANCHOR, 2.0, 20.0),
            (CENTER_ANCHOR, 6.0, 40.0),
        ])
        regions = detector.detect(frame)
        assert len(regions) == 2
        assert regions[0].score > regions[1].score
        assert regions[0].center == pytest.approx((200.0, 200.0), abs=1e-3)

    def test_below_threshold(self, detector, engine, frame):
        engine.outputs = palm_outputs([(CENTER_ANCHOR, -0.5, 40.0)])
        assert detector.detect(frame) == []

    def test_extreme_logits_clipped(self, detector, engine, frame):
        engine.outputs = palm_outputs([(CENTER_ANCHOR, 1e6, 40.0)])
        regions = detector.detect(frame)
        assert regions[0].score == pytest.approx(1.0)

    def test_outputs_in_either_order(self, detector, engine, frame):
        regressors, scores = palm_outputs([(CENTER_ANCHOR, 10.0, 40.0)])
        engine.outputs = [scores, regressors]
        assert len(detector.detect(frame)) == 1

    def test_rectangular_frame_scale(self, detector, engine):
        """Letterboxing pads to the longest side, so boxes scale by it."""
        engine.outputs = palm_outputs([(CENTER_ANCHOR, 10.0, 40.0)])
        regions = detector.detect(make_frame(width=768, height=384))
        assert regions[0].center == pytest.approx((400.0, 400.0), abs=1e-3)

    def test_decode_errors(self, detector):
        with pytest.raises(DecodeError):
            detector.decode([], 384.0)
        with pytest.raises(DecodeError):
            detector.decode([np.zeros((1, 10, 18)), np.zeros((1, 10, 1))], 384.0)

    def test_detect_never_raises(self, detector, engine, frame):
        """Malformed outputs or engine failures are reported as no palms."""
        engine.outputs = [np.zeros((1, 5))]
        assert detector.detect(frame) == []
        engine.outputs = RuntimeError("session crashed")
        assert detector.detect(frame) == []

    def test_config_from_dict(self):
        cfg = PalmDetectorConfig.from_dict({"score_threshold": 0.7})
        assert cfg.score_threshold == 0.7
        assert cfg.nms_threshold == 0.3
        assert cfg.anchor_strides == (8, 16, 16, 16)


class TestPrimaryRegion:
    """Primary region rule: score, then area, then detector order."""

    def region(self, score, size, tag=0.0):
        return PalmRegion(bbox=(tag, 0.0, tag + size, size), keypoints=[], score=score)

    def test_empty(self):
        assert pick_primary_region([]) is None

    def test_highest_score(self):
        regions = [self.region(0.6, 100), self.region(0.9, 10)]
        assert pick_primary_region(regions) is regions[1]

    def test_area_breaks_score_tie(self):
        regions = [self.region(0.8, 10), self.region(0.8, 50)]
        assert pick_primary_region(regions) is regions[1]

    def test_first_wins_full_tie(self):
        regions = [self.region(0.8, 50, tag=0.0), self.region(0.8, 50, tag=300.0)]
        assert pick_primary_region(regions) is regions[0]
