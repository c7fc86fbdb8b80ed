"""
Two-stage hand pose inference: palm detection -> ROI -> landmarks.

Owns the hand tracker so a region can still be cropped for a short
while after the palm detector stops firing.
"""

import logging
from typing import Optional

from handpose.core.types import Frame, HandposeOutput
from handpose.detection.landmark_engine import LandmarkEngine, LandmarkEngineConfig
from handpose.detection.palm_detector import PalmDetector, PalmDetectorConfig, pick_primary_region
from handpose.detection.tracking import HandTracker, HandTrackerConfig
from handpose.detection.transforms import crop_from_palm, project_landmarks
from handpose.models.inference_engine import InferenceConfig, create_inference_engine
from handpose.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class HandposeEngine:
    """
    Per-frame hand pose inference with tracker fallback.

    Not thread-safe: one instance belongs to one recognition worker.
    """

    def __init__(self, palm_detector: PalmDetector, landmark_engine: LandmarkEngine,
                 tracker: Optional[HandTracker] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        self.palm_detector = palm_detector
        self.landmark_engine = landmark_engine
        self.tracker = tracker or HandTracker()
        self.monitor = monitor or PerformanceMonitor()

    def infer(self, frame: Frame) -> HandposeOutput:
        """Run one inference cycle on ``frame``.

        Raises:
            DecodeError: landmark outputs were malformed
            ValueError: the selected ROI was degenerate
        """
        now = frame.timestamp
        with self.monitor.measure("palm_detection"):
            regions = self.palm_detector.detect(frame)

        used_tracking = False
        primary = pick_primary_region(regions)
        if primary is not None:
            center, side, angle = crop_from_palm(primary)
            prior = primary.score
        else:
            roi = self.tracker.estimate_roi(now)
            if roi is None:
                return HandposeOutput.empty(regions)
            center, side, angle, prior = roi
            used_tracking = True

        with self.monitor.measure("landmark"):
            decoded, transform = self.landmark_engine.run(frame, center, side, angle)
        projected = project_landmarks(decoded.landmarks, transform)

        confidence = min(max(decoded.confidence * prior, 0.0), 1.0)
        if used_tracking:
            confidence *= self.landmark_engine.config.tracking_damping

        self.tracker.update(transform, projected, confidence, now)
        logger.debug("Hand pose: %d points, confidence %.2f, %s (%s)",
                     len(projected), confidence,
                     "tracked" if used_tracking else "detected",
                     self.landmark_engine.describe_crop(transform))

        return HandposeOutput(
            raw_landmarks=decoded.landmarks,
            projected_landmarks=projected,
            confidence=confidence,
            handedness=decoded.handedness,
            palm_regions=regions,
            used_tracking=used_tracking,
        )

    def reset(self):
        self.tracker.reset()

    def close(self):
        """Release both model sessions."""
        self.palm_detector.close()
        self.landmark_engine.close()


def build_handpose_engine(config, monitor: Optional[PerformanceMonitor] = None) -> HandposeEngine:
    """Load both models from a ``Config`` and wire up a ``HandposeEngine``.

    Raises:
        ModelLoadError: a model could not be loaded
    """
    inference_cfg = InferenceConfig.from_dict(config.inference)
    palm_cfg = PalmDetectorConfig.from_dict(config.palm_detector)
    landmark_cfg = LandmarkEngineConfig.from_dict(config.landmark)
    tracker_cfg = HandTrackerConfig.from_dict(config.tracker)

    palm_engine = create_inference_engine(config.resolve_path(palm_cfg.model_path), inference_cfg)
    landmark_model = create_inference_engine(config.resolve_path(landmark_cfg.model_path), inference_cfg)

    return HandposeEngine(
        PalmDetector(palm_engine, palm_cfg),
        LandmarkEngine(landmark_model, landmark_cfg),
        HandTracker(tracker_cfg),
        monitor=monitor,
    )
