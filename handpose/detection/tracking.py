"""
Single-hand ROI tracking.
Keeps the last successful crop alive for a short grace window so the
pipeline can keep cropping near the hand when palm detection drops out
(motion blur, back-of-hand rotations).
"""

import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Optional

from handpose.core.types import CropTransform, Point2D
from handpose.detection.transforms import bounding_box, rotation_from_points

logger = logging.getLogger(__name__)

WRIST = 0
INDEX_MCP = 5
PINKY_MCP = 17


@dataclass
class HandTrackerConfig:
    """Hand tracker configuration."""
    max_age_s: float = 0.45
    min_confidence: float = 0.15
    expansion: float = 1.8
    min_side_ratio: float = 0.7
    max_side_ratio: float = 2.5
    min_side_px: float = 80.0

    @classmethod
    def from_dict(cls, d: dict) -> "HandTrackerConfig":
        return cls(
            max_age_s=d.get("max_age_s", 0.45),
            min_confidence=d.get("min_confidence", 0.15),
            expansion=d.get("expansion", 1.8),
            min_side_ratio=d.get("min_side_ratio", 0.7),
            max_side_ratio=d.get("max_side_ratio", 2.5),
            min_side_px=d.get("min_side_px", 80.0),
        )


class TrackedRoi(NamedTuple):
    """Region of interest recovered from the tracked hand."""
    center: Point2D
    side: float
    angle: float
    confidence: float


@dataclass
class TrackedHand:
    """Last known hand: crop it came from, projected points, confidence, time."""
    transform: CropTransform
    projected: List[Point2D]
    confidence: float
    last_seen: float

    def age(self, now: float) -> float:
        return now - self.last_seen


def orientation_from_landmarks(points: List[Point2D]) -> Optional[float]:
    """Hand rotation from the wrist towards the index/pinky MCP midpoint."""
    if len(points) <= PINKY_MCP:
        return None
    index = points[INDEX_MCP]
    pinky = points[PINKY_MCP]
    midpoint = ((index[0] + pinky[0]) * 0.5, (index[1] + pinky[1]) * 0.5)
    return rotation_from_points(points[WRIST], midpoint)


class HandTracker:
    """Holds at most one tracked hand; full replace on every update."""

    def __init__(self, config: Optional[HandTrackerConfig] = None):
        self.config = config or HandTrackerConfig()
        self._tracked: Optional[TrackedHand] = None

    def update(self, transform: CropTransform, projected: List[Point2D],
               confidence: float, now: float) -> None:
        """Replace the tracked hand with a fresh decode, or clear it if empty."""
        if not projected:
            if self._tracked is not None:
                logger.debug("Tracked hand cleared (empty landmarks)")
            self._tracked = None
            return
        if self._tracked is None:
            logger.debug("Tracking hand (confidence %.2f)", confidence)
        self._tracked = TrackedHand(
            transform=transform,
            projected=list(projected),
            confidence=float(confidence),
            last_seen=float(now),
        )

    def is_stale(self, now: float) -> bool:
        """Whether the current estimate is unusable at ``now``.

        The age limit is inclusive: an estimate exactly ``max_age_s`` old is stale.
        """
        tracked = self._tracked
        if tracked is None:
            return True
        return (now >= tracked.last_seen + self.config.max_age_s
                or tracked.confidence < self.config.min_confidence)

    def estimate_roi(self, now: float) -> Optional[TrackedRoi]:
        """Fallback crop region derived from the last projected landmarks.

        Reading a stale estimate drops it.
        """
        tracked = self._tracked
        if tracked is None:
            return None
        if self.is_stale(now):
            logger.debug("Tracked hand expired (age %.3fs, confidence %.2f)",
                         tracked.age(now), tracked.confidence)
            self._tracked = None
            return None
        if len(tracked.projected) < 3:
            return None

        box = bounding_box(tracked.projected)
        if box is None:
            return None
        min_x, min_y, max_x, max_y = box

        cfg = self.config
        span = max(max_x - min_x, max_y - min_y, 1.0)
        prev_side = tracked.transform.side
        side = min(max(span * cfg.expansion, prev_side * cfg.min_side_ratio),
                   prev_side * cfg.max_side_ratio)
        side = max(side, cfg.min_side_px)

        angle = orientation_from_landmarks(tracked.projected)
        if angle is None:
            angle = tracked.transform.angle

        center = ((min_x + max_x) * 0.5, (min_y + max_y) * 0.5)
        return TrackedRoi(center=center, side=side, angle=angle, confidence=tracked.confidence)

    @property
    def is_tracking(self) -> bool:
        return self._tracked is not None

    def reset(self):
        """Clear tracking state."""
        self._tracked = None
