"""
Geometric gesture classifier.

Landmarks are normalized to their own bounding box, each finger is
reduced to a flex state, and an ordered decision table picks the
primary gesture. The first matching rule wins, so the order below is
part of the behavior:

    finger heart > pinch > ok > I-love-you > rock > victory > point >
    thumb up > thumb down > fist > four > open palm > three > unknown
"""

import logging
from dataclasses import dataclass, fields
from typing import Optional, Sequence, Tuple

import numpy as np

from handpose.core.types import (
    FingerState, GestureDetail, GestureKind, Handedness, Point2D,
)
from handpose.detection.transforms import bounding_box
from handpose.recognition.motion_tracker import MotionTracker

logger = logging.getLogger(__name__)

NUM_LANDMARKS = 21

# Landmark indices
WRIST = 0
THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
INDEX_MCP, INDEX_TIP = 5, 8
MIDDLE_TIP = 12
PINKY_MCP = 17

FINGER_JOINTS = (
    (5, 6, 7, 8),      # index
    (9, 10, 11, 12),   # middle
    (13, 14, 15, 16),  # ring
    (17, 18, 19, 20),  # pinky
)

FingerStates = Tuple[FingerState, FingerState, FingerState, FingerState, FingerState]

EXTENDED = FingerState.EXTENDED
HALF_BENT = FingerState.HALF_BENT
FOLDED = FingerState.FOLDED


@dataclass
class GestureClassifierConfig:
    """Classifier thresholds, in units of the normalized hand size."""
    min_confidence: float = 0.2
    normalization_floor: float = 1e-3

    # Non-thumb fingers
    extended_extension: float = 0.18
    extended_straightness: float = 0.45
    extended_reach: float = 0.08
    folded_extension: float = 0.08
    folded_straightness: float = 0.18
    folded_reach: float = 0.05

    # Thumb
    thumb_folded_spread: float = 0.16
    thumb_folded_straightness: float = 0.25
    thumb_extended_reach: float = 0.35
    thumb_extended_straightness: float = 0.35

    # Decision table
    heart_gap: float = 0.08
    heart_alignment: float = 0.08
    pinch_gap: float = 0.12
    ok_gap: float = 0.18
    thumb_vertical_offset: float = 0.08
    secondary_pinch_gap: float = 0.14

    @classmethod
    def from_dict(cls, d: dict) -> "GestureClassifierConfig":
        defaults = cls()
        return cls(**{f.name: d.get(f.name, getattr(defaults, f.name)) for f in fields(cls)})


_DEFAULT_CONFIG = GestureClassifierConfig()


# =============================================================================
# Geometry helpers
# =============================================================================

def normalize_landmarks(points: np.ndarray, floor: float = 1e-3) -> np.ndarray:
    """Translate to the bounding-box minimum and scale by its longer side.

    z is divided by the same factor so distances stay isotropic.
    """
    points = np.asarray(points, dtype=np.float64)
    mins = points[:, :2].min(axis=0)
    maxs = points[:, :2].max(axis=0)
    span = max(float(np.max(maxs - mins)), floor)
    normalized = points[:, :3].copy()
    normalized[:, 0] -= mins[0]
    normalized[:, 1] -= mins[1]
    return normalized / span


def _unit(v: np.ndarray) -> np.ndarray:
    length = float(np.linalg.norm(v))
    if length < 1e-5:
        return np.zeros(3)
    return v / length


def average_straightness(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
    """Mean cosine between consecutive segments, clamped to [-1, 1]."""
    ua, ub, uc = _unit(a), _unit(b), _unit(c)
    value = (float(np.dot(ua, ub)) + float(np.dot(ub, uc))) / 2.0
    return min(max(value, -1.0), 1.0)


def _dist(points: np.ndarray, i: int, j: int) -> float:
    return float(np.linalg.norm(points[i] - points[j]))


# =============================================================================
# Finger states
# =============================================================================

def classify_finger(points: np.ndarray, joints: Sequence[int],
                    config: GestureClassifierConfig = _DEFAULT_CONFIG) -> FingerState:
    """Flex state of a non-thumb finger given its (mcp, pip, dip, tip) indices."""
    mcp, pip, dip, tip = joints
    wrist = points[WRIST]
    dist_tip = float(np.linalg.norm(points[tip] - wrist))
    dist_pip = float(np.linalg.norm(points[pip] - wrist))
    dist_mcp = float(np.linalg.norm(points[mcp] - wrist))

    straightness = average_straightness(
        points[pip] - points[mcp], points[dip] - points[pip], points[tip] - points[dip])
    extension = dist_tip - dist_pip
    reach = dist_tip - dist_mcp

    if (extension > config.extended_extension
            and straightness > config.extended_straightness
            and reach > config.extended_reach):
        return EXTENDED
    if (extension < config.folded_extension
            or straightness < config.folded_straightness
            or reach < config.folded_reach):
        return FOLDED
    return HALF_BENT


def classify_thumb(points: np.ndarray,
                   config: GestureClassifierConfig = _DEFAULT_CONFIG) -> FingerState:
    """Thumb flex state from tip reach, straightness and spread from the palm."""
    cmc, mcp, tip = points[THUMB_CMC], points[THUMB_MCP], points[THUMB_TIP]
    straightness = average_straightness(mcp - cmc, tip - mcp, tip - mcp)
    spread = min(_dist(points, THUMB_TIP, INDEX_MCP), _dist(points, THUMB_TIP, PINKY_MCP))

    if spread < config.thumb_folded_spread and straightness < config.thumb_folded_straightness:
        return FOLDED
    if (_dist(points, THUMB_TIP, WRIST) > config.thumb_extended_reach
            and straightness > config.thumb_extended_straightness):
        return EXTENDED
    return HALF_BENT


def classify_fingers(points: np.ndarray,
                     config: GestureClassifierConfig = _DEFAULT_CONFIG) -> FingerStates:
    """States for (thumb, index, middle, ring, pinky)."""
    return (classify_thumb(points, config),) + tuple(
        classify_finger(points, joints, config) for joints in FINGER_JOINTS)


# =============================================================================
# Decision table
# =============================================================================

def detect_primary_gesture(points: np.ndarray, states: Sequence[FingerState],
                           config: GestureClassifierConfig = _DEFAULT_CONFIG) -> GestureKind:
    """Evaluate the ordered rules on normalized points and finger states."""
    thumb, index, middle, ring, pinky = states
    extended = sum(1 for s in states if s == EXTENDED)
    folded = sum(1 for s in states if s == FOLDED)

    thumb_index_gap = _dist(points, THUMB_TIP, INDEX_TIP)
    thumb_middle_gap = _dist(points, THUMB_TIP, MIDDLE_TIP)
    wrist_y = points[WRIST][1]
    thumb_tip_y = points[THUMB_TIP][1]

    def bent(*fingers):
        return all(f != EXTENDED for f in fingers)

    rules = (
        (GestureKind.FINGER_HEART,
         thumb_index_gap < config.heart_gap
         and folded >= 3
         and bent(index, thumb)
         and abs(thumb_tip_y - points[INDEX_TIP][1]) < config.heart_alignment),
        (GestureKind.PINCH,
         (thumb_index_gap < config.pinch_gap and bent(middle, ring, pinky))
         or (thumb_middle_gap < config.pinch_gap and bent(index, ring, pinky))),
        (GestureKind.OK,
         thumb_index_gap < config.ok_gap and (middle == EXTENDED or ring == EXTENDED)),
        (GestureKind.I_LOVE_YOU,
         thumb != FOLDED and index == EXTENDED and bent(middle, ring) and pinky == EXTENDED),
        (GestureKind.ROCK,
         index == EXTENDED and pinky == EXTENDED and bent(middle, ring) and thumb == FOLDED),
        (GestureKind.VICTORY,
         index == EXTENDED and middle == EXTENDED and bent(ring, pinky)),
        (GestureKind.POINT,
         index == EXTENDED and bent(middle, ring, pinky)),
        (GestureKind.THUMB_UP,
         thumb == EXTENDED and folded >= 3
         and thumb_tip_y + config.thumb_vertical_offset < wrist_y),
        (GestureKind.THUMB_DOWN,
         thumb == EXTENDED and folded >= 3
         and thumb_tip_y > wrist_y + config.thumb_vertical_offset),
        (GestureKind.FIST, folded >= 4),
        (GestureKind.FOUR, extended >= 4 and thumb != EXTENDED),
        (GestureKind.OPEN_PALM, extended >= 4),
        (GestureKind.THREE,
         index == EXTENDED and middle == EXTENDED and ring == EXTENDED and pinky != EXTENDED),
    )
    for kind, matched in rules:
        if matched:
            return kind
    return GestureKind.UNKNOWN


def detect_secondary(points: np.ndarray, states: Sequence[FingerState], primary: GestureKind,
                     config: GestureClassifierConfig = _DEFAULT_CONFIG) -> Optional[GestureKind]:
    """Best guess when the decision table found nothing."""
    if primary != GestureKind.UNKNOWN:
        return None
    if sum(1 for s in states if s == EXTENDED) >= 4:
        return GestureKind.OPEN_PALM
    if sum(1 for s in states if s == FOLDED) >= 4:
        return GestureKind.FIST
    gap = min(_dist(points, THUMB_TIP, INDEX_TIP), _dist(points, THUMB_TIP, MIDDLE_TIP))
    if gap < config.secondary_pinch_gap:
        return GestureKind.PINCH
    return None


def projected_span(points: Sequence[Point2D]) -> float:
    """Longer side of the projected landmark box in pixels, at least 1."""
    box = bounding_box(points)
    if box is None:
        return 1.0
    return max(box[2] - box[0], box[3] - box[1], 1.0)


class GestureClassifier:
    """
    Stateful wrapper that adds motion to the per-frame geometric result.

    Example:
        >>> classifier = GestureClassifier()
        >>> detail = classifier.classify(raw, projected, 0.9, 0.7, time.monotonic())
        >>> detail.primary, detail.motion
    """

    def __init__(self, config: Optional[GestureClassifierConfig] = None,
                 motion_tracker: Optional[MotionTracker] = None):
        self.config = config or GestureClassifierConfig()
        self.motion_tracker = motion_tracker or MotionTracker()

    def classify(self, raw_landmarks, projected_landmarks: Sequence[Point2D],
                 confidence: float, handedness_score: float,
                 timestamp: float) -> Optional[GestureDetail]:
        """Classify one hand.

        Returns None below the confidence floor (inclusive) or with fewer
        than 21 raw or projected points.
        """
        if confidence < self.config.min_confidence:
            return None
        if len(raw_landmarks) < NUM_LANDMARKS or len(projected_landmarks) < NUM_LANDMARKS:
            return None

        points = normalize_landmarks(raw_landmarks, self.config.normalization_floor)
        states = classify_fingers(points, self.config)
        primary = detect_primary_gesture(points, states, self.config)
        secondary = detect_secondary(points, states, primary, self.config)
        motion = self.motion_tracker.update(
            projected_landmarks[WRIST], projected_span(projected_landmarks), timestamp, primary)

        return GestureDetail(
            primary=primary,
            secondary=secondary,
            handedness=Handedness.from_score(handedness_score),
            finger_states=states,
            motion=motion,
        )

    def reset(self):
        self.motion_tracker.reset()
