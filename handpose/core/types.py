"""
Shared domain types for the hand pose recognition pipeline.

Centralizes enums and data containers passed between the capture,
recognition and compositing stages so no stage imports another's
internals.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import cv2
import numpy as np

Point2D = Tuple[float, float]


# =============================================================================
# Enums
# =============================================================================

class Handedness(Enum):
    """Which hand the landmark model believes it is looking at."""
    LEFT = "left"
    RIGHT = "right"
    UNKNOWN = "unknown"

    @classmethod
    def from_score(cls, score: float) -> "Handedness":
        """Step function: >= 0.5 right, (0, 0.5) left, 0 unknown."""
        if score >= 0.5:
            return cls.RIGHT
        if score > 0.0:
            return cls.LEFT
        return cls.UNKNOWN

    @property
    def label(self) -> str:
        return self.value.capitalize()


class FingerState(Enum):
    """Flex state of a single finger for the current frame."""
    EXTENDED = "extended"
    HALF_BENT = "half_bent"
    FOLDED = "folded"

    @property
    def label(self) -> str:
        return self.value.replace("_", "-")


class GestureKind(Enum):
    """Closed set of static hand shapes."""
    OPEN_PALM = "open_palm"
    FIST = "fist"
    POINT = "point"
    VICTORY = "victory"
    THREE = "three"
    FOUR = "four"
    THUMB_UP = "thumb_up"
    THUMB_DOWN = "thumb_down"
    OK = "ok"
    PINCH = "pinch"
    FINGER_HEART = "finger_heart"
    I_LOVE_YOU = "i_love_you"
    ROCK = "rock"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _GESTURE_DISPLAY[self][0]

    @property
    def emoji(self) -> str:
        return _GESTURE_DISPLAY[self][1]


_GESTURE_DISPLAY = {
    GestureKind.OPEN_PALM: ("Open palm", "\U0001F590 "),
    GestureKind.FIST: ("Fist", "✊ "),
    GestureKind.POINT: ("Point", "\U0001F449 "),
    GestureKind.VICTORY: ("Victory", "✌️ "),
    GestureKind.THREE: ("Three", "\U0001F91F "),
    GestureKind.FOUR: ("Four", "\U0001F596 "),
    GestureKind.THUMB_UP: ("Thumb up", "\U0001F44D "),
    GestureKind.THUMB_DOWN: ("Thumb down", "\U0001F44E "),
    GestureKind.OK: ("OK", "\U0001F44C "),
    GestureKind.PINCH: ("Pinch", "\U0001F90F "),
    GestureKind.FINGER_HEART: ("Finger heart", "\U0001FAF0 "),
    GestureKind.I_LOVE_YOU: ("I love you", "\U0001F91F "),
    GestureKind.ROCK: ("Rock", "\U0001F918 "),
    GestureKind.UNKNOWN: ("Unknown gesture", "⋯ "),
}


class GestureMotion(Enum):
    """Whole-hand motion over the recent time window."""
    STEADY = "steady"
    FANNING = "fanning"
    VERTICAL_WAVE = "vertical_wave"
    MOVING = "moving"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


# =============================================================================
# Frames and regions
# =============================================================================

@dataclass(frozen=True)
class Frame:
    """Captured RGBA pixel buffer with its capture timestamp.

    Ownership moves with the object between stages; holders never mutate
    ``pixels`` in place.
    """
    pixels: np.ndarray  # (height, width, 4) uint8 RGBA
    width: int
    height: int
    timestamp: float  # time.monotonic() seconds

    @classmethod
    def from_bgr(cls, image: np.ndarray, timestamp: float) -> "Frame":
        """Build a frame from an OpenCV BGR image."""
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        height, width = rgba.shape[:2]
        return cls(pixels=rgba, width=width, height=height, timestamp=timestamp)

    @property
    def rgb(self) -> np.ndarray:
        """Drop the alpha channel for model input."""
        return cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2RGB)

    @property
    def bgr(self) -> np.ndarray:
        """Convert to BGR for OpenCV display."""
        return cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGR)


@dataclass
class PalmRegion:
    """Candidate palm found by the detector, in frame pixel coordinates."""
    bbox: Tuple[float, float, float, float]  # (x1, y1, x2, y2)
    keypoints: List[Point2D]
    score: float

    @property
    def width(self) -> float:
        return self.bbox[2] - self.bbox[0]

    @property
    def height(self) -> float:
        return self.bbox[3] - self.bbox[1]

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def center(self) -> Point2D:
        return ((self.bbox[0] + self.bbox[2]) * 0.5, (self.bbox[1] + self.bbox[3]) * 0.5)


@dataclass(frozen=True)
class CropTransform:
    """How a square, rotated crop was cut out of the source frame.

    ``side`` is measured in frame pixels, ``size`` is the crop's output
    resolution, ``angle`` is in radians (0 = hand pointing up).
    """
    center: Point2D
    side: float
    angle: float
    size: int

    def crop_to_frame_matrix(self) -> np.ndarray:
        """2x3 affine matrix taking crop pixels to frame pixels."""
        scale = self.side / float(self.size)
        cos_a = math.cos(self.angle) * scale
        sin_a = math.sin(self.angle) * scale
        half = self.size * 0.5
        cx, cy = self.center
        return np.array([
            [cos_a, -sin_a, cx - half * (cos_a - sin_a)],
            [sin_a, cos_a, cy - half * (sin_a + cos_a)],
        ], dtype=np.float64)


# =============================================================================
# Recognition results
# =============================================================================

@dataclass
class GestureDetail:
    """Full classification of one hand for one frame."""
    primary: GestureKind
    secondary: Optional[GestureKind]
    handedness: Handedness
    finger_states: Tuple[FingerState, FingerState, FingerState, FingerState, FingerState]
    motion: GestureMotion


@dataclass
class HandposeOutput:
    """Raw product of one hand-pose inference cycle, before classification."""
    raw_landmarks: np.ndarray  # (N, 3) normalized crop space
    projected_landmarks: List[Point2D]  # frame pixels
    confidence: float
    handedness: float
    palm_regions: List[PalmRegion] = field(default_factory=list)
    used_tracking: bool = False

    @classmethod
    def empty(cls, palm_regions: Optional[List[PalmRegion]] = None) -> "HandposeOutput":
        return cls(
            raw_landmarks=np.zeros((0, 3), dtype=np.float32),
            projected_landmarks=[],
            confidence=0.0,
            handedness=0.0,
            palm_regions=list(palm_regions or []),
        )


@dataclass
class GestureResult:
    """Structured result handed to the compositor and display sink."""
    label: str
    confidence: float
    timestamp: float
    landmarks: Optional[List[Point2D]] = None
    detail: Optional[GestureDetail] = None
    palm_regions: List[PalmRegion] = field(default_factory=list)

    def display_text(self) -> str:
        percent = self.confidence * 100.0
        if self.detail is not None:
            return "{}{} ({:.0f}%)".format(
                self.detail.primary.emoji, self.detail.primary.display_name, percent)
        return "{} ({:.0f}%)".format(self.label, percent)

    @property
    def hand_detected(self) -> bool:
        return self.landmarks is not None


@dataclass
class RecognizedFrame:
    """One frame plus the result computed from it."""
    frame: Frame
    result: GestureResult


@dataclass
class CompositedFrame:
    """A frame with overlays drawn, ready for the display sink."""
    frame: Frame
    result: GestureResult
