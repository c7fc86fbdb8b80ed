"""
Whole-hand motion detection over a sliding time window.
Tracks wrist position and hand scale to tell fanning and waving apart
from plain movement.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional

from handpose.core.types import GestureKind, GestureMotion, Point2D

logger = logging.getLogger(__name__)

# Primary gestures that count as an open hand for fanning
_FAN_GESTURES = (GestureKind.OPEN_PALM, GestureKind.FOUR, GestureKind.UNKNOWN)


@dataclass
class MotionTrackerConfig:
    """Motion window and thresholds (spans are in units of hand scale)."""
    window_s: float = 1.2
    min_samples: int = 3
    wave_span: float = 0.55
    move_span: float = 0.25
    min_reversals: int = 2
    noise_step: float = 0.08

    @classmethod
    def from_dict(cls, d: dict) -> "MotionTrackerConfig":
        return cls(
            window_s=d.get("window_s", 1.2),
            min_samples=d.get("min_samples", 3),
            wave_span=d.get("wave_span", 0.55),
            move_span=d.get("move_span", 0.25),
            min_reversals=d.get("min_reversals", 2),
            noise_step=d.get("noise_step", 0.08),
        )


class MotionSample(NamedTuple):
    time: float
    x: float
    y: float
    span: float


def direction_changes(values: Iterable[float], min_step: float) -> int:
    """Count sign reversals between consecutive deltas, ignoring small steps."""
    changes = 0
    last_sign = 0
    previous = None
    for value in values:
        if previous is not None:
            delta = value - previous
            if abs(delta) >= min_step:
                sign = 1 if delta > 0 else -1
                if last_sign != 0 and sign != last_sign:
                    changes += 1
                last_sign = sign
        previous = value
    return changes


class MotionTracker:
    """
    Sliding-window motion classifier.

    One instance lives as long as its recognition worker; samples must be
    fed in timestamp order from a single thread.
    """

    def __init__(self, config: Optional[MotionTrackerConfig] = None):
        self.config = config or MotionTrackerConfig()
        self._history = deque()
        self._last_motion = GestureMotion.STEADY

    def update(self, point: Point2D, span: float, now: float,
               primary: GestureKind) -> GestureMotion:
        """Add a wrist sample and classify the motion in the current window."""
        cfg = self.config
        self._history.append(MotionSample(now, float(point[0]), float(point[1]), max(span, 1.0)))
        while self._history and now - self._history[0].time > cfg.window_s:
            self._history.popleft()

        motion = self._classify(primary)
        if motion != self._last_motion:
            logger.debug("Motion %s -> %s (%d samples)",
                         self._last_motion.value, motion.value, len(self._history))
            self._last_motion = motion
        return motion

    def _classify(self, primary: GestureKind) -> GestureMotion:
        cfg = self.config
        samples = self._history
        if len(samples) < cfg.min_samples:
            return GestureMotion.STEADY

        norm = max(sum(s.span for s in samples) / len(samples), 1.0)
        xs = [s.x for s in samples]
        ys = [s.y for s in samples]
        span_x = (max(xs) - min(xs)) / norm
        span_y = (max(ys) - min(ys)) / norm

        min_step = norm * cfg.noise_step
        reversals_x = direction_changes(xs, min_step)
        reversals_y = direction_changes(ys, min_step)

        if span_x > cfg.wave_span and reversals_x >= cfg.min_reversals and primary in _FAN_GESTURES:
            return GestureMotion.FANNING
        if span_y > cfg.wave_span and reversals_y >= cfg.min_reversals:
            return GestureMotion.VERTICAL_WAVE
        if span_x > cfg.move_span or span_y > cfg.move_span:
            return GestureMotion.MOVING
        return GestureMotion.STEADY

    @property
    def sample_count(self) -> int:
        return len(self._history)

    def reset(self):
        self._history.clear()
        self._last_motion = GestureMotion.STEADY
