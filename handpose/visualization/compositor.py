"""
Frame compositor: draws detections onto recognized frames and paces
its own output rate based on how long drawing takes and whether the
display keeps up.
"""

import time
import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from handpose.core.channels import FrameSlot
from handpose.core.errors import ChannelClosed
from handpose.core.types import CompositedFrame, GestureResult, Point2D, RecognizedFrame
from handpose.utils.performance_monitor import Timer
from handpose.visualization.overlay import draw_palm_regions, draw_skeleton

logger = logging.getLogger(__name__)


@dataclass
class CompositorConfig:
    """Output cadence bounds and overlay threshold."""
    max_fps: float = 30.0
    min_fps: float = 12.0
    slowdown: float = 1.25
    recovery: float = 0.85
    recovery_margin: float = 1.5
    overlay_confidence: float = 0.5

    @classmethod
    def from_dict(cls, d: dict) -> "CompositorConfig":
        return cls(
            max_fps=d.get("max_fps", 30.0),
            min_fps=d.get("min_fps", 12.0),
            slowdown=d.get("slowdown", 1.25),
            recovery=d.get("recovery", 0.85),
            recovery_margin=d.get("recovery_margin", 1.5),
            overlay_confidence=d.get("overlay_confidence", 0.5),
        )

    @property
    def min_interval(self) -> float:
        return 1.0 / self.max_fps

    @property
    def max_interval(self) -> float:
        return 1.0 / self.min_fps


class CadenceController:
    """
    Closed-loop target frame interval, in seconds.

    Slows down on backpressure or when drawing overruns the interval,
    speeds back up once drawing is comfortably faster than the interval.
    """

    def __init__(self, config: Optional[CompositorConfig] = None):
        self.config = config or CompositorConfig()
        self.interval = self.config.min_interval

    def adjust(self, compose_time: float, dropped: bool) -> float:
        """Update and return the target interval after one compose cycle."""
        cfg = self.config
        current = self.interval
        if dropped or compose_time > current:
            grown = max(current * cfg.slowdown, compose_time * cfg.slowdown)
            self.interval = min(grown, cfg.max_interval)
        elif compose_time * cfg.recovery_margin < current and current > cfg.min_interval:
            self.interval = max(current * cfg.recovery, cfg.min_interval)

        if self.interval != current:
            logger.debug("Compositor interval %.1fms -> %.1fms (compose %.1fms, dropped=%s)",
                         current * 1000, self.interval * 1000, compose_time * 1000, dropped)
        return self.interval

    def sleep_time(self, compose_time: float) -> float:
        return max(0.0, self.interval - compose_time)

    @property
    def fps(self) -> float:
        return 1.0 / self.interval


def overlay_points(result: GestureResult, threshold: float) -> Optional[List[Point2D]]:
    """Landmarks worth drawing, or None below the display threshold."""
    if result.landmarks and result.confidence >= threshold:
        return result.landmarks
    return None


def compose_frame(recognized: RecognizedFrame, overlay_confidence: float = 0.5) -> CompositedFrame:
    """Draw palm boxes and, when confident enough, the skeleton onto a copy of the frame."""
    frame = recognized.frame
    result = recognized.result
    pixels = frame.pixels.copy()
    if result.palm_regions:
        draw_palm_regions(pixels, result.palm_regions)
    points = overlay_points(result, overlay_confidence)
    if points is not None:
        draw_skeleton(pixels, points)
    return CompositedFrame(frame=replace(frame, pixels=pixels), result=result)


class FrameCompositor:
    """
    Compositor thread between the recognition worker and the display sink.

    Always renders the newest recognized frame and publishes into a
    single-slot output; finding that slot still occupied counts as
    backpressure. Exits when its input slot is closed and closes its output.
    """

    def __init__(self, inputs: FrameSlot, outputs: FrameSlot,
                 config: Optional[CompositorConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or CompositorConfig()
        self.cadence = CadenceController(self.config)
        self._inputs = inputs
        self._outputs = outputs
        self._sleep = sleep
        self._thread = None
        self._composed = 0
        self._backpressure = 0
        self._failed = 0

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="compositor", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def frames_composed(self) -> int:
        return self._composed

    @property
    def backpressure_events(self) -> int:
        return self._backpressure

    @property
    def frames_failed(self) -> int:
        return self._failed

    def _run(self):
        logger.info("Compositor started (%.0f-%.0f fps)", self.config.min_fps, self.config.max_fps)
        try:
            while True:
                try:
                    recognized = self._inputs.recv_latest()
                except ChannelClosed:
                    break
                try:
                    pause = self.step(recognized)
                except Exception as e:
                    self._failed += 1
                    logger.warning("Compositing failed, frame skipped: %s", e)
                    continue
                if pause > 0:
                    self._sleep(pause)
        finally:
            self._outputs.close()
            logger.info("Compositor stopped (%d composed, %d failed, %d backpressure events)",
                        self._composed, self._failed, self._backpressure)

    def step(self, recognized: RecognizedFrame) -> float:
        """Compose and publish one frame.

        Returns:
            Seconds to wait before the next cycle.
        """
        with Timer("compose") as timer:
            composited = compose_frame(recognized, self.config.overlay_confidence)
        compose_time = timer.elapsed

        dropped = self._outputs.put_latest(composited)
        self._composed += 1
        if dropped:
            self._backpressure += 1

        self.cadence.adjust(compose_time, dropped)
        return self.cadence.sleep_time(compose_time)
