"""
Recognition worker: the middle stage of the capture -> recognize ->
compose pipeline.

Architecture:
    CameraSource --[frames]--> RecognitionWorker --[results]--> FrameCompositor
                                                              --[display]--> sink

Every arrow is a single-slot ``FrameSlot``; each stage always works on
the newest item and silently skips anything it fell behind on.
"""

import logging
import threading
from typing import Callable, Optional

from handpose.core.channels import FrameSlot
from handpose.core.errors import ChannelClosed
from handpose.core.types import Frame, GestureResult, HandposeOutput, RecognizedFrame
from handpose.recognition.gesture_classifier import GestureClassifier
from handpose.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

DETECTION_FLOOR = 0.2
LABEL_HAND_DETECTED = "Hand detected"
LABEL_NO_HAND = "No hand"


def build_gesture_result(output: HandposeOutput, frame: Frame, classifier: GestureClassifier,
                         min_confidence: float = DETECTION_FLOOR) -> GestureResult:
    """Classify a hand-pose output and package it for the compositor.

    Landmarks are only attached once confidence reaches ``min_confidence``;
    below that the frame is reported as "no hand".
    """
    has_detection = output.confidence >= min_confidence
    detail = None
    if has_detection:
        detail = classifier.classify(
            output.raw_landmarks,
            output.projected_landmarks,
            output.confidence,
            output.handedness,
            frame.timestamp,
        )

    if detail is not None:
        label = detail.primary.emoji + detail.primary.display_name
    elif has_detection:
        label = LABEL_HAND_DETECTED
    else:
        label = LABEL_NO_HAND

    return GestureResult(
        label=label,
        confidence=output.confidence,
        timestamp=frame.timestamp,
        landmarks=list(output.projected_landmarks) if has_detection else None,
        detail=detail,
        palm_regions=list(output.palm_regions),
    )


class RecognitionWorker:
    """
    Owns the hand-pose engine, tracker and classifier on one thread.

    The engine is built on the worker thread by ``engine_factory(monitor)``
    so model sessions never cross threads. If that fails the worker logs
    the error and exits without producing anything. The worker also exits
    once its input slot is closed; in both cases it closes its output slot.

    Example:
        >>> worker = RecognitionWorker(lambda m: build_handpose_engine(config, m), frames, results)
        >>> worker.start()
        >>> frames.close(); worker.join()
    """

    def __init__(self, engine_factory: Callable, frames: FrameSlot, results: FrameSlot,
                 classifier: Optional[GestureClassifier] = None,
                 monitor: Optional[PerformanceMonitor] = None,
                 min_confidence: float = DETECTION_FLOOR,
                 report_interval: int = 300):
        self._engine_factory = engine_factory
        self._frames = frames
        self._results = results
        self.classifier = classifier or GestureClassifier()
        self.monitor = monitor or PerformanceMonitor()
        self.min_confidence = min_confidence
        self._report_interval = report_interval
        self._thread = None
        self._processed = 0
        self._failed = 0
        self._setup_failed = False

    def start(self):
        """Start the worker thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="recognizer", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def setup_failed(self) -> bool:
        return self._setup_failed

    @property
    def frames_processed(self) -> int:
        return self._processed

    @property
    def frames_failed(self) -> int:
        return self._failed

    def _run(self):
        try:
            engine = self._engine_factory(self.monitor)
        except Exception as e:
            self._setup_failed = True
            logger.error("Recognition worker setup failed: %s", e)
            self._results.close()
            return

        logger.info("Recognition worker started")
        try:
            while True:
                try:
                    frame = self._frames.recv_latest()
                except ChannelClosed:
                    break
                self.process_frame(engine, frame)
        finally:
            close = getattr(engine, "close", None)
            if close is not None:
                close()
            self._results.close()
            logger.info("Recognition worker stopped (%d processed, %d failed)",
                        self._processed, self._failed)

    def process_frame(self, engine, frame: Frame) -> Optional[RecognizedFrame]:
        """Run one inference + classification cycle and publish the result.

        Per-frame failures are logged and the frame is skipped.
        """
        self.monitor.frame_start()
        try:
            output = engine.infer(frame)
        except Exception as e:
            self._failed += 1
            self.monitor.frame_failed()
            logger.warning("Hand pose inference failed: %s", e)
            return None

        with self.monitor.measure("classification"):
            result = build_gesture_result(output, frame, self.classifier, self.min_confidence)
        self.monitor.frame_complete()
        self._processed += 1

        recognized = RecognizedFrame(frame=frame, result=result)
        self._results.put_latest(recognized)

        if self._report_interval and self._processed % self._report_interval == 0:
            logger.debug("Recognition: %.1f cycles/s, %.1fms per cycle",
                         self.monitor.fps, self.monitor.frame_time_ms)
        return recognized
