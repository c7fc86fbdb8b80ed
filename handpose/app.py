"""
Hand Pose Recognition - application entry point.

Usage:
    python main.py                                   # Live camera mode
    python main.py --mode image hand1.jpg hand2.png  # Classify still images
    python main.py --mode benchmark hand.jpg         # Inference benchmark
    python main.py --debug --log-file logs/run.log   # Verbose logging
"""

import os
import time
import signal
import argparse
import logging
import queue

import cv2

from handpose import __version__
from handpose.capture.camera_manager import CameraConfig, CameraSource
from handpose.core.channels import FrameSlot
from handpose.core.errors import ChannelClosed, HandposeError
from handpose.core.pipeline import RecognitionWorker, build_gesture_result
from handpose.core.types import Frame
from handpose.detection.handpose_engine import build_handpose_engine
from handpose.recognition.gesture_classifier import GestureClassifier, GestureClassifierConfig
from handpose.recognition.motion_tracker import MotionTracker, MotionTrackerConfig
from handpose.utils.config import Config
from handpose.utils.logger import setup_logging, GestureLogger
from handpose.utils.performance_monitor import PerformanceMonitor
from handpose.visualization.compositor import CompositorConfig, FrameCompositor
from handpose.visualization.overlay import draw_label

logger = logging.getLogger(__name__)

WINDOW_NAME = "Hand Pose Recognition"
_QUIT_KEYS = (ord("q"), 27)


def build_classifier(config: Config) -> GestureClassifier:
    return GestureClassifier(
        GestureClassifierConfig.from_dict(config.recognition),
        MotionTracker(MotionTrackerConfig.from_dict(config.motion)),
    )


def describe_result(result) -> str:
    """One-line plain-text summary of a GestureResult."""
    detail = result.detail
    if detail is None:
        return "%s (%.0f%%)" % (result.label, result.confidence * 100)
    fingers = ",".join(state.label for state in detail.finger_states)
    text = "%s (%.0f%%) hand=%s motion=%s fingers=[%s]" % (
        detail.primary.display_name, result.confidence * 100,
        detail.handedness.label, detail.motion.label, fingers,
    )
    if detail.secondary is not None:
        text += " secondary=%s" % detail.secondary.display_name
    return text


def load_frame(path: str) -> Frame:
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        raise HandposeError("Could not read image: %s" % path)
    return Frame.from_bgr(image, time.monotonic())


class HandposeApp:
    """Wires camera, recognition worker, compositor and the OpenCV window."""

    def __init__(self, config: Config):
        self._config = config
        self._running = False
        self._gesture_logger = GestureLogger()

    def run_live(self) -> int:
        """Camera -> worker -> compositor -> window until quit or pipeline end."""
        frames = FrameSlot("frames")
        results = FrameSlot("results")
        display = FrameSlot("display")

        camera = CameraSource(CameraConfig.from_dict(self._config.camera), frames)
        worker = RecognitionWorker(
            lambda monitor: build_handpose_engine(self._config, monitor),
            frames, results,
            classifier=build_classifier(self._config),
            min_confidence=self._config.get("recognition.min_confidence", 0.2),
        )
        compositor = FrameCompositor(results, display, CompositorConfig.from_dict(self._config.compositor))

        if not camera.open():
            return 1
        worker.start()
        compositor.start()
        camera.start()
        self._running = True

        try:
            self._display_loop(display)
        finally:
            self._running = False
            camera.stop()
            worker.join(timeout=5.0)
            compositor.join(timeout=5.0)
            cv2.destroyAllWindows()
            logger.info("\n%s", worker.monitor.get_report())

        if worker.setup_failed:
            logger.error("Recognition worker could not start; see errors above")
            return 1
        return 0

    def _display_loop(self, display: FrameSlot):
        while self._running:
            try:
                composited = display.recv(timeout=0.05)
            except queue.Empty:
                composited = None
            except ChannelClosed:
                logger.info("Pipeline finished")
                break

            if composited is not None:
                self._gesture_logger.observe(composited.result)
                image = composited.frame.bgr
                draw_label(image, describe_result(composited.result))
                cv2.imshow(WINDOW_NAME, image)

            key = cv2.waitKey(1) & 0xFF
            if key in _QUIT_KEYS:
                self._running = False

    def run_images(self, paths) -> int:
        """Classify each still image and print one line per image."""
        engine = build_handpose_engine(self._config)
        status = 0
        try:
            for path in paths:
                engine.reset()
                try:
                    frame = load_frame(path)
                    output = engine.infer(frame)
                except (HandposeError, ValueError) as e:
                    logger.warning("%s: %s", path, e)
                    status = 1
                    continue
                result = build_gesture_result(
                    output, frame, build_classifier(self._config),
                    self._config.get("recognition.min_confidence", 0.2))
                print("%s: %s" % (os.path.basename(path), describe_result(result)))
        finally:
            engine.close()
        return status

    def run_benchmark(self, path: str, iterations: int) -> int:
        """Repeated inference on one image; prints the performance report."""
        monitor = PerformanceMonitor(window_size=max(iterations, 1))
        engine = build_handpose_engine(self._config, monitor)
        classifier = build_classifier(self._config)
        frame = load_frame(path)

        logger.info("Benchmark: %d iterations on %s", iterations, path)
        try:
            for i in range(iterations):
                monitor.frame_start()
                output = engine.infer(frame)
                with monitor.measure("classification"):
                    result = build_gesture_result(output, frame, classifier)
                monitor.frame_complete()
                if i % 50 == 0:
                    logger.info("Benchmark progress: %d/%d (%.1f cycles/s) %s",
                                i, iterations, monitor.fps, result.label)
        finally:
            engine.close()
        print(monitor.get_report())
        return 0

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Real-time hand pose and gesture recognition")
    parser.add_argument(
        "--mode", choices=["live", "image", "benchmark"], default="live",
        help="Operating mode"
    )
    parser.add_argument(
        "images", nargs="*",
        help="Image paths for image/benchmark modes"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="Camera device ID"
    )
    parser.add_argument(
        "--iterations", type=int, default=100,
        help="Benchmark iterations"
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file", type=str, default=None,
        help="Also log to this file (rotating)"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    if args.camera is not None:
        config.camera["device_id"] = args.camera

    log_cfg = config.logging
    setup_logging(
        level="DEBUG" if args.debug else log_cfg.get("level", "INFO"),
        log_file=args.log_file or log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  HAND POSE RECOGNITION v%s", __version__)
    logger.info("  Mode: %s", args.mode)
    logger.info("=" * 60)

    app = HandposeApp(config)
    if args.mode in ("image", "benchmark") and not args.images:
        logger.error("--mode %s needs at least one image path", args.mode)
        return 2

    try:
        if args.mode == "image":
            return app.run_images(args.images)
        if args.mode == "benchmark":
            return app.run_benchmark(args.images[0], args.iterations)

        signal.signal(signal.SIGINT, app.handle_signal)
        signal.signal(signal.SIGTERM, app.handle_signal)
        return app.run_live()
    except (HandposeError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
