"""
Threaded camera capture feeding the recognition worker.
Each captured frame is converted to RGBA, timestamped and handed off
through a single-slot channel; stale frames are simply replaced.
"""

import time
import threading
import logging
from dataclasses import dataclass
from typing import Optional

import cv2

from handpose.core.channels import FrameSlot
from handpose.core.types import Frame

logger = logging.getLogger(__name__)

_BACKENDS = {
    "v4l2": cv2.CAP_V4L2,
    "gstreamer": cv2.CAP_GSTREAMER,
    "auto": cv2.CAP_ANY,
}


@dataclass
class CameraConfig:
    """Capture device settings."""
    device_id: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    backend: str = "auto"
    buffer_size: int = 1
    flip_horizontal: bool = True
    warmup_frames: int = 5

    @classmethod
    def from_dict(cls, d: dict) -> "CameraConfig":
        return cls(
            device_id=d.get("device_id", 0),
            width=d.get("width", 640),
            height=d.get("height", 480),
            fps=d.get("fps", 30),
            backend=d.get("backend", "auto"),
            buffer_size=d.get("buffer_size", 1),
            flip_horizontal=d.get("flip_horizontal", True),
            warmup_frames=d.get("warmup_frames", 5),
        )


class CameraSource:
    """
    Camera frame source running on its own thread.

    Example:
        >>> frames = FrameSlot("frames")
        >>> camera = CameraSource(CameraConfig(), frames)
        >>> if camera.open():
        ...     camera.start()
        >>> camera.stop()   # joins the thread and closes ``frames``
    """

    def __init__(self, config: CameraConfig, output: FrameSlot):
        self.config = config
        self._output = output
        self._cap = None
        self._stop_event = threading.Event()
        self._thread = None
        self._frames_captured = 0
        self._read_failures = 0

    def open(self) -> bool:
        """Open the capture device and discard warm-up frames."""
        cfg = self.config
        backend = _BACKENDS.get(cfg.backend, cv2.CAP_ANY)
        self._cap = cv2.VideoCapture(cfg.device_id, backend)
        if not self._cap.isOpened():
            logger.error("Failed to open camera %d with backend %s", cfg.device_id, cfg.backend)
            self._cap = None
            return False

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.height)
        self._cap.set(cv2.CAP_PROP_FPS, cfg.fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)

        actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = self._cap.get(cv2.CAP_PROP_FPS)
        logger.info(
            "Camera opened: %dx%d @ %.0f FPS (requested %dx%d @ %d)",
            actual_w, actual_h, actual_fps, cfg.width, cfg.height, cfg.fps,
        )

        for _ in range(cfg.warmup_frames):
            self._cap.read()
        return True

    def start(self):
        """Start the capture thread."""
        if self._thread is not None:
            return
        if self._cap is None:
            raise RuntimeError("Camera is not open")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._capture_loop, name="camera", daemon=True)
        self._thread.start()
        logger.info("Capture started")

    def _capture_loop(self):
        try:
            while not self._stop_event.is_set():
                ok, image = self._cap.read()
                if not ok or image is None:
                    self._read_failures += 1
                    time.sleep(0.005)
                    continue
                if self.config.flip_horizontal:
                    image = cv2.flip(image, 1)
                self._output.put_latest(Frame.from_bgr(image, time.monotonic()))
                self._frames_captured += 1
        finally:
            self._output.close()

    def stop(self):
        """Signal the capture loop, wait for it and release the device."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        else:
            self._output.close()
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        logger.info("Camera stopped (%d frames, %d read failures)",
                    self._frames_captured, self._read_failures)

    @property
    def frames_captured(self) -> int:
        return self._frames_captured

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()
