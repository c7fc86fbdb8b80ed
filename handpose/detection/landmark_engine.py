"""
Hand landmark stage.

Runs the landmark model on a rotated square crop and decodes its
outputs into 21 normalized 3D points, a confidence and a handedness score.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

import numpy as np

from handpose.core.errors import DecodeError
from handpose.core.types import CropTransform, Frame, Point2D
from handpose.detection.transforms import prepare_rotated_crop
from handpose.models.inference_engine import InferenceEngine

logger = logging.getLogger(__name__)

NUM_LANDMARKS = 21


@dataclass
class LandmarkEngineConfig:
    """Landmark model configuration."""
    model_path: str = ""
    input_size: int = 224
    coordinate_scale: Optional[float] = None  # defaults to input_size
    tracking_damping: float = 0.9

    @classmethod
    def from_dict(cls, d: dict) -> "LandmarkEngineConfig":
        return cls(
            model_path=d.get("model_path", ""),
            input_size=d.get("input_size", 224),
            coordinate_scale=d.get("coordinate_scale"),
            tracking_damping=d.get("tracking_damping", 0.9),
        )

    @property
    def effective_coordinate_scale(self) -> float:
        return float(self.coordinate_scale or self.input_size)


class LandmarkDecode(NamedTuple):
    """Decoded landmark model outputs for one crop."""
    landmarks: np.ndarray  # (N, 3), N <= 21, normalized crop space
    confidence: float
    handedness: float


def _first_scalar(outputs: Sequence[np.ndarray], index: int) -> float:
    if len(outputs) <= index:
        return 0.0
    values = np.asarray(outputs[index], dtype=np.float32).reshape(-1)
    if values.size == 0:
        return 0.0
    return float(values[0])


def decode_landmark_outputs(outputs: Sequence[np.ndarray], coordinate_scale: float) -> LandmarkDecode:
    """Decode ``[landmarks, confidence?, handedness?, ...]``.

    Raises:
        DecodeError: no landmark tensor, its size is not a multiple of 3,
            or it holds non-finite coordinates
    """
    if outputs is None or len(outputs) < 1:
        raise DecodeError("landmark model returned no outputs")

    flat = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
    if flat.size % 3 != 0:
        raise DecodeError("landmark tensor has %d values, not a multiple of 3" % flat.size)

    points = flat.reshape(-1, 3)[:NUM_LANDMARKS] / float(coordinate_scale)
    if not np.isfinite(points).all():
        raise DecodeError("landmark tensor holds non-finite coordinates")
    return LandmarkDecode(
        landmarks=points,
        confidence=_first_scalar(outputs, 1),
        handedness=_first_scalar(outputs, 2),
    )


class LandmarkEngine:
    """
    Landmark model adapter around an inference engine.

    Example:
        >>> engine = LandmarkEngine(create_inference_engine(path), LandmarkEngineConfig())
        >>> decoded, transform = engine.run(frame, center, side, angle)
    """

    def __init__(self, engine: InferenceEngine, config: Optional[LandmarkEngineConfig] = None):
        self.config = config or LandmarkEngineConfig()
        self._engine = engine
        logger.info("Landmark engine ready (input %d, coordinate scale %.1f)",
                    self.config.input_size, self.config.effective_coordinate_scale)

    def run(self, frame: Frame, center: Point2D, side: float, angle: float):
        """Crop ``frame`` around the ROI and decode the model outputs.

        Returns:
            (LandmarkDecode, CropTransform)

        Raises:
            DecodeError: malformed model outputs
            ValueError: degenerate crop
        """
        tensor, transform = prepare_rotated_crop(
            frame.rgb, center, side, angle, self.config.input_size)
        outputs = self._engine.run(tensor)
        decoded = decode_landmark_outputs(outputs, self.config.effective_coordinate_scale)
        if len(decoded.landmarks) < NUM_LANDMARKS:
            logger.debug("Landmark model returned only %d points", len(decoded.landmarks))
        return decoded, transform

    def close(self):
        self._engine.close()

    def describe_crop(self, transform: CropTransform) -> str:
        return "center=(%.1f, %.1f) side=%.1f angle=%.2f" % (
            transform.center[0], transform.center[1], transform.side, transform.angle)
