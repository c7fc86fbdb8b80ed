"""
Palm detection stage.

Runs the MediaPipe palm detector (SSD-style, 2016 anchors) on a
letterboxed copy of the frame and decodes the raw regressors into
palm regions in frame pixel coordinates.
"""

import math
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import cv2
import numpy as np

from handpose.core.errors import DecodeError
from handpose.core.types import Frame, PalmRegion
from handpose.detection.transforms import letterbox_square
from handpose.models.inference_engine import InferenceEngine

logger = logging.getLogger(__name__)

NUM_PALM_KEYPOINTS = 7
REGRESSOR_SIZE = 4 + 2 * NUM_PALM_KEYPOINTS
SCORE_CLIP = 100.0


@dataclass
class PalmDetectorConfig:
    """Palm detector configuration."""
    model_path: str = ""
    input_size: int = 192
    score_threshold: float = 0.5
    nms_threshold: float = 0.3
    anchor_strides: tuple = (8, 16, 16, 16)
    anchor_offset: float = 0.5

    @classmethod
    def from_dict(cls, d: dict) -> "PalmDetectorConfig":
        return cls(
            model_path=d.get("model_path", ""),
            input_size=d.get("input_size", 192),
            score_threshold=d.get("score_threshold", 0.5),
            nms_threshold=d.get("nms_threshold", 0.3),
            anchor_strides=tuple(d.get("anchor_strides", (8, 16, 16, 16))),
            anchor_offset=d.get("anchor_offset", 0.5),
        )


def generate_anchors(input_size: int, strides: Sequence[int], offset: float = 0.5) -> np.ndarray:
    """SSD anchor centres for the palm model, normalized to [0, 1].

    Consecutive layers sharing a stride are merged onto one grid, each
    layer contributing two anchors per cell.
    """
    anchors = []
    layer = 0
    while layer < len(strides):
        stride = strides[layer]
        per_cell = 0
        while layer < len(strides) and strides[layer] == stride:
            per_cell += 2
            layer += 1
        grid = int(math.ceil(input_size / float(stride)))
        for y in range(grid):
            for x in range(grid):
                center = ((x + offset) / grid, (y + offset) / grid)
                anchors.extend([center] * per_cell)
    return np.asarray(anchors, dtype=np.float32)


def pick_primary_region(regions: Sequence[PalmRegion]) -> Optional[PalmRegion]:
    """Select the single region to track.

    Highest score wins; equal scores fall back to the larger box; if that
    ties too, the earliest region in detector order is kept.
    """
    best = None
    for region in regions:
        if best is None or (region.score, region.area) > (best.score, best.area):
            best = region
    return best


class PalmDetector:
    """
    Palm detector adapter around an inference engine.

    Example:
        >>> detector = PalmDetector(engine, PalmDetectorConfig())
        >>> regions = detector.detect(frame)
        >>> primary = pick_primary_region(regions)
    """

    def __init__(self, engine: InferenceEngine, config: Optional[PalmDetectorConfig] = None):
        self.config = config or PalmDetectorConfig()
        self._engine = engine
        self._anchors = generate_anchors(
            self.config.input_size, self.config.anchor_strides, self.config.anchor_offset)
        logger.info("Palm detector ready (%d anchors, input %d, score>=%.2f, nms=%.2f)",
                    len(self._anchors), self.config.input_size,
                    self.config.score_threshold, self.config.nms_threshold)

    def close(self):
        self._engine.close()

    def detect(self, frame: Frame) -> List[PalmRegion]:
        """Detect palms in ``frame``.

        Failures are expected at runtime and never propagate: they are
        logged and reported as "no palms".
        """
        try:
            tensor, scale = letterbox_square(frame.rgb, self.config.input_size)
            outputs = self._engine.run(tensor)
            return self.decode(outputs, scale)
        except Exception as e:
            logger.warning("Palm detection failed: %s", e)
            return []

    def decode(self, outputs: Sequence[np.ndarray], scale: float) -> List[PalmRegion]:
        """Turn raw model outputs into NMS-filtered regions, best first.

        Args:
            outputs: [regressors (1, N, 18), scores (1, N, 1)] in either order
            scale: frame pixels per normalized model unit

        Raises:
            DecodeError: missing outputs or unexpected shapes
        """
        regressors, logits = self._split_outputs(outputs)

        scores = 1.0 / (1.0 + np.exp(-np.clip(logits, -SCORE_CLIP, SCORE_CLIP)))
        candidates = np.flatnonzero(scores >= self.config.score_threshold)
        if candidates.size == 0:
            return []

        size = float(self.config.input_size)
        anchors = self._anchors[candidates]
        raw = regressors[candidates]

        centers = raw[:, 0:2] / size + anchors
        half_wh = raw[:, 2:4] / size * 0.5
        boxes = np.concatenate([centers - half_wh, centers + half_wh], axis=1) * scale
        keypoints = (raw[:, 4:].reshape(-1, NUM_PALM_KEYPOINTS, 2) / size + anchors[:, None, :]) * scale
        cand_scores = scores[candidates]

        nms_boxes = [[float(b[0]), float(b[1]), float(b[2] - b[0]), float(b[3] - b[1])] for b in boxes]
        keep = cv2.dnn.NMSBoxes(
            nms_boxes, [float(s) for s in cand_scores],
            self.config.score_threshold, self.config.nms_threshold,
        )
        keep = np.asarray(keep, dtype=np.int64).reshape(-1)

        regions = [
            PalmRegion(
                bbox=tuple(float(v) for v in boxes[i]),
                keypoints=[(float(x), float(y)) for x, y in keypoints[i]],
                score=float(cand_scores[i]),
            )
            for i in keep
        ]
        regions.sort(key=lambda r: r.score, reverse=True)
        logger.debug("Palm decode: %d candidates, %d after NMS", candidates.size, len(regions))
        return regions

    def _split_outputs(self, outputs: Sequence[np.ndarray]):
        if outputs is None or len(outputs) < 2:
            raise DecodeError("palm detector returned %d outputs, expected 2"
                              % (0 if outputs is None else len(outputs)))

        num_anchors = len(self._anchors)
        first = np.asarray(outputs[0], dtype=np.float32)
        second = np.asarray(outputs[1], dtype=np.float32)
        # Scores hold one value per anchor
        if first.size == num_anchors and second.size != num_anchors:
            first, second = second, first

        if first.size != num_anchors * REGRESSOR_SIZE:
            raise DecodeError("palm regressors have shape %s, expected (1, %d, %d)"
                              % (first.shape, num_anchors, REGRESSOR_SIZE))
        if second.size != num_anchors:
            raise DecodeError("palm scores have shape %s, expected (1, %d, 1)"
                              % (second.shape, num_anchors))
        return first.reshape(num_anchors, REGRESSOR_SIZE), second.reshape(num_anchors)
