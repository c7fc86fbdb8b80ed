"""
Shared fixtures: synthetic landmark sets and a canned-output inference engine.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from handpose.core.types import Frame
from handpose.models.inference_engine import InferenceEngine
from handpose.utils.config import Config


# All five fingers extended and spread; bbox is exactly [0, 0.85] x [0, 1]
OPEN_PALM = [
    (0.5, 1.0),
    (0.35, 0.9), (0.22, 0.8), (0.12, 0.72), (0.0, 0.62),
    (0.38, 0.55), (0.33, 0.35), (0.30, 0.2), (0.28, 0.05),
    (0.5, 0.52), (0.5, 0.3), (0.5, 0.15), (0.5, 0.0),
    (0.62, 0.55), (0.67, 0.35), (0.7, 0.2), (0.72, 0.06),
    (0.72, 0.62), (0.78, 0.45), (0.82, 0.35), (0.85, 0.25),
]

# Thumb sideways with its tip 0.1 above the wrist, other fingers curled
THUMB_UP = [
    (0.6, 1.0),
    (0.4, 0.93), (0.25, 0.91), (0.12, 0.9), (0.0, 0.9),
    (0.3, 0.35), (0.3, 0.05), (0.35, 0.2), (0.35, 0.35),
    (0.5, 0.32), (0.5, 0.0), (0.55, 0.15), (0.55, 0.3),
    (0.7, 0.35), (0.7, 0.05), (0.72, 0.2), (0.72, 0.35),
    (0.88, 0.42), (0.9, 0.15), (0.9, 0.28), (0.88, 0.4),
]

NUM_ANCHORS = 2016


def to_landmarks(points, z=0.0):
    """(x, y) list -> (21, 3) array."""
    arr = np.zeros((len(points), 3), dtype=np.float32)
    arr[:, :2] = np.asarray(points, dtype=np.float32)
    arr[:, 2] = z
    return arr


def to_projected(points, scale=200.0, offset=(100.0, 100.0)):
    return [(x * scale + offset[0], y * scale + offset[1]) for x, y in points]


class FakeEngine(InferenceEngine):
    """Returns whatever ``outputs`` currently holds and records inputs."""

    def __init__(self, outputs, input_shape=(1, 192, 192, 3)):
        self.outputs = outputs
        self.calls = []
        self.closed = False
        self._input_shape = input_shape

    @property
    def input_name(self):
        return "input"

    @property
    def input_shape(self):
        return self._input_shape

    @property
    def output_names(self):
        return ["out%d" % i for i in range(len(self.outputs))]

    def run(self, tensor):
        self.calls.append(tensor)
        if isinstance(self.outputs, Exception):
            raise self.outputs
        return self.outputs

    def close(self):
        self.closed = True


def palm_outputs(hits=()):
    """Palm detector outputs with ``(anchor_index, logit, box_size_px)`` hits."""
    regressors = np.zeros((1, NUM_ANCHORS, 18), dtype=np.float32)
    scores = np.full((1, NUM_ANCHORS, 1), -10.0, dtype=np.float32)
    for index, logit, size in hits:
        scores[0, index, 0] = logit
        regressors[0, index, 2] = size
        regressors[0, index, 3] = size
    return [regressors, scores]


def landmark_outputs(points=OPEN_PALM, confidence=0.9, handedness=0.5, input_size=224):
    coords = to_landmarks(points) * input_size
    return [
        coords.reshape(1, -1),
        np.array([[confidence]], dtype=np.float32),
        np.array([[handedness]], dtype=np.float32),
    ]


def make_frame(width=384, height=384, timestamp=0.0, value=0):
    image = np.full((height, width, 3), value, dtype=np.uint8)
    return Frame.from_bgr(image, timestamp)


# Anchor at grid cell (12, 12) of the stride-8 layer: centre (12.5/24, 12.5/24)
CENTER_ANCHOR = (12 * 24 + 12) * 2


@pytest.fixture
def open_palm():
    return to_landmarks(OPEN_PALM)


@pytest.fixture
def thumb_up():
    return to_landmarks(THUMB_UP)


@pytest.fixture
def frame():
    return make_frame()


@pytest.fixture
def config():
    Config.reset()
    cfg = Config()
    yield cfg
    Config.reset()
