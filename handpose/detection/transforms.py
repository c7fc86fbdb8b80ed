"""
Crop transform construction and coordinate projection.

Frame space is OpenCV pixel space (x right, y down). A crop is a square
of ``side`` frame pixels centred on ``center`` and rotated by ``angle`` so
that the hand appears upright in the model input.
"""

import math
import logging
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from handpose.core.types import CropTransform, PalmRegion, Point2D

logger = logging.getLogger(__name__)

# ROI derived from a palm box: MediaPipe's palm-to-hand rect expansion
PALM_ROI_SCALE = 2.6
PALM_ROI_SHIFT_Y = -0.5

# Palm detector keypoints used for rotation: wrist -> middle finger MCP
PALM_KEYPOINT_WRIST = 0
PALM_KEYPOINT_MIDDLE_MCP = 2


def normalize_angle(radians: float) -> float:
    """Wrap an angle into [-pi, pi)."""
    two_pi = 2.0 * math.pi
    return radians - two_pi * math.floor((radians + math.pi) / two_pi)


def rotation_from_points(origin: Point2D, target: Point2D) -> Optional[float]:
    """Rotation that makes the ``origin -> target`` vector point straight up.

    Returns None when the two points coincide.
    """
    dx = target[0] - origin[0]
    dy = target[1] - origin[1]
    if abs(dx) < 1e-6 and abs(dy) < 1e-6:
        return None
    return normalize_angle(math.pi / 2.0 - math.atan2(-dy, dx))


def rotate_offset(dx: float, dy: float, angle: float) -> Point2D:
    """Rotate a crop-local offset into frame orientation."""
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return (dx * cos_a - dy * sin_a, dx * sin_a + dy * cos_a)


def crop_from_palm(region: PalmRegion,
                   scale: float = PALM_ROI_SCALE,
                   shift_y: float = PALM_ROI_SHIFT_Y) -> Tuple[Point2D, float, float]:
    """Derive the hand ROI (center, side, angle) from a detected palm.

    The palm box only covers the palm, so the ROI is enlarged and moved
    towards the fingers along the hand's own up axis.
    """
    angle = 0.0
    if len(region.keypoints) > PALM_KEYPOINT_MIDDLE_MCP:
        estimated = rotation_from_points(
            region.keypoints[PALM_KEYPOINT_WRIST],
            region.keypoints[PALM_KEYPOINT_MIDDLE_MCP],
        )
        if estimated is not None:
            angle = estimated

    width = max(region.width, 1.0)
    height = max(region.height, 1.0)
    cx, cy = region.center
    ox, oy = rotate_offset(0.0, shift_y * height, angle)
    side = max(width, height) * scale
    return (cx + ox, cy + oy), side, angle


def letterbox_square(rgb: np.ndarray, size: int) -> Tuple[np.ndarray, float]:
    """Pad an RGB image bottom/right to a square and resize it to ``size``.

    Returns:
        (tensor of shape (1, size, size, 3) float32 in [0, 1],
         frame pixels per normalized model unit)
    """
    height, width = rgb.shape[:2]
    longest = max(height, width)
    padded = cv2.copyMakeBorder(
        rgb, 0, longest - height, 0, longest - width,
        cv2.BORDER_CONSTANT, value=(0, 0, 0),
    )
    resized = cv2.resize(padded, (size, size), interpolation=cv2.INTER_LINEAR)
    tensor = resized.astype(np.float32)[np.newaxis] / 255.0
    return tensor, float(longest)


def prepare_rotated_crop(rgb: np.ndarray, center: Point2D, side: float, angle: float,
                         size: int) -> Tuple[np.ndarray, CropTransform]:
    """Cut a rotated square crop out of ``rgb`` and scale it to ``size``.

    Regions extending past the frame edges are padded with black.

    Returns:
        (tensor of shape (1, size, size, 3) float32 in [0, 1], CropTransform)

    Raises:
        ValueError: non-positive or non-finite side length
    """
    if not math.isfinite(side) or side <= 0:
        raise ValueError("Invalid crop side: %r" % side)

    transform = CropTransform(
        center=(float(center[0]), float(center[1])),
        side=float(side),
        angle=float(angle),
        size=int(size),
    )
    crop = cv2.warpAffine(
        rgb,
        transform.crop_to_frame_matrix(),
        (size, size),
        flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0),
    )
    tensor = crop.astype(np.float32)[np.newaxis] / 255.0
    return tensor, transform


def project_landmarks(landmarks: np.ndarray, transform: CropTransform) -> list:
    """Map normalized crop-space landmarks to frame pixel coordinates."""
    points = np.asarray(landmarks, dtype=np.float64)
    if points.size == 0:
        return []
    crop_px = points[:, :2] * transform.size
    matrix = transform.crop_to_frame_matrix()
    frame_px = crop_px @ matrix[:, :2].T + matrix[:, 2]
    return [(float(x), float(y)) for x, y in frame_px]


def bounding_box(points: Sequence[Point2D]) -> Optional[Tuple[float, float, float, float]]:
    """(min_x, min_y, max_x, max_y) of 2D points, None if empty or non-finite."""
    if len(points) == 0:
        return None
    arr = np.asarray(points, dtype=np.float64)[:, :2]
    mins = arr.min(axis=0)
    maxs = arr.max(axis=0)
    if not (np.all(np.isfinite(mins)) and np.all(np.isfinite(maxs))):
        return None
    return float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1])
