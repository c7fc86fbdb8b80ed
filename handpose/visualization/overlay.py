"""
Overlay drawing for composited frames.
Draws onto RGBA pixel buffers in place; colours are RGBA tuples.
"""

import logging
from typing import Optional, Sequence

import cv2
import numpy as np

from handpose.core.types import PalmRegion, Point2D

logger = logging.getLogger(__name__)

HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),          # thumb
    (5, 6), (6, 7), (7, 8),                  # index
    (9, 10), (10, 11), (11, 12),             # middle
    (13, 14), (14, 15), (15, 16),            # ring
    (17, 18), (18, 19), (19, 20),            # pinky
    (0, 5), (5, 9), (9, 13), (13, 17), (0, 17),  # palm
]

FINGERTIPS = (4, 8, 12, 16, 20)

PALM_BOX_COLOR = (255, 196, 0, 255)
PALM_KEYPOINT_COLOR = (255, 128, 0, 255)
BONE_COLOR = (0, 230, 118, 255)
JOINT_COLOR = (255, 255, 255, 255)
TIP_COLOR = (255, 64, 129, 255)


def _pt(point: Point2D):
    return int(round(point[0])), int(round(point[1]))


def draw_palm_regions(image: np.ndarray, regions: Sequence[PalmRegion],
                      color=PALM_BOX_COLOR, thickness: int = 2) -> np.ndarray:
    """Draw detector boxes, their keypoints and scores."""
    for region in regions:
        x1, y1, x2, y2 = region.bbox
        cv2.rectangle(image, _pt((x1, y1)), _pt((x2, y2)), color, thickness)
        for kp in region.keypoints:
            cv2.circle(image, _pt(kp), 2, PALM_KEYPOINT_COLOR, -1)
        cv2.putText(
            image, "%.2f" % region.score, _pt((x1, max(y1 - 6, 10))),
            cv2.FONT_HERSHEY_SIMPLEX, 0.45, color, 1, cv2.LINE_AA,
        )
    return image


def draw_skeleton(image: np.ndarray, points: Sequence[Point2D],
                  connections=HAND_CONNECTIONS) -> np.ndarray:
    """Draw the 21-point hand skeleton; connections with missing points are skipped."""
    count = len(points)
    for a, b in connections:
        if a < count and b < count:
            cv2.line(image, _pt(points[a]), _pt(points[b]), BONE_COLOR, 2, cv2.LINE_AA)
    for i, point in enumerate(points):
        if i in FINGERTIPS:
            cv2.circle(image, _pt(point), 5, TIP_COLOR, -1, cv2.LINE_AA)
        else:
            cv2.circle(image, _pt(point), 3, JOINT_COLOR, -1, cv2.LINE_AA)
    return image


def draw_label(image: np.ndarray, text: str, origin=(12, 28),
               color=(255, 255, 255, 255), background: Optional[tuple] = (0, 0, 0, 255)) -> np.ndarray:
    """Draw a label with a filled background box (ASCII only, Hershey fonts)."""
    font, scale, thickness = cv2.FONT_HERSHEY_SIMPLEX, 0.7, 2
    (w, h), baseline = cv2.getTextSize(text, font, scale, thickness)
    x, y = origin
    if background is not None:
        cv2.rectangle(image, (x - 6, y - h - 8), (x + w + 6, y + baseline + 4), background, -1)
    cv2.putText(image, text, (x, y), font, scale, color, thickness, cv2.LINE_AA)
    return image
