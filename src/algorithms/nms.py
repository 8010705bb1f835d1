"""
Box geometry and greedy non-maximum suppression.

Pure functions with no state, shared by the detector post-processing and
the tests.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple, Union

import numpy as np

from models.detection import BoundingBox, Detection


BoxLike = Union[BoundingBox, Tuple[float, float, float, float]]


def xywh_to_xyxy(
    cx: float,
    cy: float,
    w: float,
    h: float,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
) -> Tuple[float, float, float, float]:
    """
    Convert a center-form box to corner form, scaling each axis.

    The scale factors map model-input pixels to original-frame pixels
    (original_dim / model_input_dim).
    """
    x1 = (cx - w / 2) * scale_x
    y1 = (cy - h / 2) * scale_y
    x2 = (cx + w / 2) * scale_x
    y2 = (cy + h / 2) * scale_y
    return (x1, y1, x2, y2)


def decode_boxes(boxes: np.ndarray, scale_x: float = 1.0, scale_y: float = 1.0) -> np.ndarray:
    """Vectorised xywh_to_xyxy over an (N, 4) array of center-form boxes."""
    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    cx, cy, w, h = boxes.T
    x1 = (cx - w / 2) * scale_x
    y1 = (cy - h / 2) * scale_y
    x2 = (cx + w / 2) * scale_x
    y2 = (cy + h / 2) * scale_y
    return np.stack([x1, y1, x2, y2], axis=1)


def _as_tuple(box: BoxLike) -> Tuple[float, float, float, float]:
    if isinstance(box, BoundingBox):
        return box.as_tuple()
    return (box[0], box[1], box[2], box[3])


def iou(a: BoxLike, b: BoxLike) -> float:
    """
    Intersection-over-union of two axis-aligned boxes.

    Returns 0.0 for disjoint boxes and whenever the union area is not
    positive (degenerate boxes).
    """
    ax1, ay1, ax2, ay2 = _as_tuple(a)
    bx1, by1, bx2, by2 = _as_tuple(b)

    ix1 = max(ax1, bx1)
    iy1 = max(ay1, by1)
    ix2 = min(ax2, bx2)
    iy2 = min(ay2, by2)

    intersection = max(0.0, ix2 - ix1) * max(0.0, iy2 - iy1)
    area_a = (ax2 - ax1) * (ay2 - ay1)
    area_b = (bx2 - bx1) * (by2 - by1)
    union = area_a + area_b - intersection

    if union <= 0:
        return 0.0
    return intersection / union


def non_max_suppression(detections: Sequence[Detection], iou_threshold: float) -> List[Detection]:
    """
    Greedy per-class non-maximum suppression.

    Candidates are ordered by confidence, highest first; ties keep their
    input order. The best remaining candidate is kept and every remaining
    candidate of the same class overlapping it by more than `iou_threshold`
    is dropped, until nothing is left.
    """
    remaining = sorted(detections, key=lambda d: -d.confidence)
    kept: List[Detection] = []

    while remaining:
        best = remaining.pop(0)
        kept.append(best)
        remaining = [
            det for det in remaining
            if det.class_id != best.class_id or iou(best.bbox, det.bbox) <= iou_threshold
        ]

    return kept
