"""
Frame overlays: detection boxes, the boundary line and the FPS counter.

All functions draw in place on a BGR frame and return it.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import cv2
import numpy as np

from models.detection import Detection
from models.labels import is_alert_label

# Colors (BGR)
COLOR_FRESH = (0, 255, 0)  # Green
COLOR_ROTTEN = (0, 0, 255)  # Red
COLOR_BOUNDARY = (255, 201, 0)  # Cyan
COLOR_TEXT = (0, 0, 0)
COLOR_FPS = (0, 255, 0)

FONT = cv2.FONT_HERSHEY_SIMPLEX


def draw_detections(frame: np.ndarray, detections: Optional[Iterable[Detection]]) -> np.ndarray:
    """Draw boxes with a "<label>: <confidence>" tag above each."""
    if not detections:
        return frame

    for det in detections:
        x1, y1, x2, y2 = det.bbox.as_int_tuple()
        color = COLOR_ROTTEN if is_alert_label(det.label) else COLOR_FRESH
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, 2)

        label = f"{det.label}: {det.confidence:.2f}"
        (tw, th), _ = cv2.getTextSize(label, FONT, 0.5, 1)
        cv2.rectangle(frame, (x1, y1 - th - 10), (x1 + tw, y1), color, -1)
        cv2.putText(frame, label, (x1, y1 - 10 + th // 2), FONT, 0.5, COLOR_TEXT, 1)

    return frame


def draw_boundary(frame: np.ndarray, line: Optional[List[Tuple[int, int]]]) -> np.ndarray:
    if line and len(line) == 2:
        cv2.line(frame, line[0], line[1], COLOR_BOUNDARY, 2)
    return frame


def draw_fps(frame: np.ndarray, fps: float) -> np.ndarray:
    cv2.putText(frame, f"FPS: {fps:.1f}", (10, 30), FONT, 0.7, COLOR_FPS, 2)
    return frame
