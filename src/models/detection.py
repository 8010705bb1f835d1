"""
Detection result types.

Coordinates are pixels of the frame the detector was given, corner form,
with x growing right and y growing down.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .labels import class_label


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box, (x1, y1) top-left and (x2, y2) bottom-right."""
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Truncated corners, for drawing."""
        return (int(self.x1), int(self.y1), int(self.x2), int(self.y2))

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        half_w, half_h = w / 2, h / 2
        return cls(x1=cx - half_w, y1=cy - half_h, x2=cx + half_w, y2=cy + half_h)


@dataclass(frozen=True)
class Detection:
    """
    One post-NMS detection.

    Attributes:
        bbox: Box in pixel coordinates of the source frame.
        confidence: Best class score, strictly above the detector threshold.
        class_id: Index into the class table; see models.labels.
    """
    bbox: BoundingBox
    confidence: float
    class_id: int

    @property
    def label(self) -> str:
        return class_label(self.class_id)

    @property
    def x1(self) -> float:
        return self.bbox.x1

    @property
    def y1(self) -> float:
        return self.bbox.y1

    @property
    def x2(self) -> float:
        return self.bbox.x2

    @property
    def y2(self) -> float:
        return self.bbox.y2

    @property
    def center(self) -> Tuple[float, float]:
        return self.bbox.center

    @classmethod
    def from_xyxy(
        cls,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        confidence: float,
        class_id: int,
    ) -> "Detection":
        return cls(BoundingBox(x1, y1, x2, y2), confidence=confidence, class_id=class_id)

    def to_dict(self) -> Dict[str, Any]:
        """Flat JSON-ready form, label included."""
        return {
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "confidence": self.confidence,
            "class_id": self.class_id,
            "label": self.label,
        }
