"""
Detection interfaces.

Detectors turn one BGR frame into a de-duplicated list of detections in
pixel coordinates of that frame.
"""

from __future__ import annotations

from typing import List

import numpy as np

from models.detection import Detection


class Detector:
    """Detector interface returning detections in pixel-space."""

    def detect(self, frame: np.ndarray) -> List[Detection]:
        raise NotImplementedError

    def close(self) -> None:
        pass
