"""
Class table for the produce detector.

The index order is part of the model contract: position i is the label of
class score row i in the detector output.
"""

from __future__ import annotations

from typing import Tuple


CLASS_NAMES: Tuple[str, ...] = (
    "fresh apple",
    "fresh banana",
    "fresh bellpepper",
    "fresh carrot",
    "fresh cucumber",
    "fresh mango",
    "fresh orange",
    "fresh potato",
    "rotten apple",
    "rotten banana",
    "rotten carrot",
    "rotten cucumber",
    "rotten mango",
    "rotten orange",
    "rotten potato",
    "rotten tomato",
    "rottenbellpepper",
)

UNKNOWN_LABEL = "Unknown"


def class_label(class_id: int) -> str:
    """Map a class id to its label; ids outside the table map to "Unknown"."""
    if 0 <= class_id < len(CLASS_NAMES):
        return CLASS_NAMES[class_id]
    return UNKNOWN_LABEL


def is_alert_label(label: str) -> bool:
    """Rotten produce is reported as an alert."""
    return "rotten" in label
