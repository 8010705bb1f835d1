"""
Event model for tracker output.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .labels import is_alert_label


class EventKind(str, Enum):
    SUSTAINED_PRESENCE = "sustained_presence"
    BOUNDARY_CROSSING = "boundary_crossing"


@dataclass(frozen=True)
class Event:
    """
    A discrete event emitted by an event tracker.

    Attributes:
        label: Class label the event refers to.
        confidence: Confidence of the detection that triggered the event.
        kind: Which tracking policy produced the event.
        timestamp: Unix timestamp of the event.
    """
    label: str
    confidence: float
    kind: EventKind
    timestamp: float = 0.0

    @property
    def message(self) -> str:
        return f"Class: {self.label}, Confidence: {self.confidence:.2f}"

    @property
    def is_alert(self) -> bool:
        return is_alert_label(self.label)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "label": self.label,
            "confidence": self.confidence,
            "kind": self.kind.value,
            "timestamp": self.timestamp,
            "is_alert": self.is_alert,
        }
