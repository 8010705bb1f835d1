"""
Sustained-presence policy.

A label must be seen in N consecutive inference cycles before it is
reported. Any cycle without the label resets its count.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from models.detection import Detection
from models.event import Event, EventKind
from .base import EventTracker, best_per_label


@dataclass(frozen=True)
class PresenceTrackerConfig:
    """
    Attributes:
        consecutive_frames: Cycles a label must persist before an event fires.
    """
    consecutive_frames: int = 30


class SustainedPresenceTracker(EventTracker):
    """Debounces detections into SUSTAINED_PRESENCE events."""

    def __init__(self, config: PresenceTrackerConfig, clock: Callable[[], float] = time.monotonic):
        super().__init__(clock)
        if config.consecutive_frames < 1:
            raise ValueError("consecutive_frames must be >= 1")
        self._presence_config = config

    @property
    def consecutive_frames(self) -> int:
        return self._presence_config.consecutive_frames

    def update(self, detections: List[Detection], now: Optional[float] = None) -> List[Event]:
        events: List[Event] = []
        present = best_per_label(detections)

        for label, det in present.items():
            state = self._state_for(label)
            state.consecutive_hits += 1
            if state.consecutive_hits >= self.consecutive_frames:
                state.consecutive_hits = 0
                events.append(Event(
                    label=label,
                    confidence=det.confidence,
                    kind=EventKind.SUSTAINED_PRESENCE,
                    timestamp=time.time(),
                ))

        # No partial credit across a gap
        for label, state in self._states.items():
            if label not in present:
                state.consecutive_hits = 0

        return events
