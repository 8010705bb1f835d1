"""
EventTracker interface for event policies.

A tracker consumes one detection set per inference cycle and turns the
noisy per-cycle signal into discrete, rate-limited Events.

State is kept per class label, not per object: there is no identity
assignment, so two apples in the same frame share one state machine.
The label set is fixed by the class table, which bounds memory.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from models.detection import Detection
from models.event import Event


@dataclass
class TrackState:
    """
    Per-label tracker state.

    Attributes:
        consecutive_hits: Consecutive cycles the label was present.
        last_side: Whether the label was past the boundary last cycle (None before first sighting).
        triggered_at: Monotonic time of the last crossing event (None when not in cooldown).
    """
    consecutive_hits: int = 0
    last_side: Optional[bool] = None
    triggered_at: Optional[float] = None


def best_per_label(detections: Iterable[Detection]) -> Dict[str, Detection]:
    """Highest-confidence detection for each label, first one wins ties."""
    best: Dict[str, Detection] = {}
    for det in detections:
        current = best.get(det.label)
        if current is None or det.confidence > current.confidence:
            best[det.label] = det
    return best


class EventTracker(ABC):
    """
    Abstract base class for event tracking policies.

    Trackers are not thread-safe; the pipeline only calls them from its
    single inference worker.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._states: Dict[str, TrackState] = {}

    def get_state(self, label: str) -> Optional[TrackState]:
        """Current state for a label, or None if it was never seen."""
        return self._states.get(label)

    def labels(self) -> List[str]:
        return list(self._states)

    def reset(self) -> None:
        """Discard all per-label state (including pending cooldowns)."""
        self._states.clear()

    def _state_for(self, label: str) -> TrackState:
        state = self._states.get(label)
        if state is None:
            state = TrackState()
            self._states[label] = state
        return state

    @abstractmethod
    def update(self, detections: List[Detection], now: Optional[float] = None) -> List[Event]:
        """
        Consume one inference cycle and return the events it triggers.

        Args:
            detections: Detection set of the cycle (post-NMS).
            now: Monotonic time of the cycle; defaults to the tracker clock.
        """
        pass
