"""
Boundary-crossing policy.

A single virtual line divides the frame. A label is "passed" when the
center of its box lies on the far side of the line: left of a vertical
line, or above a horizontal one. An event fires on a not-passed -> passed
transition, then the label is muted for the cooldown period.

Cooldown expiry is evaluated lazily from the recorded trigger time, so no
timer threads are involved and shutdown simply drops the state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from models.config import BoundaryConfig, ORIENTATION_HORIZONTAL, ORIENTATION_VERTICAL
from models.detection import Detection
from models.event import Event, EventKind
from .base import EventTracker, TrackState, best_per_label


def is_past_boundary(point: Tuple[float, float], boundary: BoundaryConfig) -> bool:
    """True when the point lies on the far side of the boundary line."""
    x, y = point
    if boundary.orientation == ORIENTATION_VERTICAL:
        return x < boundary.position
    if boundary.orientation == ORIENTATION_HORIZONTAL:
        return y < boundary.position
    raise ValueError(f"Unknown boundary orientation: {boundary.orientation!r}")


@dataclass(frozen=True)
class BoundaryTrackerConfig:
    """
    Attributes:
        boundary: The virtual line.
        cooldown_ms: Time after a crossing event during which the label cannot fire again.
    """
    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)
    cooldown_ms: int = 3000


class BoundaryCrossingTracker(EventTracker):
    """Emits BOUNDARY_CROSSING events with a per-label cooldown."""

    def __init__(self, config: BoundaryTrackerConfig, clock: Callable[[], float] = time.monotonic):
        super().__init__(clock)
        if config.boundary.orientation not in (ORIENTATION_VERTICAL, ORIENTATION_HORIZONTAL):
            raise ValueError(f"Unknown boundary orientation: {config.boundary.orientation!r}")
        self._boundary_config = config

    @property
    def boundary(self) -> BoundaryConfig:
        return self._boundary_config.boundary

    @property
    def cooldown_s(self) -> float:
        return self._boundary_config.cooldown_ms / 1000.0

    def in_cooldown(self, label: str, now: Optional[float] = None) -> bool:
        state = self._states.get(label)
        if state is None:
            return False
        return self._cooling_down(state, self._clock() if now is None else now)

    def _cooling_down(self, state: TrackState, now: float) -> bool:
        if state.triggered_at is None:
            return False
        if now >= state.triggered_at + self.cooldown_s:
            state.triggered_at = None
            return False
        return True

    def update(self, detections: List[Detection], now: Optional[float] = None) -> List[Event]:
        if now is None:
            now = self._clock()
        events: List[Event] = []

        # One side per label per cycle, taken from its most confident box
        for label, det in best_per_label(detections).items():
            state = self._state_for(label)
            passed = is_past_boundary(det.center, self.boundary)

            if state.last_side is False and passed and not self._cooling_down(state, now):
                state.triggered_at = now
                events.append(Event(
                    label=label,
                    confidence=det.confidence,
                    kind=EventKind.BOUNDARY_CROSSING,
                    timestamp=time.time(),
                ))

            state.last_side = passed

        return events
