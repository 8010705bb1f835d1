"""
Event tracking policies.

Trackers turn per-cycle detection sets into discrete events:
- SustainedPresenceTracker: a label persists for N consecutive cycles
- BoundaryCrossingTracker: a label crosses a virtual line (with cooldown)

Only one policy runs per deployment, selected by tracking.policy.
"""

from __future__ import annotations

from typing import Any, Dict, Union

from models.config import POLICY_BOUNDARY, POLICY_PRESENCE, TrackingConfig
from .base import EventTracker, TrackState
from .boundary import BoundaryCrossingTracker, BoundaryTrackerConfig, is_past_boundary
from .presence import PresenceTrackerConfig, SustainedPresenceTracker
from .utils import boundary_line


def create_event_tracker_from_config(tracking_cfg: Union[TrackingConfig, Dict[str, Any]]) -> EventTracker:
    """
    Factory function to create the configured EventTracker.

    Args:
        tracking_cfg: TrackingConfig or the raw `tracking` section from YAML.
    """
    if not isinstance(tracking_cfg, TrackingConfig):
        tracking_cfg = TrackingConfig.from_dict(tracking_cfg or {})

    if tracking_cfg.policy == POLICY_PRESENCE:
        return SustainedPresenceTracker(
            PresenceTrackerConfig(consecutive_frames=tracking_cfg.consecutive_frames)
        )
    if tracking_cfg.policy == POLICY_BOUNDARY:
        return BoundaryCrossingTracker(
            BoundaryTrackerConfig(
                boundary=tracking_cfg.boundary,
                cooldown_ms=tracking_cfg.cooldown_ms,
            )
        )
    raise ValueError(f"Unknown tracking policy: {tracking_cfg.policy!r}")


__all__ = [
    "EventTracker",
    "TrackState",
    "SustainedPresenceTracker",
    "PresenceTrackerConfig",
    "BoundaryCrossingTracker",
    "BoundaryTrackerConfig",
    "is_past_boundary",
    "boundary_line",
    "create_event_tracker_from_config",
]
