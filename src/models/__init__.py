"""
Typed models for the produce monitor application.
"""

from .frame import FrameData
from .detection import Detection, BoundingBox
from .event import Event, EventKind
from .labels import CLASS_NAMES, UNKNOWN_LABEL, class_label, is_alert_label
from .config import (
    Config,
    CameraConfig,
    DetectorConfig,
    BoundaryConfig,
    TrackingConfig,
    PipelineConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "Detection",
    "BoundingBox",
    # Events
    "Event",
    "EventKind",
    # Class table
    "CLASS_NAMES",
    "UNKNOWN_LABEL",
    "class_label",
    "is_alert_label",
    # Config
    "Config",
    "CameraConfig",
    "DetectorConfig",
    "BoundaryConfig",
    "TrackingConfig",
    "PipelineConfig",
    "WebConfig",
]
