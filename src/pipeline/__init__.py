"""
Pipeline module for the produce monitor.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Single-flight inference off the capture thread
- Event tracking and notification
- Publishing the annotated frame for display
"""

from .engine import PipelineEngine, PipelineStats, create_engine_from_config
from .overlay import draw_boundary, draw_detections, draw_fps

__all__ = [
    "PipelineEngine",
    "PipelineStats",
    "create_engine_from_config",
    "draw_boundary",
    "draw_detections",
    "draw_fps",
]
