"""
Typed configuration models matching the YAML config structure.

All sections are frozen: configuration is fixed at construction time and
never mutated while the pipeline runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


ORIENTATION_VERTICAL = "vertical"
ORIENTATION_HORIZONTAL = "horizontal"

POLICY_PRESENCE = "presence"
POLICY_BOUNDARY = "boundary"


@dataclass(frozen=True)
class CameraConfig:
    """Camera configuration."""
    device_id: Union[int, str] = 0
    resolution: Tuple[int, int] = (860, 574)
    fps: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            device_id=d.get("device_id", 0),
            resolution=tuple(d.get("resolution", [860, 574])),
            fps=d.get("fps"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "device_id": self.device_id,
            "resolution": list(self.resolution),
        }
        if self.fps is not None:
            d["fps"] = self.fps
        return d


@dataclass(frozen=True)
class DetectorConfig:
    """YOLO detector configuration."""
    model: str = "models/best.onnx"
    input_width: int = 640
    input_height: int = 640
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    providers: Tuple[str, ...] = ("CPUExecutionProvider",)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        input_size = d.get("input_size", [640, 640])
        return cls(
            model=d.get("model", "models/best.onnx"),
            input_width=int(input_size[0]),
            input_height=int(input_size[1]),
            conf_threshold=float(d.get("conf_threshold", 0.25)),
            iou_threshold=float(d.get("iou_threshold", 0.45)),
            providers=tuple(d.get("providers", ["CPUExecutionProvider"])),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "input_size": [self.input_width, self.input_height],
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
            "providers": list(self.providers),
        }


@dataclass(frozen=True)
class BoundaryConfig:
    """
    Virtual boundary line.

    Attributes:
        orientation: "vertical" (line at x=position) or "horizontal" (line at y=position).
        position: Line coordinate in frame pixels.
    """
    orientation: str = ORIENTATION_VERTICAL
    position: float = 430.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BoundaryConfig":
        return cls(
            orientation=d.get("orientation", ORIENTATION_VERTICAL),
            position=float(d.get("position", 430.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orientation": self.orientation,
            "position": self.position,
        }


@dataclass(frozen=True)
class TrackingConfig:
    """Event tracking policy configuration."""
    policy: str = POLICY_PRESENCE
    consecutive_frames: int = 30
    cooldown_ms: int = 3000
    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrackingConfig":
        return cls(
            policy=d.get("policy", POLICY_PRESENCE),
            consecutive_frames=int(d.get("consecutive_frames", 30)),
            cooldown_ms=int(d.get("cooldown_ms", 3000)),
            boundary=BoundaryConfig.from_dict(d.get("boundary") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy,
            "consecutive_frames": self.consecutive_frames,
            "cooldown_ms": self.cooldown_ms,
            "boundary": self.boundary.to_dict(),
        }


@dataclass(frozen=True)
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        frame_skip: Run inference on every Nth captured frame.
        loop_sleep_s: Voluntary yield between capture iterations.
        fps_window_ms: Window over which the display FPS is recomputed.
        stop_timeout_s: Grace period for the capture loop to exit on stop().
        inference_timeout_s: Grace period for in-flight inference on shutdown.
    """
    frame_skip: int = 2
    loop_sleep_s: float = 0.001
    fps_window_ms: int = 1000
    stop_timeout_s: float = 2.0
    inference_timeout_s: float = 1.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineConfig":
        return cls(
            frame_skip=int(d.get("frame_skip", 2)),
            loop_sleep_s=float(d.get("loop_sleep_s", 0.001)),
            fps_window_ms=int(d.get("fps_window_ms", 1000)),
            stop_timeout_s=float(d.get("stop_timeout_s", 2.0)),
            inference_timeout_s=float(d.get("inference_timeout_s", 1.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_skip": self.frame_skip,
            "loop_sleep_s": self.loop_sleep_s,
            "fps_window_ms": self.fps_window_ms,
            "stop_timeout_s": self.stop_timeout_s,
            "inference_timeout_s": self.inference_timeout_s,
        }


@dataclass(frozen=True)
class WebConfig:
    """Web preview configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=bool(d.get("enabled", True)),
            host=d.get("host", "0.0.0.0"),
            port=int(d.get("port", 5000)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectorConfig = field(default_factory=DetectorConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    web: WebConfig = field(default_factory=WebConfig)
    event_log_size: int = 10
    log_path: str = "logs/produce_monitor.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            detection=DetectorConfig.from_dict(d.get("detection") or {}),
            tracking=TrackingConfig.from_dict(d.get("tracking") or {}),
            pipeline=PipelineConfig.from_dict(d.get("pipeline") or {}),
            web=WebConfig.from_dict(d.get("web") or {}),
            event_log_size=int(d.get("event_log_size", 10)),
            log_path=d.get("log_path", "logs/produce_monitor.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "tracking": self.tracking.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "web": self.web.to_dict(),
            "event_log_size": self.event_log_size,
            "log_path": self.log_path,
            "log_level": self.log_level,
        }


VALID_LOG_LEVELS: List[str] = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
