"""
OpenCV-based observation source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- Video files (device_id as file path)
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2

from models.config import CameraConfig
from models.frame import FrameData
from .base import ObservationConfig, ObservationSource, SourceUnavailable


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int) or video file path (str).
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
    """
    device_id: Union[int, str] = 0
    buffer_size: int = 1

    @classmethod
    def from_camera_config(
        cls,
        camera_cfg: Union[CameraConfig, Dict[str, Any]],
        source_id: str = "camera",
    ) -> "OpenCVSourceConfig":
        """
        Adapter: Create OpenCVSourceConfig from the camera config section.

        Args:
            camera_cfg: CameraConfig or raw camera dict (from config.yaml).
            source_id: Identifier for this source.
        """
        if not isinstance(camera_cfg, CameraConfig):
            camera_cfg = CameraConfig.from_dict(camera_cfg or {})

        return cls(
            source_id=source_id,
            resolution=tuple(camera_cfg.resolution) if camera_cfg.resolution else None,
            fps=camera_cfg.fps,
            device_id=camera_cfg.device_id,
        )


class OpenCVSource(ObservationSource):
    """
    OpenCV-based observation source for cameras and video files.

    The requested resolution is best-effort: the negotiated size is logged
    and every FrameData carries the real dimensions.
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        """Check if this is a video file."""
        return isinstance(self.device_id, str) and os.path.exists(self.device_id)

    def open(self) -> None:
        """Open the video source."""
        if self._is_open:
            return

        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            raise SourceUnavailable(f"Failed to open device {self.device_id}")

        if isinstance(self.device_id, int) and self._opencv_config.resolution:
            w, h = self._opencv_config.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._opencv_config.fps:
                cap.set(cv2.CAP_PROP_FPS, self._opencv_config.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, self._opencv_config.buffer_size)

            actual_w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
            actual_h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
            logging.info(
                f"Camera negotiated resolution ({actual_w}x{actual_h}), requested ({w}x{h})"
            )

        self._cap = cap
        self._is_open = True
        self._frame_index = 0
        logging.info(f"OpenCVSource opened: source_id={self.source_id}, device={self.device_id}")

    def read(self) -> Optional[FrameData]:
        """Read the next frame; None on end of stream or failure."""
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None or frame.size == 0:
            if self.is_file:
                logging.info("End of video file reached")
            else:
                logging.warning(f"Failed to read frame from device {self.device_id}")
            return None

        self._frame_index += 1
        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        """Close the video source and release resources."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False


def create_source_from_config(
    camera_cfg: Union[CameraConfig, Dict[str, Any]],
    source_id: str = "camera",
) -> OpenCVSource:
    """Factory: build the frame source described by the camera section."""
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id))
