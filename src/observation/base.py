"""
ObservationSource interface for pluggable frame sources.

The pipeline reads frames through this contract so a USB camera, a video
file, or a test fake can stand behind it interchangeably.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from models.frame import FrameData


class SourceUnavailable(RuntimeError):
    """The capture device or file could not be opened."""


@dataclass
class ObservationConfig:
    """
    Settings shared by every source.

    Attributes:
        source_id: Unique identifier for this source (e.g., "main-camera").
        resolution: Requested resolution as (width, height). None = use source default.
        fps: Requested frames per second. None = use source default.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None


class ObservationSource(ABC):
    """
    A frame source: open() once, read() until it returns None, close().

    The pipeline owns the source while it runs and is the only caller of
    read(), always from the capture thread.

    Example:
        with OpenCVSource(OpenCVSourceConfig(device_id="videos/belt.mp4")) as source:
            for frame_data in source:
                detector.detect(frame_data.frame)
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Frames read since open()."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the device or file.

        Raises:
            SourceUnavailable: If the source cannot be opened.
        """
        pass

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """
        Grab the next frame.

        Returns:
            FrameData, or None at end of stream or on a read failure.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release the observation source. Safe to call multiple times.
        """
        pass

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        """Yield frames until the source is exhausted. The source must be open."""
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            frame_data = self.read()
            if frame_data is None:
                break
            yield frame_data
