from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    running: bool
    fps: float
    frame_index: Optional[int] = Field(None, description="Sequence number of the latest published frame")
    last_frame_age: Optional[float] = Field(None, description="Seconds since the latest frame was captured")
    frame_count: int
    inference_count: int
    inference_failures: int
    event_count: int
    last_inference_ms: float


class DetectionModel(BaseModel):
    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float
    class_id: int
    label: str


class DetectionsResponse(BaseModel):
    available: bool
    detections: List[DetectionModel]


class EventLogEntry(BaseModel):
    message: str
    is_alert: bool
    timestamp: float


class EventsResponse(BaseModel):
    max_entries: int
    events: List[EventLogEntry]
