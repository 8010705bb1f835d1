from __future__ import annotations

import time
from typing import Iterator, Optional

import cv2
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response, StreamingResponse

from models.frame import FrameData
from notifications.sink import EventLog
from pipeline.engine import PipelineEngine
from ..api_models import DetectionsResponse, EventsResponse, StatusResponse

router = APIRouter()


def _engine(request: Request) -> PipelineEngine:
    return request.app.state.engine


def _event_log(request: Request) -> Optional[EventLog]:
    return getattr(request.app.state, "event_log", None)


def _encode_jpeg(frame_data: FrameData) -> bytes:
    ok, buf = cv2.imencode(".jpg", frame_data.frame)
    if not ok:
        raise RuntimeError("Failed to encode JPEG")
    return buf.tobytes()


@router.get("/status", response_model=StatusResponse)
def status(request: Request):
    """
    Pipeline status for the UI.
    Fields:
    - running: whether the capture loop is active
    - fps: frames displayed per second over the last window
    - frame_index / last_frame_age: freshness of the latest published frame (None before the first frame)
    - counters from the engine statistics
    """
    engine = _engine(request)
    stats = engine.get_stats()
    frame_data = engine.get_latest_frame()

    return {
        "running": stats["running"],
        "fps": stats["fps"],
        "frame_index": frame_data.frame_index if frame_data else None,
        "last_frame_age": time.time() - frame_data.timestamp if frame_data else None,
        "frame_count": stats["frame_count"],
        "inference_count": stats["inference_count"],
        "inference_failures": stats["inference_failures"],
        "event_count": stats["event_count"],
        "last_inference_ms": stats["last_inference_ms"],
    }


@router.get("/detections", response_model=DetectionsResponse)
def detections(request: Request):
    latest = _engine(request).get_latest_detections()
    return {
        "available": latest is not None,
        "detections": [d.to_dict() for d in latest or []],
    }


@router.get("/events", response_model=EventsResponse)
def events(request: Request):
    event_log = _event_log(request)
    if event_log is None:
        return {"max_entries": 0, "events": []}
    return {
        "max_entries": event_log.max_entries,
        "events": [e.to_dict() for e in event_log.entries()],
    }


@router.get("/frame.jpg")
def frame_snapshot(request: Request):
    frame_data = _engine(request).get_latest_frame()
    if frame_data is None:
        raise HTTPException(status_code=503, detail="No frame available yet")
    try:
        jpeg_bytes = _encode_jpeg(frame_data)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(content=jpeg_bytes, media_type="image/jpeg", headers={"Cache-Control": "no-store"})


@router.get("/stream.mjpg")
def frame_stream(request: Request, fps: int = 10):
    """
    Stream MJPEG by polling the latest published frame.
    Only frames with a new sequence number are sent.
    """
    engine = _engine(request)
    fps = max(1, min(30, int(fps)))
    delay = 1.0 / fps

    def gen() -> Iterator[bytes]:
        last_index = None
        while engine.is_running() or engine.get_latest_frame() is not None:
            frame_data = engine.get_latest_frame()
            if frame_data is None or frame_data.frame_index == last_index:
                if not engine.is_running():
                    break
                time.sleep(delay)
                continue
            last_index = frame_data.frame_index
            try:
                jpg = _encode_jpeg(frame_data)
            except RuntimeError:
                time.sleep(delay)
                continue
            yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpg + b"\r\n"
            time.sleep(delay)

    return StreamingResponse(gen(), media_type="multipart/x-mixed-replace; boundary=frame")
