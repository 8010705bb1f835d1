"""
FastAPI application factory for Produce Monitor.

Routes:
- / -> dashboard page
- /api/* -> REST API (status, detections, events, frame snapshot, MJPEG stream)

The web layer is a pure consumer: it only polls the engine's published
state and the event log, and never drives the pipeline.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from notifications.sink import EventLog
from pipeline.engine import PipelineEngine
from .routes import api, pages


def create_app(engine: PipelineEngine, event_log: Optional[EventLog] = None) -> FastAPI:
    """Create the FastAPI app bound to a running engine."""
    app = FastAPI(
        title="Produce Monitor",
        version="0.1.0",
        description="Live produce freshness detection",
    )
    app.state.engine = engine
    app.state.event_log = event_log

    app.include_router(api.router, prefix="/api")
    app.include_router(pages.router)

    return app
