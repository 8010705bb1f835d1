"""
Pipeline engine for the produce monitor.

Decouples frame capture from inference:

- A capture thread reads frames at camera rate, composites the most recent
  detections, the boundary and the FPS counter onto a display copy, and
  publishes it.
- Every Nth frame is handed to a single-worker inference executor, but only
  when no inference is already in flight (single-flight). The capture loop
  never waits on the model; frames that arrive while inference is busy are
  displayed but not inferred.
- The inference task publishes its detection set and feeds the event
  tracker, whose events go to the notification sink.

The latest frame, latest detections and FPS are published as independent
slots. A reader may see detections drawn against a frame one cycle newer
than the one they were computed on, never a partially written buffer.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from algorithms.events import EventTracker, boundary_line, create_event_tracker_from_config
from detection.base import Detector
from inference.backend import BackendError
from models.config import BoundaryConfig, Config, PipelineConfig, POLICY_BOUNDARY
from models.detection import Detection
from models.event import Event
from models.frame import FrameData
from notifications.sink import NotificationSink
from observation import ObservationSource, SourceUnavailable, create_source_from_config
from .overlay import draw_boundary, draw_detections, draw_fps

INFERENCE_THREAD_PREFIX = "inference"


def _on_inference_worker() -> bool:
    return threading.current_thread().name.startswith(INFERENCE_THREAD_PREFIX)


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    inference_count: int = 0
    inference_failures: int = 0
    skipped_inferences: int = 0
    event_count: int = 0
    last_inference_ms: float = 0.0
    start_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_count": self.frame_count,
            "inference_count": self.inference_count,
            "inference_failures": self.inference_failures,
            "skipped_inferences": self.skipped_inferences,
            "event_count": self.event_count,
            "last_inference_ms": self.last_inference_ms,
            "start_time": self.start_time,
        }


class _Run:
    """Resources owned by one start() .. release cycle."""

    def __init__(self) -> None:
        self.should_run = threading.Event()
        self.should_run.set()
        self.inference_busy = threading.Event()
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=INFERENCE_THREAD_PREFIX)
        self.thread: Optional[threading.Thread] = None
        self.future: Optional[Future] = None
        self.released = False


class PipelineEngine:
    """
    Capture -> inference -> publish scheduler.

    Example:
        source = OpenCVSource(OpenCVSourceConfig(device_id=0, resolution=(860, 574)))
        engine = PipelineEngine(source, detector, tracker, PipelineConfig(), sink=event_log)
        engine.start()
        frame = engine.get_latest_frame()
        engine.stop()
    """

    def __init__(
        self,
        source: ObservationSource,
        detector: Detector,
        tracker: EventTracker,
        config: PipelineConfig,
        sink: Optional[NotificationSink] = None,
        boundary: Optional[BoundaryConfig] = None,
    ):
        if config.frame_skip < 1:
            raise ValueError("frame_skip must be >= 1")
        self.source = source
        self.detector = detector
        self.tracker = tracker
        self.config = config
        self.sink = sink
        self.boundary = boundary
        self.stats = PipelineStats()

        self._lifecycle_lock = threading.RLock()
        self._publish_lock = threading.Lock()
        self._run: Optional[_Run] = None

        self._latest_frame: Optional[FrameData] = None
        self._latest_detections: Optional[List[Detection]] = None
        self._fps = 0.0
        self._fps_window_start = time.monotonic()
        self._fps_window_frames = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Open the source and start capturing. No-op if already running.

        If a previous run is still shutting down, its capture thread is
        joined and the run released before the source is reopened.

        Returns:
            True if the pipeline is running, False if the source could not be opened.
        """
        while True:
            with self._lifecycle_lock:
                previous = self._run
                if previous is None:
                    return self._open_run()
                if previous.should_run.is_set():
                    return True

            # The old capture thread owns the source until it exits
            self._join_capture(previous)
            self._release(previous)

    def _open_run(self) -> bool:
        try:
            self.source.open()
        except SourceUnavailable as e:
            logging.error(f"Frame source unavailable, pipeline stays stopped: {e}")
            return False

        self._reset_published_state()
        self.tracker.reset()
        self.stats = PipelineStats()

        run = _Run()
        run.thread = threading.Thread(
            target=self._capture_loop, args=(run,), name="capture", daemon=True
        )
        self._run = run
        run.thread.start()

        logging.info(f"Pipeline started: source={self.source.source_id}")
        return True

    def stop(self) -> None:
        """
        Stop capturing and release the source. Idempotent; safe from any thread.

        The capture loop gets `stop_timeout_s` to exit and in-flight
        inference gets `inference_timeout_s`; anything still outstanding
        after that is abandoned. Called from the inference worker (e.g. by a
        notification sink), it only signals; the capture thread releases the
        run once the current inference returns.
        """
        with self._lifecycle_lock:
            run = self._run
            if run is None:
                return
            run.should_run.clear()

        if _on_inference_worker():
            return

        self._join_capture(run)
        self._release(run)

    def _join_capture(self, run: _Run) -> None:
        thread = run.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.config.stop_timeout_s)
            if thread.is_alive():
                logging.warning("Capture loop did not exit within the grace period")

    def is_running(self) -> bool:
        run = self._run
        return run is not None and run.should_run.is_set()

    def __enter__(self) -> "PipelineEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Published state
    # ------------------------------------------------------------------

    def get_latest_frame(self) -> Optional[FrameData]:
        """Most recent composited frame (read-only), or None before the first frame."""
        with self._publish_lock:
            return self._latest_frame

    def get_latest_detections(self) -> Optional[List[Detection]]:
        """Most recent detection set, or None before the first inference."""
        with self._publish_lock:
            if self._latest_detections is None:
                return None
            return list(self._latest_detections)

    def get_current_fps(self) -> float:
        with self._publish_lock:
            return self._fps

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.to_dict()
        stats["fps"] = self.get_current_fps()
        stats["running"] = self.is_running()
        return stats

    def _reset_published_state(self) -> None:
        with self._publish_lock:
            self._latest_frame = None
            self._latest_detections = None
            self._fps = 0.0
        self._fps_window_start = time.monotonic()
        self._fps_window_frames = 0

    # ------------------------------------------------------------------
    # Capture context
    # ------------------------------------------------------------------

    def _capture_loop(self, run: _Run) -> None:
        try:
            while run.should_run.is_set():
                frame_data = self.source.read()
                if frame_data is None:
                    logging.info("Frame source ended, stopping capture loop")
                    break

                self._process_frame(run, frame_data)

                if self.config.loop_sleep_s > 0:
                    time.sleep(self.config.loop_sleep_s)
        except Exception:
            logging.exception("Capture loop error")
        finally:
            run.should_run.clear()
            self._release(run)

    def _process_frame(self, run: _Run, frame_data: FrameData) -> None:
        """Dispatch inference if due, then composite and publish the frame."""
        self.stats.frame_count += 1

        if self.stats.frame_count % self.config.frame_skip == 0 and run.should_run.is_set():
            if run.inference_busy.is_set():
                self.stats.skipped_inferences += 1
            else:
                self._dispatch_inference(run, frame_data.frame)

        display = frame_data.frame.copy()
        draw_detections(display, self.get_latest_detections())
        if self.boundary is not None:
            draw_boundary(display, boundary_line(self.boundary, frame_data.width, frame_data.height))
        fps = self._update_fps()
        draw_fps(display, fps)

        published = frame_data.read_only(display)
        with self._publish_lock:
            if self._run is not run:
                return
            self._latest_frame = published

    def _update_fps(self) -> float:
        self._fps_window_frames += 1
        now = time.monotonic()
        elapsed_ms = (now - self._fps_window_start) * 1000.0
        if elapsed_ms >= self.config.fps_window_ms:
            fps = self._fps_window_frames * 1000.0 / elapsed_ms
            self._fps_window_frames = 0
            self._fps_window_start = now
            with self._publish_lock:
                self._fps = fps
        return self.get_current_fps()

    def _dispatch_inference(self, run: _Run, frame: np.ndarray) -> None:
        snapshot = frame.copy()
        run.inference_busy.set()
        try:
            run.future = run.executor.submit(self._run_inference, run, snapshot)
        except RuntimeError:
            # Executor already shut down
            run.inference_busy.clear()

    # ------------------------------------------------------------------
    # Inference context
    # ------------------------------------------------------------------

    def _run_inference(self, run: _Run, frame: np.ndarray) -> None:
        started = time.monotonic()
        try:
            self.stats.inference_count += 1
            detections = self.detector.detect(frame)
            self.stats.last_inference_ms = (time.monotonic() - started) * 1000.0

            if not run.should_run.is_set():
                return

            with self._publish_lock:
                self._latest_detections = detections

            for event in self.tracker.update(detections):
                self._notify(event)
        except BackendError as e:
            self.stats.inference_failures += 1
            logging.warning(f"Inference failed, keeping previous detections: {e}")
        except Exception:
            self.stats.inference_failures += 1
            logging.exception("Inference task error")
        finally:
            run.inference_busy.clear()

    def _notify(self, event: Event) -> None:
        self.stats.event_count += 1
        logging.debug(f"Event {event.kind.value}: {event.message}")
        if self.sink is None:
            return
        try:
            self.sink.publish(event.message, event.is_alert)
        except Exception as e:
            logging.warning(f"Notification sink error: {e}")

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def _release(self, run: _Run) -> None:
        """Release everything owned by `run`. Runs once per run."""
        with self._lifecycle_lock:
            if run.released:
                return
            run.released = True
            run.should_run.clear()
            future = run.future

        # A worker cannot wait on its own future
        if future is not None and not future.done() and not _on_inference_worker():
            done, _ = wait([future], timeout=self.config.inference_timeout_s)
            if not done:
                logging.warning("Inference still running after the grace period, abandoning it")
        run.executor.shutdown(wait=False, cancel_futures=True)

        with self._lifecycle_lock:
            if self._run is run:
                self._run = None
                try:
                    self.source.close()
                except Exception as e:
                    logging.warning(f"Error closing source: {e}")
                if future is None or future.done():
                    self.tracker.reset()

        logging.info(
            f"Pipeline stopped: frames={self.stats.frame_count}, "
            f"inferences={self.stats.inference_count}, events={self.stats.event_count}"
        )


def create_engine_from_config(
    config: Config,
    detector: Detector,
    sink: Optional[NotificationSink] = None,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the typed config.

    Args:
        config: Full application config.
        detector: Detector owning the inference backend.
        sink: Where tracker events are published.
    """
    source = create_source_from_config(config.camera, source_id="main-camera")
    tracker = create_event_tracker_from_config(config.tracking)
    boundary = config.tracking.boundary if config.tracking.policy == POLICY_BOUNDARY else None

    return PipelineEngine(
        source,
        detector,
        tracker,
        config.pipeline,
        sink=sink,
        boundary=boundary,
    )
