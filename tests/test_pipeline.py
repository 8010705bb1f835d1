"""
Tests for the pipeline engine.
"""

import threading
import time

import numpy as np
import pytest

from conftest import wait_until
from inference.backend import BackendError
from models.config import Config, PipelineConfig
from models.detection import BoundingBox, Detection
from models.frame import FrameData
from notifications.sink import EventLog
from observation.base import ObservationConfig, ObservationSource, SourceUnavailable
from algorithms.events import PresenceTrackerConfig, SustainedPresenceTracker
from pipeline.engine import PipelineEngine, create_engine_from_config
from pipeline.overlay import draw_detections, draw_fps


def apple(conf=0.9):
    return Detection(BoundingBox(10, 10, 30, 30), confidence=conf, class_id=0)


class MockObservationSource(ObservationSource):
    """
    Mock source for testing.

    Frame i (1-based) is filled with the value i % 256 so tests can tell
    which frames reached the detector.
    """

    def __init__(self, max_frames=None, delay=0.0, fail_open=False, read_error=None):
        super().__init__(ObservationConfig(source_id="mock"))
        self._max_frames = max_frames
        self._delay = delay
        self._fail_open = fail_open
        self._read_error = read_error
        self.open_calls = 0
        self.close_calls = 0

    def open(self) -> None:
        self.open_calls += 1
        if self._fail_open:
            raise SourceUnavailable("no camera")
        self._is_open = True
        self._frame_index = 0

    def read(self):
        if not self._is_open:
            return None
        if self._read_error is not None:
            raise self._read_error
        if self._max_frames is not None and self._frame_index >= self._max_frames:
            return None
        if self._delay:
            time.sleep(self._delay)

        self._frame_index += 1
        frame = np.full((48, 64, 3), self._frame_index % 256, dtype=np.uint8)
        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self.close_calls += 1
        self._is_open = False


class MockDetector:
    """Mock detector recording the frames it was given."""

    def __init__(self, detections=None, gate=None, errors=()):
        self.detections = detections if detections is not None else []
        self.gate = gate
        self.errors = list(errors)
        self.calls = 0
        self.seen_values = []
        self.started = threading.Event()

    def detect(self, frame):
        self.calls += 1
        self.seen_values.append(int(frame[0, 0, 0]))
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        if self.errors:
            raise self.errors.pop(0)
        return list(self.detections)

    def close(self):
        pass


class SlowSource(MockObservationSource):
    """Source whose reads block, tracking how many run at once."""

    def __init__(self, delay=0.3):
        super().__init__(delay=delay)
        self._lock = threading.Lock()
        self.active_readers = 0
        self.max_readers = 0
        self.closed_during_read = 0

    def read(self):
        with self._lock:
            self.active_readers += 1
            self.max_readers = max(self.max_readers, self.active_readers)
        try:
            return super().read()
        finally:
            with self._lock:
                self.active_readers -= 1

    def close(self) -> None:
        if self.active_readers:
            self.closed_during_read += 1
        super().close()


class ScriptedDetector:
    """Plays back detection sets and exceptions in order, then blocks on `gate`."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.gate = threading.Event()

    def detect(self, frame):
        self.calls += 1
        if not self.outcomes:
            self.gate.wait(timeout=5.0)
            return []
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        pass


class NullTracker:
    def __init__(self):
        self.updates = []
        self.resets = 0

    def update(self, detections, now=None):
        self.updates.append(detections)
        return []

    def reset(self):
        self.resets += 1


def make_engine(source=None, detector=None, tracker=None, sink=None, **pipeline_kwargs):
    pipeline_kwargs.setdefault("frame_skip", 1)
    pipeline_kwargs.setdefault("stop_timeout_s", 2.0)
    pipeline_kwargs.setdefault("inference_timeout_s", 1.0)
    return PipelineEngine(
        source or MockObservationSource(),
        detector or MockDetector(),
        tracker or NullTracker(),
        PipelineConfig(**pipeline_kwargs),
        sink=sink,
    )


class TestPipelineLifecycle:
    def test_getters_before_start(self):
        engine = make_engine()
        assert not engine.is_running()
        assert engine.get_latest_frame() is None
        assert engine.get_latest_detections() is None
        assert engine.get_current_fps() == 0.0

    def test_start_fails_when_source_unavailable(self):
        source = MockObservationSource(fail_open=True)
        engine = make_engine(source=source)

        assert engine.start() is False
        assert not engine.is_running()
        assert engine.get_latest_frame() is None
        assert engine.get_latest_detections() is None

        engine.stop()  # no-op

    def test_start_is_idempotent(self):
        source = MockObservationSource()
        engine = make_engine(source=source)
        try:
            assert engine.start() is True
            assert engine.start() is True
            assert source.open_calls == 1
            assert engine.is_running()
        finally:
            engine.stop()

    def test_stop_is_idempotent(self):
        source = MockObservationSource()
        engine = make_engine(source=source)
        engine.start()
        assert wait_until(lambda: engine.get_latest_frame() is not None)

        engine.stop()
        engine.stop()

        assert not engine.is_running()
        assert source.close_calls == 1
        assert not source.is_open

    def test_stop_before_start_is_noop(self):
        engine = make_engine()
        engine.stop()
        assert not engine.is_running()

    def test_stop_from_another_thread(self):
        engine = make_engine()
        engine.start()
        stopper = threading.Thread(target=engine.stop)
        stopper.start()
        stopper.join(timeout=5.0)
        assert not stopper.is_alive()
        assert not engine.is_running()

    def test_restart_after_stop(self):
        source = MockObservationSource()
        tracker = NullTracker()
        engine = make_engine(source=source, tracker=tracker)

        engine.start()
        assert wait_until(lambda: engine.get_latest_frame() is not None)
        engine.stop()

        assert engine.start() is True
        try:
            assert source.open_calls == 2
            assert tracker.resets >= 2
            assert wait_until(lambda: engine.get_latest_frame() is not None)
        finally:
            engine.stop()

    def test_start_while_stop_is_joining(self):
        source = SlowSource(delay=0.3)
        engine = make_engine(source=source)

        engine.start()
        assert wait_until(lambda: source.active_readers == 1)

        stopper = threading.Thread(target=engine.stop)
        stopper.start()
        assert wait_until(lambda: not engine.is_running())

        try:
            assert engine.start() is True
            stopper.join(timeout=5.0)
            assert not stopper.is_alive()

            # The old reader finished before the source was closed and reopened
            assert source.closed_during_read == 0
            assert source.close_calls == 1
            assert source.open_calls == 2
            assert wait_until(lambda: engine.get_latest_frame() is not None, timeout=5.0)
            assert source.max_readers == 1
            assert engine.is_running()
        finally:
            engine.stop()

    def test_sink_can_stop_engine_from_inference(self, caplog):
        class StoppingSink:
            def __init__(self):
                self.engine = None
                self.stop_durations = []

            def publish(self, message, is_alert):
                started = time.monotonic()
                self.engine.stop()
                self.stop_durations.append(time.monotonic() - started)

        sink = StoppingSink()
        source = MockObservationSource(delay=0.005)
        tracker = SustainedPresenceTracker(PresenceTrackerConfig(consecutive_frames=1))
        engine = make_engine(
            source=source,
            detector=MockDetector(detections=[apple()]),
            tracker=tracker,
            sink=sink,
            inference_timeout_s=2.0,
        )
        sink.engine = engine

        engine.start()

        assert wait_until(lambda: source.close_calls == 1)
        assert not engine.is_running()
        assert sink.stop_durations and sink.stop_durations[0] < 1.0
        assert "abandoning" not in caplog.text

    def test_context_manager(self):
        source = MockObservationSource()
        with make_engine(source=source) as engine:
            assert engine.is_running()
        assert not engine.is_running()
        assert not source.is_open

    def test_end_of_stream_stops_and_cleans_up(self):
        source = MockObservationSource(max_frames=5)
        engine = make_engine(source=source)

        engine.start()

        assert wait_until(lambda: not engine.is_running())
        assert wait_until(lambda: source.close_calls == 1)
        assert engine.stats.frame_count == 5
        assert engine.get_latest_frame().frame_index == 5

    def test_capture_error_stops_and_cleans_up(self):
        source = MockObservationSource(read_error=RuntimeError("device unplugged"))
        engine = make_engine(source=source)

        engine.start()

        assert wait_until(lambda: not engine.is_running())
        assert wait_until(lambda: source.close_calls == 1)

    def test_invalid_frame_skip(self):
        with pytest.raises(ValueError):
            make_engine(frame_skip=0)


class TestPipelineScheduling:
    def test_single_flight_while_inference_blocked(self):
        gate = threading.Event()
        detector = MockDetector(gate=gate)
        engine = make_engine(detector=detector)

        engine.start()
        try:
            assert detector.started.wait(timeout=3.0)
            assert wait_until(lambda: engine.stats.frame_count >= 20)

            # Capture kept going while the one inference was blocked
            assert detector.calls == 1
            assert engine.stats.skipped_inferences > 0

            gate.set()
            assert wait_until(lambda: detector.calls >= 2)
        finally:
            gate.set()
            engine.stop()

    def test_frame_skip_selects_every_nth_frame(self):
        detector = MockDetector()
        source = MockObservationSource(max_frames=10, delay=0.02)
        engine = make_engine(source=source, detector=detector, frame_skip=5)

        engine.start()

        # Source is closed only after the last inference has been waited on
        assert wait_until(lambda: source.close_calls == 1)
        assert detector.seen_values == [5, 10]

    def test_detections_published(self):
        detector = MockDetector(detections=[apple()])
        source = MockObservationSource(delay=0.005)
        engine = make_engine(source=source, detector=detector)

        engine.start()
        try:
            assert wait_until(lambda: engine.get_latest_detections() is not None)
            latest = engine.get_latest_detections()
            assert latest == [apple()]

            # Callers get their own list
            latest.clear()
            assert engine.get_latest_detections() == [apple()]
        finally:
            engine.stop()

    def test_backend_failure_does_not_stop_capture(self):
        detector = MockDetector(detections=[apple()], errors=[BackendError("boom")])
        source = MockObservationSource(delay=0.005)
        engine = make_engine(source=source, detector=detector)

        engine.start()
        try:
            assert wait_until(lambda: engine.get_latest_detections() is not None)
            assert engine.is_running()
            assert engine.stats.inference_failures == 1
        finally:
            engine.stop()

    def test_backend_failure_keeps_previous_detections(self):
        detector = ScriptedDetector([[apple()], BackendError("boom")])
        source = MockObservationSource(delay=0.005)
        engine = make_engine(source=source, detector=detector)

        engine.start()
        try:
            assert wait_until(lambda: engine.stats.inference_failures == 1)
            assert detector.calls >= 2
            assert engine.get_latest_detections() == [apple()]
            assert engine.is_running()
        finally:
            detector.gate.set()
            engine.stop()

    def test_unexpected_detector_error_does_not_stop_capture(self):
        detector = MockDetector(detections=[], errors=[ValueError("bad tensor")])
        source = MockObservationSource(delay=0.005)
        engine = make_engine(source=source, detector=detector)

        engine.start()
        try:
            assert wait_until(lambda: detector.calls >= 3)
            assert engine.is_running()
            assert engine.stats.inference_failures == 1
        finally:
            engine.stop()

    def test_events_reach_sink(self):
        event_log = EventLog(max_entries=10)
        tracker = SustainedPresenceTracker(PresenceTrackerConfig(consecutive_frames=2))
        detector = MockDetector(detections=[apple(0.9)])
        source = MockObservationSource(delay=0.005)
        engine = make_engine(source=source, detector=detector, tracker=tracker, sink=event_log)

        engine.start()
        try:
            assert wait_until(lambda: len(event_log) >= 1)
        finally:
            engine.stop()

        entry = event_log.entries()[0]
        assert entry.message == "Class: fresh apple, Confidence: 0.90"
        assert entry.is_alert is False
        assert engine.stats.event_count >= 1

    def test_failing_sink_does_not_stop_pipeline(self):
        class BrokenSink:
            def __init__(self):
                self.calls = 0

            def publish(self, message, is_alert):
                self.calls += 1
                raise RuntimeError("sink down")

        sink = BrokenSink()
        tracker = SustainedPresenceTracker(PresenceTrackerConfig(consecutive_frames=1))
        detector = MockDetector(detections=[apple()])
        source = MockObservationSource(delay=0.005)
        engine = make_engine(source=source, detector=detector, tracker=tracker, sink=sink)

        engine.start()
        try:
            assert wait_until(lambda: sink.calls >= 2)
            assert engine.is_running()
        finally:
            engine.stop()


class TestPublishedFrame:
    def test_published_frame_is_read_only_copy(self):
        source = MockObservationSource(max_frames=3)
        engine = make_engine(source=source)

        engine.start()
        assert wait_until(lambda: not engine.is_running())

        frame_data = engine.get_latest_frame()
        assert frame_data.is_read_only
        with pytest.raises(ValueError):
            frame_data.frame[0, 0, 0] = 1
        assert frame_data.size == (64, 48)

    def test_fps_is_measured(self):
        source = MockObservationSource(delay=0.002)
        engine = make_engine(source=source, fps_window_ms=50)

        engine.start()
        try:
            assert wait_until(lambda: engine.get_current_fps() > 0)
        finally:
            engine.stop()

    def test_stats_snapshot(self):
        engine = make_engine()
        stats = engine.get_stats()
        assert stats["running"] is False
        assert stats["fps"] == 0.0
        assert stats["frame_count"] == 0


class TestOverlay:
    def test_draw_detections_marks_frame(self):
        frame = np.zeros((100, 100, 3), dtype=np.uint8)
        draw_detections(frame, [apple()])
        assert frame.any()

    def test_draw_detections_none_is_noop(self):
        frame = np.zeros((100, 100, 3), dtype=np.uint8)
        draw_detections(frame, None)
        assert not frame.any()

    def test_draw_fps(self):
        frame = np.zeros((100, 200, 3), dtype=np.uint8)
        draw_fps(frame, 29.97)
        assert frame.any()


class TestCreateEngineFromConfig:
    def test_presence_policy_has_no_boundary_overlay(self):
        engine = create_engine_from_config(Config(), MockDetector())
        assert engine.boundary is None
        assert engine.source.source_id == "main-camera"
        assert isinstance(engine.tracker, SustainedPresenceTracker)
        assert engine.config.frame_skip == 2

    def test_boundary_policy_draws_boundary(self):
        config = Config.from_dict({
            "camera": {"device_id": 0},
            "tracking": {"policy": "boundary", "boundary": {"orientation": "horizontal", "position": 200}},
        })
        engine = create_engine_from_config(config, MockDetector())
        assert engine.boundary is not None
        assert engine.boundary.position == 200
