"""
Main application: live produce freshness monitor.

Opens the camera, runs the YOLO detector on sampled frames off the capture
thread, turns detections into debounced events and serves the annotated
stream plus event log over HTTP.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show the annotated stream in an OpenCV window
    --image: Run a single detection on an image file and exit
    --no-web: Do not start the web interface
"""

import os
import sys
import argparse
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import cv2
import uvicorn
import yaml

from detection.yolo import YoloDetector
from inference.backend import LoadError
from inference.onnx_backend import OnnxConfig, OnnxRuntimeBackend
from models.config import (
    Config,
    ORIENTATION_HORIZONTAL,
    ORIENTATION_VERTICAL,
    POLICY_BOUNDARY,
    POLICY_PRESENCE,
    VALID_LOG_LEVELS,
)
from notifications.sink import CompositeSink, EventLog, LoggingSink
from ops.logging import setup_logging
from pipeline.engine import PipelineEngine, create_engine_from_config
from web.app import create_app


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge `override` into `base` in place, section by section."""
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _config_layers(config_path: str) -> List[str]:
    """default.yaml, then config.yaml, then the explicit path, each present at most once."""
    config_dir = os.path.dirname(config_path)
    layers: List[str] = []
    for path in (
        os.path.join(config_dir, "default.yaml"),
        os.path.join(config_dir, "config.yaml"),
        config_path,
    ):
        if os.path.exists(path) and os.path.abspath(path) not in map(os.path.abspath, layers):
            layers.append(path)
    return layers


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load the layered configuration next to `config_path`.

    Later layers override earlier ones key by key. Exits the process if a
    layer cannot be read or parsed.
    """
    merged: Dict[str, Any] = {}
    try:
        for path in _config_layers(config_path):
            with open(path, "r") as f:
                _deep_merge(merged, yaml.safe_load(f) or {})
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    device_id = camera.get('device_id', 0)
    if not isinstance(device_id, (int, str)) or isinstance(device_id, bool):
        return False, "camera.device_id must be an integer (index) or string (file path)"
    if isinstance(device_id, int) and device_id < 0:
        return False, "camera.device_id integer must be non-negative"
    resolution = camera.get('resolution', [860, 574])
    if not isinstance(resolution, list) or len(resolution) != 2:
        return False, "camera.resolution must be a list of [width, height]"
    if not all(isinstance(x, int) and x > 0 for x in resolution):
        return False, "camera.resolution values must be positive integers"

    # Detection
    detection = config.get('detection') or {}
    if not isinstance(detection.get('model'), str) or not detection.get('model'):
        return False, "detection.model is required"
    for key in ('conf_threshold', 'iou_threshold'):
        if key in detection:
            value = detection[key]
            if not _is_number(value) or not (0 < value <= 1):
                return False, f"detection.{key} must be between 0 and 1"
    input_size = detection.get('input_size', [640, 640])
    if not isinstance(input_size, list) or len(input_size) != 2 or not all(
        isinstance(x, int) and x > 0 for x in input_size
    ):
        return False, "detection.input_size must be a list of two positive integers"

    # Tracking
    tracking = config.get('tracking') or {}
    policy = tracking.get('policy', POLICY_PRESENCE)
    if policy not in (POLICY_PRESENCE, POLICY_BOUNDARY):
        return False, f"tracking.policy must be one of: {POLICY_PRESENCE}, {POLICY_BOUNDARY}"
    if 'consecutive_frames' in tracking:
        cf = tracking['consecutive_frames']
        if not isinstance(cf, int) or cf <= 0:
            return False, "tracking.consecutive_frames must be a positive integer"
    if 'cooldown_ms' in tracking:
        cd = tracking['cooldown_ms']
        if not isinstance(cd, int) or cd < 0:
            return False, "tracking.cooldown_ms must be a non-negative integer"
    boundary = tracking.get('boundary') or {}
    if boundary.get('orientation', ORIENTATION_VERTICAL) not in (ORIENTATION_VERTICAL, ORIENTATION_HORIZONTAL):
        return False, "tracking.boundary.orientation must be one of: vertical, horizontal"
    if 'position' in boundary and not _is_number(boundary['position']):
        return False, "tracking.boundary.position must be a number"

    # Pipeline
    pipeline = config.get('pipeline') or {}
    if 'frame_skip' in pipeline:
        fs = pipeline['frame_skip']
        if not isinstance(fs, int) or fs < 1:
            return False, "pipeline.frame_skip must be an integer >= 1"

    if 'event_log_size' in config:
        size = config['event_log_size']
        if not isinstance(size, int) or size <= 0:
            return False, "event_log_size must be a positive integer"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def build_detector(config: Config) -> YoloDetector:
    """
    Load the model and wrap it in the detector.

    Raises:
        LoadError: If the model cannot be loaded.
    """
    backend = OnnxRuntimeBackend(
        OnnxConfig(model=config.detection.model, providers=config.detection.providers)
    )
    return YoloDetector(backend, config.detection)


def run_image(detector: YoloDetector, image_path: str) -> int:
    """Detect on one image and print the results."""
    try:
        detections = detector.detect_file(image_path)
    except FileNotFoundError as e:
        logging.error(str(e))
        return 1

    print(f"\n--- Detections ({len(detections)}) ---")
    for i, det in enumerate(detections, start=1):
        print(
            f"[{i}] Class: {det.label}, Confidence: {det.confidence:.2f}, "
            f"Box: [{det.x1:.1f}, {det.y1:.1f}, {det.x2:.1f}, {det.y2:.1f}]"
        )
    print("------------------\n")
    return 0


def start_web(engine: PipelineEngine, event_log: EventLog, host: str, port: int) -> threading.Thread:
    def run_web_app():
        uvicorn.run(
            create_app(engine, event_log),
            host=host,
            port=port,
            log_level="info",
        )

    web_thread = threading.Thread(target=run_web_app, name="web", daemon=True)
    web_thread.start()
    logging.info(f"Web interface started on port {port}")
    return web_thread


def run_display(engine: PipelineEngine) -> None:
    """Poll the latest frame into an OpenCV window until 'q' or the pipeline stops."""
    last_index = None
    while engine.is_running():
        frame_data = engine.get_latest_frame()
        if frame_data is not None and frame_data.frame_index != last_index:
            last_index = frame_data.frame_index
            cv2.imshow("Produce Monitor", frame_data.frame)
        key = cv2.waitKey(15) & 0xFF
        if key == ord('q'):
            break
    cv2.destroyAllWindows()


def main(argv: Optional[List[str]] = None) -> int:
    """Main application function."""
    parser = argparse.ArgumentParser(description='Produce Monitor')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show the annotated stream in a window')
    parser.add_argument('--image', type=str, default=None,
                        help='Run detection on a single image and exit')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the web interface')
    args = parser.parse_args(argv)

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)
    logging.info("Starting Produce Monitor")

    try:
        detector = build_detector(config)
    except LoadError as e:
        logging.error(f"Model could not be loaded: {e}")
        return 1

    try:
        if args.image:
            return run_image(detector, args.image)

        event_log = EventLog(max_entries=config.event_log_size)
        sink = CompositeSink([event_log, LoggingSink()])
        engine = create_engine_from_config(config, detector, sink=sink)

        if not engine.start():
            logging.error("Camera could not be opened")
            return 1

        if config.web.enabled and not args.no_web:
            start_web(engine, event_log, config.web.host, config.web.port)

        try:
            if args.display:
                run_display(engine)
            else:
                while engine.is_running():
                    time.sleep(0.5)
        except KeyboardInterrupt:
            logging.info("Interrupted by user")
        finally:
            engine.stop()
    finally:
        detector.close()
        logging.info("Produce Monitor stopped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
