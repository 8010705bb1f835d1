"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import time

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


def wait_until(predicate, timeout: float = 3.0, interval: float = 0.005) -> bool:
    """Poll `predicate` until it is truthy or `timeout` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  device_id: 0
  resolution: [860, 574]

detection:
  model: "models/best.onnx"
  conf_threshold: 0.25
  iou_threshold: 0.45

tracking:
  policy: "presence"
  consecutive_frames: 30

pipeline:
  frame_skip: 2

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "device_id": 0,
            "resolution": [860, 574],
        },
        "detection": {
            "model": "models/best.onnx",
            "input_size": [640, 640],
            "conf_threshold": 0.25,
            "iou_threshold": 0.45,
        },
        "tracking": {
            "policy": "presence",
            "consecutive_frames": 30,
            "cooldown_ms": 3000,
            "boundary": {"orientation": "vertical", "position": 430},
        },
        "pipeline": {
            "frame_skip": 2,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
