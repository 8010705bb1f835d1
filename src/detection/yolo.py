"""
YOLOv8 detector: tensor pre/post-processing around an opaque backend.

Preprocessing:  BGR frame -> resize to model input -> RGB -> [0, 1] float
                -> planar [1, 3, H, W] tensor.
Postprocessing: [1, 4 + C, D] output -> per-candidate rows [D, 4 + C]
                -> argmax class + confidence threshold -> center-form box in
                model pixels to corner-form box in frame pixels -> NMS.
"""

from __future__ import annotations

import logging
from typing import List

import cv2
import numpy as np

from algorithms.nms import decode_boxes, non_max_suppression
from inference.backend import BackendError, InferenceBackend
from models.config import DetectorConfig
from models.detection import Detection
from .base import Detector


class YoloDetector(Detector):
    """
    Stateless apart from the fixed thresholds and model input shape; the
    same frame always yields the same detections.

    Example:
        backend = OnnxRuntimeBackend(OnnxConfig(model="models/best.onnx"))
        detector = YoloDetector(backend, DetectorConfig())
        detections = detector.detect(frame)
    """

    def __init__(self, backend: InferenceBackend, config: DetectorConfig):
        self.backend = backend
        self.cfg = config

    @property
    def input_size(self):
        """Model input as (width, height)."""
        return (self.cfg.input_width, self.cfg.input_height)

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """Convert a BGR frame into the model input tensor."""
        resized = cv2.resize(frame, self.input_size)
        if resized.ndim == 2:
            rgb = cv2.cvtColor(resized, cv2.COLOR_GRAY2RGB)
        elif resized.shape[2] == 4:
            rgb = cv2.cvtColor(resized, cv2.COLOR_BGRA2RGB)
        else:
            rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

        blob = rgb.astype(np.float32) / 255.0
        blob = blob.transpose(2, 0, 1)[np.newaxis, ...]
        return np.ascontiguousarray(blob)

    def postprocess(self, output: np.ndarray, frame_width: int, frame_height: int) -> List[Detection]:
        """
        Decode, threshold and de-duplicate raw model output.

        Args:
            output: Raw output tensor, [1, 4 + C, D] (or [4 + C, D]).
            frame_width: Width of the frame the tensor was built from.
            frame_height: Height of the frame the tensor was built from.
        """
        out = np.asarray(output)
        if out.ndim == 3 and out.shape[0] == 1:
            out = out[0]
        if out.ndim != 2 or out.shape[0] <= 4:
            raise BackendError(f"Unexpected model output shape: {np.shape(output)}")

        preds = out.T
        if preds.shape[0] == 0:
            return []

        scores = preds[:, 4:]
        class_ids = np.argmax(scores, axis=1)
        confidences = scores[np.arange(len(scores)), class_ids]

        keep = confidences > self.cfg.conf_threshold
        if not np.any(keep):
            return []

        scale_x = frame_width / self.cfg.input_width
        scale_y = frame_height / self.cfg.input_height
        boxes = decode_boxes(preds[keep, :4], scale_x, scale_y)

        candidates: List[Detection] = []
        for (x1, y1, x2, y2), conf, cls in zip(boxes, confidences[keep], class_ids[keep]):
            if x2 <= x1 or y2 <= y1:
                continue
            candidates.append(
                Detection.from_xyxy(
                    x1=float(x1),
                    y1=float(y1),
                    x2=float(x2),
                    y2=float(y2),
                    confidence=float(conf),
                    class_id=int(cls),
                )
            )

        return non_max_suppression(candidates, self.cfg.iou_threshold)

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """
        Run the model on one frame.

        Raises:
            BackendError: If the inference backend fails. No retry is attempted.
        """
        frame_height, frame_width = frame.shape[:2]
        tensor = self.preprocess(frame)
        output = self.backend.infer(tensor)
        return self.postprocess(output, frame_width, frame_height)

    def detect_file(self, image_path: str) -> List[Detection]:
        """Load an image from disk and run detect() on it."""
        image = cv2.imread(image_path)
        if image is None:
            raise FileNotFoundError(f"Could not read image: {image_path}")
        logging.debug(f"Detecting on image {image_path} ({image.shape[1]}x{image.shape[0]})")
        return self.detect(image)

    def close(self) -> None:
        self.backend.close()
