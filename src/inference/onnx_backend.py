"""
ONNX Runtime inference backend.

Runs an exported YOLOv8 model on CPU by default; other execution providers
(CUDA, TensorRT, ...) can be listed in detection.providers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import onnxruntime as ort

from .backend import BackendError, InferenceBackend, LoadError


@dataclass(frozen=True)
class OnnxConfig:
    model: str
    providers: Sequence[str] = ("CPUExecutionProvider",)


class OnnxRuntimeBackend(InferenceBackend):
    def __init__(self, cfg: OnnxConfig):
        self.cfg = cfg
        try:
            self._session: Optional[ort.InferenceSession] = ort.InferenceSession(
                cfg.model, providers=list(cfg.providers)
            )
        except Exception as e:
            raise LoadError(f"Failed to load model {cfg.model}: {e}") from e

        model_input = self._session.get_inputs()[0]
        self.input_name: str = model_input.name
        self.input_shape: List[object] = list(model_input.shape)
        logging.info(
            f"Model loaded: {cfg.model} provider={self._session.get_providers()[0]} "
            f"input={self.input_name}{self.input_shape}"
        )

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        if self._session is None:
            raise BackendError("Inference session is closed")
        try:
            outputs = self._session.run(None, {self.input_name: tensor})
        except Exception as e:
            raise BackendError(f"Inference failed: {e}") from e
        if not outputs:
            raise BackendError("Model returned no outputs")
        return np.asarray(outputs[0])

    def close(self) -> None:
        # onnxruntime frees the session when the last reference goes away
        self._session = None

    def __enter__(self) -> "OnnxRuntimeBackend":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
