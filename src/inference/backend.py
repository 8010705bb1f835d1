"""
Inference backend interface.

Backends are opaque tensor engines: they take the preprocessed model input
and return the raw output tensor. Decoding into detections is the
detector's job.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np


class LoadError(RuntimeError):
    """The model could not be loaded."""


class BackendError(RuntimeError):
    """An inference call failed."""


class InferenceBackend(Protocol):
    def infer(self, tensor: np.ndarray) -> np.ndarray:
        ...

    def close(self) -> None:
        ...
