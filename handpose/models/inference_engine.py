"""
Inference engine capability and its ONNX Runtime backend.

The pipeline only needs ``run(tensor) -> [tensors]`` on a fixed-size
input. Backends are selected once at startup by name; business logic
never branches on which one is active.
"""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import onnxruntime as ort

from handpose.core.errors import ModelLoadError

logger = logging.getLogger(__name__)


@dataclass
class InferenceConfig:
    """Backend selection and session tuning."""
    backend: str = "onnxruntime"
    device: str = "cpu"  # cpu | cuda
    intra_op_threads: int = 2

    @classmethod
    def from_dict(cls, d: dict) -> "InferenceConfig":
        return cls(
            backend=d.get("backend", "onnxruntime"),
            device=d.get("device", "cpu"),
            intra_op_threads=d.get("intra_op_threads", 2),
        )


class InferenceEngine(ABC):
    """Maps one fixed-shape input tensor to a list of output tensors."""

    @property
    @abstractmethod
    def input_name(self) -> str:
        """Name of the single model input."""

    @property
    @abstractmethod
    def input_shape(self) -> Tuple:
        """Declared input shape; symbolic dimensions may be strings or None."""

    @property
    @abstractmethod
    def output_names(self) -> List[str]:
        """Names of the model outputs, in order."""

    @abstractmethod
    def run(self, tensor: np.ndarray) -> List[np.ndarray]:
        """Run inference on a single batch."""

    def describe(self) -> Dict[str, object]:
        """Summary of the model interface for logging and tooling."""
        return {
            "input": {"name": self.input_name, "shape": list(self.input_shape)},
            "outputs": list(self.output_names),
        }

    def close(self) -> None:
        """Release backend resources."""


class OnnxRuntimeEngine(InferenceEngine):
    """ONNX Runtime session wrapper.

    Example:
        >>> engine = OnnxRuntimeEngine("models/palm.onnx")
        >>> boxes, scores = engine.run(np.zeros((1, 192, 192, 3), np.float32))
    """

    def __init__(self, model_path: str, config: InferenceConfig = None):
        """Load an ONNX model.

        Raises:
            ModelLoadError: file missing or session construction failed
        """
        self._config = config or InferenceConfig()
        self._model_path = model_path

        if not os.path.isfile(model_path):
            raise ModelLoadError("ONNX model not found: %s" % model_path)

        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        options.intra_op_num_threads = self._config.intra_op_threads

        providers = ["CPUExecutionProvider"]
        if self._config.device == "cuda":
            providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]

        try:
            self._session = ort.InferenceSession(model_path, sess_options=options, providers=providers)
        except Exception as e:
            raise ModelLoadError("Failed to load ONNX session from %s: %s" % (model_path, e)) from e

        inputs = self._session.get_inputs()
        if len(inputs) != 1:
            raise ModelLoadError("Expected a single model input, %s has %d" % (model_path, len(inputs)))
        self._input = inputs[0]
        self._output_names = [o.name for o in self._session.get_outputs()]

        logger.info(
            "ONNX model loaded: %s (input %s %s, %d outputs, providers=%s)",
            model_path, self._input.name, self._input.shape,
            len(self._output_names), self._session.get_providers(),
        )

    @property
    def input_name(self) -> str:
        return self._input.name

    @property
    def input_shape(self) -> Tuple:
        return tuple(self._input.shape)

    @property
    def output_names(self) -> List[str]:
        return list(self._output_names)

    def run(self, tensor: np.ndarray) -> List[np.ndarray]:
        tensor = np.ascontiguousarray(tensor, dtype=np.float32)
        return self._session.run(None, {self._input.name: tensor})

    def describe(self) -> Dict[str, object]:
        info = super().describe()
        info["path"] = self._model_path
        info["outputs"] = [
            {"name": o.name, "shape": list(o.shape)} for o in self._session.get_outputs()
        ]
        return info

    def close(self) -> None:
        self._session = None
        logger.debug("ONNX session released: %s", self._model_path)


_BACKENDS = {
    "onnxruntime": OnnxRuntimeEngine,
}


def create_inference_engine(model_path: str, config: InferenceConfig = None) -> InferenceEngine:
    """Instantiate the configured backend for ``model_path``.

    Raises:
        ValueError: unknown backend name
        ModelLoadError: the backend could not load the model
    """
    config = config or InferenceConfig()
    backend_cls = _BACKENDS.get(config.backend)
    if backend_cls is None:
        raise ValueError(
            "Unknown inference backend '%s' (available: %s)"
            % (config.backend, ", ".join(sorted(_BACKENDS)))
        )
    return backend_cls(model_path, config)
