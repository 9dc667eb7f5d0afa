"""onnxruntime-backed inference model."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Union

import numpy as np

logger = logging.getLogger(__name__)


def select_providers(device: str, available: List[str]) -> List[str]:
    """Pick onnxruntime execution providers for a device string.

    Args:
        device: "cpu" or "cuda[:N]".
        available: Providers reported by ``ort.get_available_providers()``.

    Returns:
        Ordered provider list, always ending with CPUExecutionProvider.
    """
    if device.startswith("cuda"):
        if "CUDAExecutionProvider" in available:
            return ["CUDAExecutionProvider", "CPUExecutionProvider"]
        logger.warning("CUDAExecutionProvider not available, falling back to CPU")
    return ["CPUExecutionProvider"]


class OnnxModel:
    """Single-input ONNX model wrapped as an :class:`InferenceModel`.

    Args:
        model: Path to an ``.onnx`` file or the serialized model bytes.
        device: "cpu" or "cuda[:N]".

    Example:
        >>> model = OnnxModel("blazeface_front.onnx")
        >>> outputs = model.run(tensor)
        >>> model.close()
    """

    def __init__(self, model: Union[str, Path, bytes], device: str = "cpu"):
        import onnxruntime as ort

        ort.set_default_logger_severity(3)
        providers = select_providers(device, ort.get_available_providers())

        source = model if isinstance(model, bytes) else str(model)
        self._session = ort.InferenceSession(source, providers=providers)
        self._input_name: str = self._session.get_inputs()[0].name
        self._name = "<bytes>" if isinstance(model, bytes) else Path(model).name
        logger.info(
            "ONNX model %s loaded (providers=%s)",
            self._name, self._session.get_providers(),
        )

    def run(self, tensor: np.ndarray) -> List[np.ndarray]:
        if self._session is None:
            raise RuntimeError(f"ONNX model {self._name} is closed")
        return self._session.run(None, {self._input_name: tensor})

    def close(self) -> None:
        self._session = None
        logger.info("ONNX model %s released", self._name)


__all__ = ["OnnxModel", "select_providers"]
