"""Face mesh landmark regressor adapter."""

from __future__ import annotations

import logging
from typing import List, Tuple

import numpy as np

from facemesh.backends.base import InferenceModel, TensorLayout, to_batch_tensor

logger = logging.getLogger(__name__)

NUM_MESH_LANDMARKS = 468


class MeshRegressor:
    """Landmark regressor adapter around an opaque face mesh model.

    The model takes a square RGB crop scaled to [0, 1] and returns the
    landmark coordinates (in crop pixels) and a face-presence flag.

    Args:
        model: Loaded face mesh model.
        num_landmarks: Number of 3D landmarks the model predicts.
        flag_is_logit: Pass the face flag through a sigmoid.
        layout: Tensor layout expected by the model.
    """

    def __init__(
        self,
        model: InferenceModel,
        num_landmarks: int = NUM_MESH_LANDMARKS,
        flag_is_logit: bool = False,
        layout: TensorLayout = "nchw",
    ):
        self._model = model
        self._num_landmarks = num_landmarks
        self._flag_is_logit = flag_is_logit
        self._layout = layout

    @property
    def num_landmarks(self) -> int:
        return self._num_landmarks

    def regress(self, crop: np.ndarray) -> Tuple[np.ndarray, float]:
        """Predict landmarks for a cropped face.

        Args:
            crop: (mesh_height, mesh_width, 3) RGB crop in [0, 255].
                Not modified.

        Returns:
            Tuple of (landmarks, confidence):
              - landmarks: (num_landmarks, 3) float32 in crop-local pixels.
              - confidence: Face-presence confidence in [0, 1].
        """
        tensor = to_batch_tensor(crop.astype(np.float32) / 255.0, self._layout)
        outputs = self._model.run(tensor)
        return self._split_outputs(outputs)

    def _split_outputs(self, outputs: List[np.ndarray]) -> Tuple[np.ndarray, float]:
        coords_size = self._num_landmarks * 3
        coords = None
        flag = None
        for out in outputs:
            out = np.asarray(out)
            if out.size == coords_size:
                coords = out
            elif out.size == 1:
                flag = out

        if coords is None or flag is None:
            raise ValueError(
                f"Mesh outputs must include {coords_size} coordinates and a scalar flag, "
                f"got shapes {[np.shape(o) for o in outputs]}"
            )

        landmarks = coords.reshape(self._num_landmarks, 3).astype(np.float32)
        confidence = float(flag.reshape(-1)[0])
        if self._flag_is_logit:
            confidence = float(1.0 / (1.0 + np.exp(-np.clip(confidence, -100.0, 100.0))))
        return landmarks, confidence


__all__ = ["NUM_MESH_LANDMARKS", "MeshRegressor"]
