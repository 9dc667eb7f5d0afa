"""BlazeFace detector adapter.

BlazeFace (front camera variant) takes a 128x128 RGB image in [-1, 1] and
predicts, for each of 896 SSD anchors, a 16-value regression
(box center offset, box size, six keypoints) and one classification logit.

Anchor layout (fixed anchor size, two anchors per layer and cell):
  - stride 8:  16x16 grid, 2 anchors per cell  -> 512
  - stride 16: 8x8 grid,   6 anchors per cell  -> 384 (three layers merged)
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from facemesh.backends.base import InferenceModel, TensorLayout, to_batch_tensor
from facemesh.box import Box
from facemesh.types import Detection

logger = logging.getLogger(__name__)

BLAZEFACE_STRIDES = (8, 16, 16, 16)
NUM_KEYPOINTS = 6
_REGRESSION_SIZE = 4 + NUM_KEYPOINTS * 2
_LOGIT_CLIP = 100.0


def generate_anchors(
    input_size: int = 128,
    strides: Sequence[int] = BLAZEFACE_STRIDES,
    anchors_per_layer: int = 2,
) -> np.ndarray:
    """Generate SSD anchor centers for a square input.

    Consecutive layers sharing a stride are merged onto one grid, so each
    cell of that grid holds ``anchors_per_layer * layers`` anchors.

    Returns:
        (num_anchors, 2) float32 array of normalized (cx, cy) centers,
        ordered row-major over the grid, anchors innermost.
    """
    anchors = []
    layer = 0
    while layer < len(strides):
        stride = strides[layer]
        repeats = 0
        while layer < len(strides) and strides[layer] == stride:
            repeats += anchors_per_layer
            layer += 1

        grid = int(math.ceil(input_size / stride))
        for y in range(grid):
            for x in range(grid):
                center = ((x + 0.5) / grid, (y + 0.5) / grid)
                anchors.extend([center] * repeats)

    return np.asarray(anchors, dtype=np.float32)


def non_max_suppression(
    boxes: np.ndarray, scores: np.ndarray, iou_threshold: float, max_output: int
) -> List[int]:
    """Greedy NMS over (N, 4) [x1, y1, x2, y2] boxes.

    Returns:
        Indices of kept boxes, highest score first.
    """
    order = np.argsort(-scores, kind="stable")
    areas = np.maximum(boxes[:, 2] - boxes[:, 0], 0) * np.maximum(
        boxes[:, 3] - boxes[:, 1], 0
    )

    keep: List[int] = []
    while order.size > 0 and len(keep) < max_output:
        i = int(order[0])
        keep.append(i)
        rest = order[1:]

        ix1 = np.maximum(boxes[i, 0], boxes[rest, 0])
        iy1 = np.maximum(boxes[i, 1], boxes[rest, 1])
        ix2 = np.minimum(boxes[i, 2], boxes[rest, 2])
        iy2 = np.minimum(boxes[i, 3], boxes[rest, 3])
        inter = np.maximum(ix2 - ix1, 0) * np.maximum(iy2 - iy1, 0)
        union = areas[i] + areas[rest] - inter
        iou = np.where(union > 0, inter / np.maximum(union, 1e-12), 0.0)

        order = rest[iou <= iou_threshold]

    return keep


class BlazeFaceDetector:
    """Face detector adapter around an opaque BlazeFace model.

    Args:
        model: Loaded BlazeFace model.
        input_size: Model input side in pixels.
        score_threshold: Minimum sigmoid score for a candidate.
        iou_threshold: NMS overlap threshold.
        max_faces: Maximum number of candidates returned.
        layout: Tensor layout expected by the model.

    Example:
        >>> detector = BlazeFaceDetector(model)
        >>> detections = detector.detect(rgb_image)
    """

    def __init__(
        self,
        model: InferenceModel,
        input_size: int = 128,
        score_threshold: float = 0.75,
        iou_threshold: float = 0.3,
        max_faces: int = 10,
        layout: TensorLayout = "nchw",
    ):
        self._model = model
        self._input_size = input_size
        self._score_threshold = score_threshold
        self._iou_threshold = iou_threshold
        self._max_faces = max_faces
        self._layout = layout
        self._anchors = generate_anchors(input_size)

    @property
    def num_anchors(self) -> int:
        return len(self._anchors)

    def detect(self, image: np.ndarray) -> List[Detection]:
        """Detect faces in an RGB image.

        Args:
            image: (H, W, 3) RGB image, uint8 or float in [0, 255].

        Returns:
            Detections in image pixels sorted by confidence (highest first);
            empty if no face is found.
        """
        image_h, image_w = image.shape[:2]
        tensor = self._preprocess(image)
        outputs = self._model.run(tensor)
        regressors, scores = self._split_outputs(outputs)

        mask = scores >= self._score_threshold
        if not np.any(mask):
            return []

        indices = np.nonzero(mask)[0]
        boxes, keypoints = self._decode(regressors[indices], self._anchors[indices])

        # Zero-size boxes cannot be cropped.
        valid = (boxes[:, 2] > boxes[:, 0]) & (boxes[:, 3] > boxes[:, 1])
        if not np.all(valid):
            logger.debug("BlazeFace: dropped %d zero-size candidates", int(np.sum(~valid)))
            indices, boxes, keypoints = indices[valid], boxes[valid], keypoints[valid]
            if len(indices) == 0:
                return []

        keep = non_max_suppression(
            boxes, scores[indices], self._iou_threshold, self._max_faces
        )

        scale = np.array([image_w, image_h], dtype=np.float32)
        detections = []
        for k in keep:
            x1, y1, x2, y2 = boxes[k]
            detections.append(
                Detection(
                    box=Box((x1 * image_w, y1 * image_h), (x2 * image_w, y2 * image_h)),
                    confidence=float(scores[indices[k]]),
                    keypoints=keypoints[k] * scale,
                )
            )

        logger.debug("BlazeFace: %d candidates, %d after NMS", len(indices), len(detections))
        return detections

    def _preprocess(self, image: np.ndarray) -> np.ndarray:
        """Resize to the model input and normalize to [-1, 1]."""
        size = (self._input_size, self._input_size)
        resized = cv2.resize(image, size, interpolation=cv2.INTER_LINEAR)
        normalized = resized.astype(np.float32) / 127.5 - 1.0
        return to_batch_tensor(normalized, self._layout)

    def _split_outputs(self, outputs: List[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
        """Identify regressor / classifier outputs by their last dimension.

        Returns:
            (num_anchors, 16) regressors and (num_anchors,) sigmoid scores.
        """
        regressors = None
        logits = None
        for out in outputs:
            out = np.asarray(out)
            if out.shape[-1] == _REGRESSION_SIZE:
                regressors = out.reshape(-1, _REGRESSION_SIZE)
            elif out.shape[-1] == 1:
                logits = out.reshape(-1)

        if regressors is None or logits is None:
            raise ValueError(
                "BlazeFace outputs must include [.., 16] regressors and [.., 1] scores, "
                f"got shapes {[np.shape(o) for o in outputs]}"
            )
        if len(regressors) != self.num_anchors or len(logits) != self.num_anchors:
            raise ValueError(
                f"Expected {self.num_anchors} anchors, got "
                f"{len(regressors)} regressors and {len(logits)} scores"
            )

        logits = np.clip(logits.astype(np.float32), -_LOGIT_CLIP, _LOGIT_CLIP)
        scores = 1.0 / (1.0 + np.exp(-logits))
        return regressors.astype(np.float32), scores

    def _decode(
        self, regressors: np.ndarray, anchors: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Decode raw regressions against anchors.

        Returns:
            (N, 4) normalized [x1, y1, x2, y2] boxes and (N, 6, 2)
            normalized keypoints.
        """
        s = float(self._input_size)
        cx = regressors[:, 0] / s + anchors[:, 0]
        cy = regressors[:, 1] / s + anchors[:, 1]
        w = np.maximum(regressors[:, 2] / s, 0.0)
        h = np.maximum(regressors[:, 3] / s, 0.0)
        boxes = np.stack([cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2], axis=1)

        kps = regressors[:, 4:].reshape(-1, NUM_KEYPOINTS, 2) / s
        kps = kps + anchors[:, np.newaxis, :]
        return boxes, kps


__all__ = [
    "BLAZEFACE_STRIDES",
    "NUM_KEYPOINTS",
    "generate_anchors",
    "non_max_suppression",
    "BlazeFaceDetector",
]
