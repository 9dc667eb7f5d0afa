"""Test doubles for the opaque detector / mesh models."""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from facemesh.box import Box
from facemesh.detector import generate_anchors
from facemesh.types import Detection

MESH_LANDMARKS = 468


def logit(p: float) -> float:
    return float(np.log(p / (1.0 - p)))


class FakeBlazeFaceModel:
    """Produces raw BlazeFace outputs encoding the given faces.

    Args:
        faces: Sequence of ((cx, cy, w, h) normalized, score) per face.
            Each face is encoded on its own anchor.
        input_size: Detector input side.
    """

    def __init__(self, faces: Sequence[Tuple[Tuple[float, float, float, float], float]] = (),
                 input_size: int = 128):
        self.faces = list(faces)
        self.input_size = input_size
        self.anchors = generate_anchors(input_size)
        self.run_calls = 0
        self.tensors: List[np.ndarray] = []
        self.closed = False

    def run(self, tensor: np.ndarray) -> List[np.ndarray]:
        self.run_calls += 1
        self.tensors.append(tensor.copy())

        s = float(self.input_size)
        regressors = np.zeros((len(self.anchors), 16), dtype=np.float32)
        logits = np.full((len(self.anchors), 1), -10.0, dtype=np.float32)
        for k, ((cx, cy, w, h), score) in enumerate(self.faces):
            i = 100 + k * 37
            acx, acy = self.anchors[i]
            regressors[i, 0] = (cx - acx) * s
            regressors[i, 1] = (cy - acy) * s
            regressors[i, 2] = w * s
            regressors[i, 3] = h * s
            for kp in range(6):
                regressors[i, 4 + 2 * kp] = (cx - acx) * s
                regressors[i, 5 + 2 * kp] = (cy - acy) * s
            logits[i, 0] = logit(score)
        return [regressors[np.newaxis], logits[np.newaxis]]

    def close(self) -> None:
        self.closed = True


def make_landmarks(num: int = MESH_LANDMARKS, lo: float = 0.25, hi: float = 0.75,
                   seed: int = 0) -> np.ndarray:
    """Normalized (num, 3) landmarks spread over [lo, hi] of the crop."""
    rng = np.random.default_rng(seed)
    pts = rng.uniform(lo, hi, size=(num, 3)).astype(np.float32)
    pts[0, :2] = lo
    pts[1, :2] = hi
    pts[:, 2] = pts[:, 2] - 0.5
    return pts


class FakeMeshModel:
    """Returns fixed normalized landmarks scaled to the input tensor size."""

    def __init__(self, flag: float = 0.97, landmarks: Optional[np.ndarray] = None,
                 layout: str = "nchw"):
        self.flag = flag
        self.landmarks = make_landmarks() if landmarks is None else landmarks
        self.layout = layout
        self.run_calls = 0
        self.tensors: List[np.ndarray] = []
        self.closed = False

    def run(self, tensor: np.ndarray) -> List[np.ndarray]:
        self.run_calls += 1
        self.tensors.append(tensor.copy())
        if self.layout == "nchw":
            h, w = tensor.shape[2:4]
        else:
            h, w = tensor.shape[1:3]
        coords = self.landmarks * np.array([w, h, w], dtype=np.float32)
        flag = np.array([[self.flag]], dtype=np.float32)
        return [coords.reshape(1, -1), flag]

    def close(self) -> None:
        self.closed = True


class MockDetector:
    """Detector adapter double returning scripted detections per call."""

    def __init__(self, detections_per_call=None, default=None):
        self._script = list(detections_per_call or [])
        self._default = default if default is not None else []
        self.detect_calls = 0
        self.images: List[np.ndarray] = []

    def detect(self, image):
        self.detect_calls += 1
        self.images.append(image)
        if self._script:
            return self._script.pop(0)
        return list(self._default)


class MockRegressor:
    """Regressor adapter double returning crop-local landmarks."""

    def __init__(self, landmarks: np.ndarray, confidence: float = 0.97):
        self.landmarks = landmarks
        self.confidence = confidence
        self.regress_calls = 0
        self.crops: List[np.ndarray] = []

    def regress(self, crop):
        self.regress_calls += 1
        self.crops.append(crop)
        return self.landmarks.copy(), self.confidence


def face(x1: float, y1: float, x2: float, y2: float, confidence: float = 0.95) -> Detection:
    return Detection(box=Box((x1, y1), (x2, y2)), confidence=confidence)


class ModelLoaderStub:
    """model_loader double mapping URLs to fake models (or exceptions)."""

    def __init__(self, models: dict):
        self.models = models
        self.calls: List[str] = []

    def __call__(self, url: str):
        self.calls.append(url)
        model = self.models[url]
        if isinstance(model, Exception):
            raise model
        return model
