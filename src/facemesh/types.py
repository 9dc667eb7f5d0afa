"""Face mesh domain types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from facemesh.box import Box


class TrackingState(Enum):
    """Whether the pipeline holds a cached face region."""

    NO_ROI = "no_roi"
    HAS_ROI = "has_roi"


class ResultMode(Enum):
    """How :meth:`FaceMesh.estimate` hands results to the caller.

    - OWNED: numpy arrays and :class:`Box`; the caller owns the arrays.
    - MATERIALIZED: plain Python lists/dicts; no array is kept alive.
    """

    OWNED = "owned"
    MATERIALIZED = "materialized"


@dataclass
class Detection:
    """A single face candidate from the detector.

    Attributes:
        box: Face bounding box in image pixels.
        confidence: Detector score [0, 1].
        keypoints: (6, 2) BlazeFace keypoints in image pixels
            (right eye, left eye, nose tip, mouth, right ear, left ear).
    """

    box: Box
    confidence: float
    keypoints: Optional[np.ndarray] = None


@dataclass
class MeshPrediction:
    """Per-frame output of :class:`TrackingPipeline`.

    Attributes:
        mesh: (N, 3) float32 landmarks in image pixels (z scaled like x).
        confidence: Regressor face-presence confidence.
        bounding_box: Tight box around the mesh.
        roi: Region the regressor input was cropped from.
        detected: True if the detector ran for this frame.
        timing: Per-step wall time in milliseconds.
    """

    mesh: np.ndarray
    confidence: float
    bounding_box: Box
    roi: Box
    detected: bool = False
    timing: Dict[str, float] = field(default_factory=dict)


@dataclass
class PredictionResult:
    """Caller-facing result of :meth:`FaceMesh.estimate`.

    In ``ResultMode.OWNED`` ``mesh`` is an (N, 3) ndarray and
    ``bounding_box`` a :class:`Box`. In ``ResultMode.MATERIALIZED``
    ``mesh`` is a list of ``[x, y, z]`` lists and ``bounding_box`` a dict
    with ``top_left`` / ``bottom_right`` lists.
    """

    face_in_view_confidence: float
    mesh: Any
    bounding_box: Any
    mode: ResultMode = ResultMode.MATERIALIZED
    timing: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        mesh = self.mesh.tolist() if isinstance(self.mesh, np.ndarray) else self.mesh
        box = (
            self.bounding_box.to_dict()
            if isinstance(self.bounding_box, Box)
            else self.bounding_box
        )
        return {
            "face_in_view_confidence": self.face_in_view_confidence,
            "mesh": mesh,
            "bounding_box": box,
        }


__all__ = [
    "TrackingState",
    "ResultMode",
    "Detection",
    "MeshPrediction",
    "PredictionResult",
]
