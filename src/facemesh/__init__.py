"""facemesh: real-time 3D face mesh estimation from video frames.

Combines a BlazeFace detector with a 468-point mesh regressor and reuses
the previous frame's face region to skip detection between checks.

Example:
    >>> import facemesh
    >>> face_mesh = facemesh.load(max_continuous_checks=5)
    >>> result = face_mesh.estimate(frame)
    >>> if result is not None:
    ...     print(result.face_in_view_confidence, result.bounding_box)
"""

from facemesh.box import Box, BorderPolicy
from facemesh.config import FaceMeshConfig
from facemesh.detector import BlazeFaceDetector
from facemesh.errors import FaceMeshError, InvalidGeometry, ModelLoadError
from facemesh.facemesh import FaceMesh, load
from facemesh.loader import ModelHandles, fetch_model, load_models, load_onnx_model
from facemesh.mesh import MeshRegressor
from facemesh.pipeline import TrackingPipeline
from facemesh.types import (
    Detection,
    MeshPrediction,
    PredictionResult,
    ResultMode,
    TrackingState,
)

__all__ = [
    # Facade
    "FaceMesh",
    "FaceMeshConfig",
    "load",
    # Core
    "TrackingPipeline",
    "BlazeFaceDetector",
    "MeshRegressor",
    "Box",
    "BorderPolicy",
    # Model loading
    "ModelHandles",
    "fetch_model",
    "load_models",
    "load_onnx_model",
    # Types
    "Detection",
    "MeshPrediction",
    "PredictionResult",
    "ResultMode",
    "TrackingState",
    # Errors
    "FaceMeshError",
    "ModelLoadError",
    "InvalidGeometry",
]
