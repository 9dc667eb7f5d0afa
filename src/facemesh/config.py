"""Configuration for the FaceMesh facade."""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal, Optional, Union

from facemesh.box import BorderPolicy

# Default model locations. Bare relative names resolve inside the models
# directory; http(s) URLs are downloaded into it on first use.
BLAZEFACE_MODEL_URL = "blazeface/blazeface_front.onnx"
FACE_MESH_MODEL_URL = "facemesh/face_mesh.onnx"


@dataclass(frozen=True)
class FaceMeshConfig:
    """Declarative configuration for :class:`facemesh.FaceMesh`.

    The tracking knobs (``mesh_width`` .. ``detection_confidence``) are the
    defaults used by ``FaceMesh.load()``; arguments passed to ``load()``
    take precedence.

    Attributes:
        detector_url: URL or local path of the face detector model.
        mesh_url: URL or local path of the face mesh model.
        models_dir: Download cache directory (default ``~/.facemesh/models``).
        device: "cpu" or "cuda[:N]"; selects onnxruntime providers.
        input_color: Channel order of frames passed to ``estimate``.
        mesh_width: Regressor input width in pixels.
        mesh_height: Regressor input height in pixels.
        max_continuous_checks: Tracked frames allowed between detections.
        detection_confidence: ROIs are cleared when the regressor
            confidence falls below this value.
        detector_input_size: Detector input side in pixels.
        detector_score_threshold: Minimum detector score for a candidate.
        detector_iou_threshold: NMS overlap threshold.
        num_landmarks: Number of mesh landmarks produced by the regressor.
        mesh_flag_is_logit: Apply a sigmoid to the regressor's face flag.
        roi_margin: Padding factor applied to squared face boxes.
        crop_border: Out-of-bounds policy for ROI crops.
    """

    detector_url: str = BLAZEFACE_MODEL_URL
    mesh_url: str = FACE_MESH_MODEL_URL
    models_dir: Optional[Union[str, Path]] = None
    device: str = "cpu"
    input_color: Literal["bgr", "rgb"] = "bgr"

    mesh_width: int = 128
    mesh_height: int = 128
    max_continuous_checks: int = 5
    detection_confidence: float = 0.9

    detector_input_size: int = 128
    detector_score_threshold: float = 0.75
    detector_iou_threshold: float = 0.3
    num_landmarks: int = 468
    mesh_flag_is_logit: bool = False
    roi_margin: float = 1.5
    crop_border: BorderPolicy = "clamp"

    def __post_init__(self) -> None:
        if self.mesh_width <= 0 or self.mesh_height <= 0:
            raise ValueError(
                f"mesh size must be positive, got {self.mesh_width}x{self.mesh_height}"
            )
        if self.max_continuous_checks < 0:
            raise ValueError(
                f"max_continuous_checks must be >= 0, got {self.max_continuous_checks}"
            )
        if not 0.0 <= self.detection_confidence <= 1.0:
            raise ValueError(
                f"detection_confidence must be in [0, 1], got {self.detection_confidence}"
            )
        if self.roi_margin <= 0:
            raise ValueError(f"roi_margin must be positive, got {self.roi_margin}")
        if self.input_color not in ("bgr", "rgb"):
            raise ValueError(f"input_color must be 'bgr' or 'rgb', got {self.input_color!r}")

    def with_overrides(self, **kwargs) -> "FaceMeshConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **kwargs)


__all__ = ["BLAZEFACE_MODEL_URL", "FACE_MESH_MODEL_URL", "FaceMeshConfig"]
