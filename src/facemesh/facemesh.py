"""FaceMesh facade: model loading and per-frame estimation."""

from __future__ import annotations

import logging
from functools import partial
from typing import Optional, Union

import cv2
import numpy as np

from facemesh.config import FaceMeshConfig
from facemesh.detector import BlazeFaceDetector
from facemesh.errors import FaceMeshError
from facemesh.loader import ModelHandles, ModelLoader, load_models, load_onnx_model
from facemesh.mesh import MeshRegressor
from facemesh.pipeline import TrackingPipeline
from facemesh.types import MeshPrediction, PredictionResult, ResultMode

logger = logging.getLogger(__name__)


class FaceMesh:
    """Real-time face mesh estimator.

    Owns the loaded model handles and one tracking pipeline. Call
    :meth:`load` once, then :meth:`estimate` for each video frame. For
    several independent streams, use :meth:`new_stream` to get estimators
    that share the models but track separately.

    Args:
        config: Model locations and tracking defaults.
        model_loader: Callable mapping a model URL to a loaded
            :class:`InferenceModel`. Defaults to onnxruntime loading.

    The default model locations are file names relative to the models
    directory (``~/.facemesh/models/blazeface/blazeface_front.onnx`` and
    ``~/.facemesh/models/facemesh/face_mesh.onnx``); nothing is downloaded
    for them. Place the files there or set ``detector_url`` / ``mesh_url``
    in the config, otherwise :meth:`load` raises :class:`ModelLoadError`.

    Example:
        >>> face_mesh = FaceMesh().load()
        >>> result = face_mesh.estimate(frame)
        >>> if result is not None:
        ...     print(result.face_in_view_confidence, len(result.mesh))
    """

    def __init__(
        self,
        config: Optional[FaceMeshConfig] = None,
        model_loader: Optional[ModelLoader] = None,
    ):
        self._config = config or FaceMeshConfig()
        if model_loader is None:
            model_loader = partial(
                load_onnx_model,
                models_dir=self._config.models_dir,
                device=self._config.device,
            )
        self._model_loader = model_loader
        self._models: Optional[ModelHandles] = None
        self._pipeline: Optional[TrackingPipeline] = None

    @property
    def config(self) -> FaceMeshConfig:
        return self._config

    @property
    def is_loaded(self) -> bool:
        return self._pipeline is not None

    @property
    def pipeline(self) -> Optional[TrackingPipeline]:
        return self._pipeline

    @property
    def detection_confidence(self) -> float:
        return self._config.detection_confidence

    def load(
        self,
        mesh_width: Optional[int] = None,
        mesh_height: Optional[int] = None,
        max_continuous_checks: Optional[int] = None,
        detection_confidence: Optional[float] = None,
    ) -> "FaceMesh":
        """Load both models in parallel and build the tracking pipeline.

        Arguments left as None fall back to the config
        (128, 128, 5, 0.9 by default).

        Returns:
            self, for chaining.

        Raises:
            ModelLoadError: If either model fails to load. The facade is
                left unloaded; calling ``load`` again retries.
        """
        overrides = {
            "mesh_width": mesh_width,
            "mesh_height": mesh_height,
            "max_continuous_checks": max_continuous_checks,
            "detection_confidence": detection_confidence,
        }
        config = self._config.with_overrides(
            **{k: v for k, v in overrides.items() if v is not None}
        )

        self.close()
        models = load_models(config.detector_url, config.mesh_url, self._model_loader)

        self._config = config
        self._models = models
        self._pipeline = self._build_pipeline(models)
        logger.info(
            "FaceMesh loaded (mesh=%dx%d, max_continuous_checks=%d, "
            "detection_confidence=%.2f)",
            config.mesh_width, config.mesh_height,
            config.max_continuous_checks, config.detection_confidence,
        )
        return self

    def _build_pipeline(self, models: ModelHandles) -> TrackingPipeline:
        config = self._config
        detector = BlazeFaceDetector(
            models.detector,
            input_size=config.detector_input_size,
            score_threshold=config.detector_score_threshold,
            iou_threshold=config.detector_iou_threshold,
        )
        regressor = MeshRegressor(
            models.mesh,
            num_landmarks=config.num_landmarks,
            flag_is_logit=config.mesh_flag_is_logit,
        )
        return TrackingPipeline(
            detector,
            regressor,
            mesh_width=config.mesh_width,
            mesh_height=config.mesh_height,
            max_continuous_checks=config.max_continuous_checks,
            roi_margin=config.roi_margin,
            crop_border=config.crop_border,
        )

    def new_stream(self) -> "FaceMesh":
        """Return an estimator sharing the loaded models with a fresh pipeline."""
        if self._models is None:
            raise FaceMeshError("FaceMesh is not loaded. Call load() first.")
        other = FaceMesh(self._config, self._model_loader)
        other._models = self._models
        other._pipeline = other._build_pipeline(self._models)
        return other

    def close(self) -> None:
        """Drop the pipeline and this estimator's reference to the models.

        The model handles may be shared with estimators created by
        :meth:`new_stream`, so they are not closed here; the runtime
        sessions are released once no estimator references them.
        ``load`` calls this first and follows the same rule.
        """
        if self._pipeline is None:
            return
        self._pipeline = None
        self._models = None
        logger.info("FaceMesh closed")

    # ── Estimation ──

    def _prepare_frame(self, frame: np.ndarray) -> np.ndarray:
        """Convert a caller frame to an (H, W, 3) RGB float32 image."""
        frame = np.asarray(frame)
        if frame.ndim != 3 or frame.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W, 3|4) frame, got shape {frame.shape}")

        image = frame[:, :, :3].astype(np.float32)
        if self._config.input_color == "bgr":
            image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        return image

    def clear_pipeline_rois(self, confidence: float) -> None:
        """Clear tracking state when ``confidence`` is below the threshold."""
        if self._pipeline is None:
            return
        if confidence < self._config.detection_confidence:
            logger.debug(
                "Confidence %.3f < %.3f, resetting ROI",
                confidence, self._config.detection_confidence,
            )
            self._pipeline.clear_rois()

    def estimate(
        self,
        frame: np.ndarray,
        return_raw: Union[bool, ResultMode] = False,
    ) -> Optional[PredictionResult]:
        """Estimate the face mesh for one video frame.

        Args:
            frame: (H, W, 3) or (H, W, 4) image (BGR unless
                ``config.input_color == "rgb"``).
            return_raw: True or ``ResultMode.OWNED`` to receive numpy
                arrays; False or ``ResultMode.MATERIALIZED`` for plain lists.

        Returns:
            PredictionResult, or None when no face is in view.

        Raises:
            FaceMeshError: If called before :meth:`load`.
        """
        if self._pipeline is None:
            raise FaceMeshError("FaceMesh is not loaded. Call load() first.")

        if isinstance(return_raw, ResultMode):
            mode = return_raw
        else:
            mode = ResultMode.OWNED if return_raw else ResultMode.MATERIALIZED

        prediction = self._pipeline.predict(self._prepare_frame(frame))
        if prediction is None:
            return None

        result = self._to_result(prediction, mode)
        # The reset only affects the next frame; this result is still returned.
        self.clear_pipeline_rois(result.face_in_view_confidence)
        return result

    estimate_face = estimate

    @staticmethod
    def _to_result(prediction: MeshPrediction, mode: ResultMode) -> PredictionResult:
        if mode is ResultMode.OWNED:
            return PredictionResult(
                face_in_view_confidence=prediction.confidence,
                mesh=prediction.mesh,
                bounding_box=prediction.bounding_box,
                mode=mode,
                timing=prediction.timing,
            )
        return PredictionResult(
            face_in_view_confidence=prediction.confidence,
            mesh=prediction.mesh.tolist(),
            bounding_box=prediction.bounding_box.to_dict(),
            mode=mode,
            timing=prediction.timing,
        )


def load(
    mesh_width: Optional[int] = None,
    mesh_height: Optional[int] = None,
    max_continuous_checks: Optional[int] = None,
    detection_confidence: Optional[float] = None,
    config: Optional[FaceMeshConfig] = None,
    model_loader: Optional[ModelLoader] = None,
) -> FaceMesh:
    """Create and load a :class:`FaceMesh` in one call.

    Unset knobs come from ``config`` (128, 128, 5, 0.9 by default).

    Without a config the models are read from
    ``~/.facemesh/models/blazeface/blazeface_front.onnx`` and
    ``~/.facemesh/models/facemesh/face_mesh.onnx``. If they are missing,
    :class:`ModelLoadError` is raised.
    """
    face_mesh = FaceMesh(config=config, model_loader=model_loader)
    return face_mesh.load(
        mesh_width=mesh_width,
        mesh_height=mesh_height,
        max_continuous_checks=max_continuous_checks,
        detection_confidence=detection_confidence,
    )


__all__ = ["FaceMesh", "load"]
