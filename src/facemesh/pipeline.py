"""Detect-or-track pipeline for single-face mesh estimation.

Per frame the pipeline either runs the face detector on the full image or
reuses the region of interest (ROI) derived from the previous frame's
mesh. Detection runs when there is no ROI, or after
``max_continuous_checks`` consecutive tracked frames::

    frame 0          detect  (runs_without_detector = 0)
    frame 1..N       track   (runs_without_detector = 1..N)
    frame N+1        detect  (N = max_continuous_checks)

A pipeline instance holds mutable ROI state and must only be driven by
one caller at a time; use one pipeline per video stream.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from facemesh.box import BorderPolicy, Box
from facemesh.detector import BlazeFaceDetector
from facemesh.mesh import MeshRegressor
from facemesh.steps import processing_step
from facemesh.types import Detection, MeshPrediction, TrackingState

logger = logging.getLogger(__name__)


class TrackingPipeline:
    """Face mesh pipeline with ROI tracking between detections.

    Args:
        detector: Face detector adapter.
        regressor: Mesh regressor adapter.
        mesh_width: Regressor input width.
        mesh_height: Regressor input height.
        max_continuous_checks: Tracked frames allowed between detections.
        roi_margin: Padding factor applied to squared face boxes.
        crop_border: Out-of-bounds policy for ROI crops.
    """

    def __init__(
        self,
        detector: BlazeFaceDetector,
        regressor: MeshRegressor,
        mesh_width: int = 128,
        mesh_height: int = 128,
        max_continuous_checks: int = 5,
        roi_margin: float = 1.5,
        crop_border: BorderPolicy = "clamp",
    ):
        self._detector = detector
        self._regressor = regressor
        self._mesh_size: Tuple[int, int] = (mesh_width, mesh_height)
        self._max_continuous_checks = max_continuous_checks
        self._roi_margin = roi_margin
        self._crop_border = crop_border

        self._rois: List[Box] = []
        self._runs_without_detector = 0
        self._step_timings: Optional[Dict[str, float]] = None

    # ── State ──

    @property
    def state(self) -> TrackingState:
        return TrackingState.HAS_ROI if self._rois else TrackingState.NO_ROI

    @property
    def roi(self) -> Optional[Box]:
        """Cached region that the next tracked frame will be cropped from."""
        return self._rois[0] if self._rois else None

    @property
    def runs_without_detector(self) -> int:
        return self._runs_without_detector

    @property
    def max_continuous_checks(self) -> int:
        return self._max_continuous_checks

    def needs_detection(self) -> bool:
        """True if the next ``predict`` call will run the detector."""
        return (
            not self._rois
            or self._runs_without_detector >= self._max_continuous_checks
        )

    def clear_rois(self) -> None:
        """Drop the cached ROI so the next frame runs full detection."""
        if self._rois:
            logger.debug("Clearing ROI %s", self._rois[0])
        self._rois = []

    def _roi_from_box(self, box: Box) -> Box:
        return box.square().scale(self._roi_margin)

    # ── Steps ──

    @processing_step("detect")
    def _detect(self, image: np.ndarray) -> List[Detection]:
        return self._detector.detect(image)

    @processing_step("crop")
    def _crop(self, image: np.ndarray, roi: Box) -> np.ndarray:
        return roi.cut_from_and_resize(image, self._mesh_size, border=self._crop_border)

    @processing_step("regress")
    def _regress(self, crop: np.ndarray) -> Tuple[np.ndarray, float]:
        return self._regressor.regress(crop)

    # ── Entry point ──

    def predict(self, image: np.ndarray) -> Optional[MeshPrediction]:
        """Estimate the face mesh for one frame.

        Args:
            image: (H, W, 3) RGB frame. Not retained after the call.

        Returns:
            MeshPrediction in image coordinates, or None when the detector
            ran and found no face.
        """
        self._step_timings = {}
        try:
            return self._predict(image)
        finally:
            self._step_timings = None

    def _predict(self, image: np.ndarray) -> Optional[MeshPrediction]:
        detected = False
        if self.needs_detection():
            detections = self._detect(image)
            if not detections:
                self.clear_rois()
                return None

            best = max(detections, key=lambda d: d.confidence)
            self._rois = [self._roi_from_box(best.box)]
            self._runs_without_detector = 0
            detected = True
            logger.debug(
                "Detected face %s (confidence=%.3f)", best.box, best.confidence
            )
        else:
            self._runs_without_detector += 1

        roi = self._rois[0]
        crop = self._crop(image, roi)
        landmarks, confidence = self._regress(crop)

        mesh = roi.to_image_coords(landmarks, self._mesh_size)
        landmarks_box = Box.from_points(mesh)

        if landmarks_box.is_degenerate():
            logger.debug("Degenerate landmark box %s, forcing detection", landmarks_box)
            self.clear_rois()
        else:
            self._rois = [self._roi_from_box(landmarks_box)]

        return MeshPrediction(
            mesh=mesh,
            confidence=confidence,
            bounding_box=landmarks_box,
            roi=roi,
            detected=detected,
            timing=dict(self._step_timings),
        )


__all__ = ["TrackingPipeline"]
