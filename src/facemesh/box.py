"""Axis-aligned box in image coordinates and the crop transform built on it."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Tuple

import cv2
import numpy as np

from facemesh.errors import InvalidGeometry

Point2D = Tuple[float, float]

# Out-of-bounds sampling policy for crops. Wrapping is never used.
#   "clamp" -> samples outside the image take the nearest edge pixel
#   "zero"  -> samples outside the image are 0
BorderPolicy = Literal["clamp", "zero"]

_BORDER_MODES = {
    "clamp": cv2.BORDER_REPLICATE,
    "zero": cv2.BORDER_CONSTANT,
}


@dataclass(frozen=True)
class Box:
    """Immutable axis-aligned rectangle ``[top_left, bottom_right]`` in pixels.

    Every derived box (``square``, ``scale``, ``from_points``) is a new
    instance. Construction fails with :class:`InvalidGeometry` when a
    coordinate is not finite or ``top_left`` lies right of / below
    ``bottom_right``.

    Attributes:
        top_left: (x, y) of the upper-left corner.
        bottom_right: (x, y) of the lower-right corner.
    """

    top_left: Point2D
    bottom_right: Point2D

    def __post_init__(self) -> None:
        try:
            x1, y1 = (float(v) for v in self.top_left)
            x2, y2 = (float(v) for v in self.bottom_right)
        except (TypeError, ValueError) as e:
            raise InvalidGeometry(f"Box corners must be (x, y) pairs: {e}") from e

        if not all(math.isfinite(v) for v in (x1, y1, x2, y2)):
            raise InvalidGeometry(
                f"Box coordinates must be finite: {(x1, y1)} {(x2, y2)}"
            )
        if x1 > x2 or y1 > y2:
            raise InvalidGeometry(
                f"top_left {(x1, y1)} must not exceed bottom_right {(x2, y2)}"
            )

        # Normalize numpy scalars / lists to plain float tuples.
        object.__setattr__(self, "top_left", (x1, y1))
        object.__setattr__(self, "bottom_right", (x2, y2))

    # ── Constructors ──

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "Box":
        """Build a box from (x, y, width, height)."""
        return cls((x, y), (x + w, y + h))

    @classmethod
    def from_points(cls, points) -> "Box":
        """Tight box around a set of points.

        Args:
            points: Array-like of shape (N, 2) or (N, 3); only x and y are used.

        Raises:
            InvalidGeometry: If no points are given or the shape is wrong.
        """
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[1] < 2:
            raise InvalidGeometry(
                f"Expected a non-empty (N, 2+) point array, got shape {arr.shape}"
            )
        xy = arr[:, :2]
        x1, y1 = xy.min(axis=0)
        x2, y2 = xy.max(axis=0)
        return cls((x1, y1), (x2, y2))

    # ── Derived values ──

    @property
    def width(self) -> float:
        return self.bottom_right[0] - self.top_left[0]

    @property
    def height(self) -> float:
        return self.bottom_right[1] - self.top_left[1]

    @property
    def size(self) -> Tuple[float, float]:
        return self.width, self.height

    @property
    def center(self) -> Point2D:
        return (
            (self.top_left[0] + self.bottom_right[0]) / 2,
            (self.top_left[1] + self.bottom_right[1]) / 2,
        )

    @property
    def area(self) -> float:
        return self.width * self.height

    def is_degenerate(self) -> bool:
        """True if the box has zero width or zero height."""
        return self.width <= 0 or self.height <= 0

    def to_xywh(self) -> Tuple[float, float, float, float]:
        return self.top_left[0], self.top_left[1], self.width, self.height

    def to_dict(self) -> Dict[str, List[float]]:
        return {
            "top_left": list(self.top_left),
            "bottom_right": list(self.bottom_right),
        }

    # ── Derived boxes ──

    def square(self) -> "Box":
        """Expand the shorter side to the longer one, keeping the center."""
        cx, cy = self.center
        half = max(self.width, self.height) / 2
        return Box((cx - half, cy - half), (cx + half, cy + half))

    def scale(self, sx: float, sy: Optional[float] = None) -> "Box":
        """Scale width and height about the center.

        Args:
            sx: Horizontal factor (``1.5`` pads the box by 25% on each side).
            sy: Vertical factor. Defaults to ``sx``.
        """
        if sy is None:
            sy = sx
        if not (math.isfinite(sx) and math.isfinite(sy)) or sx < 0 or sy < 0:
            raise InvalidGeometry(f"Scale factors must be finite and >= 0: {sx}, {sy}")
        cx, cy = self.center
        half_w = self.width * sx / 2
        half_h = self.height * sy / 2
        return Box((cx - half_w, cy - half_h), (cx + half_w, cy + half_h))

    # ── Crop transform ──

    def _crop_scale(self, target_size: Tuple[int, int]) -> Tuple[float, float]:
        if self.is_degenerate():
            raise InvalidGeometry(f"Cannot crop to a degenerate box: {self}")
        target_w, target_h = target_size
        return target_w / self.width, target_h / self.height

    def cut_from_and_resize(
        self,
        image: np.ndarray,
        target_size: Tuple[int, int],
        border: BorderPolicy = "clamp",
    ) -> np.ndarray:
        """Extract this box from an image and resample it to a fixed size.

        The box maps linearly onto the output: box corner ``top_left`` lands
        on crop pixel (0, 0) and each axis is scaled by
        ``target / box_size``. Regions of the box outside the image are
        filled according to ``border`` (see :data:`BorderPolicy`).

        Args:
            image: (H, W) or (H, W, C) array. Not modified.
            target_size: Output (width, height) in pixels.
            border: Out-of-bounds policy, ``"clamp"`` or ``"zero"``.

        Returns:
            New array of shape (target_h, target_w[, C]) with the image dtype.
        """
        if border not in _BORDER_MODES:
            raise ValueError(f"Unknown border policy: {border!r}")
        if image.ndim not in (2, 3):
            raise ValueError(f"Expected (H, W[, C]) image, got shape {image.shape}")

        sx, sy = self._crop_scale(target_size)
        x1, y1 = self.top_left
        matrix = np.array(
            [[sx, 0.0, -x1 * sx], [0.0, sy, -y1 * sy]], dtype=np.float64
        )
        return cv2.warpAffine(
            image,
            matrix,
            (int(target_size[0]), int(target_size[1])),
            flags=cv2.INTER_LINEAR,
            borderMode=_BORDER_MODES[border],
            borderValue=0,
        )

    def to_crop_coords(self, points, target_size: Tuple[int, int]) -> np.ndarray:
        """Map image-space points into the crop produced by ``cut_from_and_resize``.

        A third (depth) column is scaled by the horizontal factor.
        """
        sx, sy = self._crop_scale(target_size)
        out = np.array(points, dtype=np.float32, copy=True)
        out[:, 0] = (out[:, 0] - self.top_left[0]) * sx
        out[:, 1] = (out[:, 1] - self.top_left[1]) * sy
        if out.shape[1] > 2:
            out[:, 2] = out[:, 2] * sx
        return out

    def to_image_coords(self, points, target_size: Tuple[int, int]) -> np.ndarray:
        """Inverse of :meth:`to_crop_coords`: crop-local points back to image space."""
        sx, sy = self._crop_scale(target_size)
        out = np.array(points, dtype=np.float32, copy=True)
        out[:, 0] = out[:, 0] / sx + self.top_left[0]
        out[:, 1] = out[:, 1] / sy + self.top_left[1]
        if out.shape[1] > 2:
            out[:, 2] = out[:, 2] / sx
        return out


__all__ = ["Point2D", "BorderPolicy", "Box"]
