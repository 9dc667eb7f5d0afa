"""Exception types raised by facemesh."""

from typing import Optional


class FaceMeshError(Exception):
    """Base class for all facemesh errors."""


class ModelLoadError(FaceMeshError):
    """Raised when a model cannot be fetched or parsed at load time.

    Attributes:
        url: Location of the model that failed to load.
        original_error: The underlying exception, if any.
    """

    def __init__(self, url: str, original_error: Optional[Exception] = None):
        self.url = url
        self.original_error = original_error
        detail = f": {original_error}" if original_error is not None else ""
        super().__init__(f"Failed to load model from '{url}'{detail}")


class InvalidGeometry(FaceMeshError, ValueError):
    """Raised for malformed boxes (inverted corners, non-finite values)."""


__all__ = ["FaceMeshError", "ModelLoadError", "InvalidGeometry"]
