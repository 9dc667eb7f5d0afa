"""Inference backends for the detector and mesh models."""

from facemesh.backends.base import InferenceModel

__all__ = ["InferenceModel"]
