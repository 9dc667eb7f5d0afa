"""Protocol for the opaque model inference call."""

from typing import List, Literal, Protocol

import numpy as np

TensorLayout = Literal["nchw", "nhwc"]


class InferenceModel(Protocol):
    """A loaded network treated as a black box: one tensor in, tensors out.

    Implementations must not mutate ``tensor`` and must be safe to call
    repeatedly from a single thread. Examples: onnxruntime session,
    a test double returning canned arrays.
    """

    def run(self, tensor: np.ndarray) -> List[np.ndarray]:
        """Run inference on a single float32 batch tensor."""
        ...

    def close(self) -> None:
        """Release the underlying runtime resources."""
        ...


def to_batch_tensor(image: np.ndarray, layout: TensorLayout = "nchw") -> np.ndarray:
    """Wrap an (H, W, C) image as a contiguous float32 batch of one."""
    if layout == "nchw":
        tensor = np.transpose(image, (2, 0, 1))[np.newaxis, ...]
    elif layout == "nhwc":
        tensor = image[np.newaxis, ...]
    else:
        raise ValueError(f"Unknown tensor layout: {layout!r}")
    return np.ascontiguousarray(tensor, dtype=np.float32)


__all__ = ["InferenceModel", "TensorLayout", "to_batch_tensor"]
