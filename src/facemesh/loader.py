"""Model fetching and parallel loading.

A model location is either an http(s) URL (downloaded once into the
models directory), a ``file://`` URL, an absolute path, or a path relative
to the models directory.
"""

from __future__ import annotations

import logging
import urllib.parse
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from facemesh.backends.base import InferenceModel
from facemesh.errors import ModelLoadError
from facemesh.paths import get_models_dir

logger = logging.getLogger(__name__)

ModelLoader = Callable[[str], InferenceModel]

_REMOTE_SCHEMES = ("http", "https", "ftp")


@dataclass(frozen=True)
class ModelHandles:
    """The two loaded models, shared read-only by every pipeline.

    Attributes:
        detector: Face detector model.
        mesh: Face mesh regressor model.
    """

    detector: InferenceModel
    mesh: InferenceModel


def fetch_model(url: str, models_dir: Optional[Union[str, Path]] = None) -> Path:
    """Resolve a model location to a local file, downloading if necessary.

    Args:
        url: Model URL or path.
        models_dir: Cache / lookup directory (default ``~/.facemesh/models``).

    Returns:
        Path to the local model file.

    Raises:
        ModelLoadError: If the download fails or the file does not exist.
    """
    parsed = urllib.parse.urlparse(url)

    if parsed.scheme in _REMOTE_SCHEMES:
        cache_dir = get_models_dir(models_dir)
        name = Path(parsed.path).name or "model.onnx"
        model_path = cache_dir / parsed.netloc / name
        if model_path.exists():
            logger.debug("Using cached model %s", model_path)
            return model_path

        model_path.parent.mkdir(parents=True, exist_ok=True)
        partial = model_path.with_suffix(model_path.suffix + ".part")
        logger.info("Downloading model %s to %s...", url, model_path)
        try:
            urllib.request.urlretrieve(url, partial)
            partial.replace(model_path)
        except Exception as e:
            partial.unlink(missing_ok=True)
            raise ModelLoadError(url, e) from e
        logger.info("Download complete.")
        return model_path

    if parsed.scheme == "file":
        model_path = Path(urllib.request.url2pathname(parsed.path))
    else:
        model_path = Path(url)
        if not model_path.is_absolute():
            model_path = get_models_dir(models_dir) / model_path

    if not model_path.is_file():
        raise ModelLoadError(
            url, FileNotFoundError(f"model file not found at {model_path}")
        )
    return model_path


def load_onnx_model(
    url: str,
    models_dir: Optional[Union[str, Path]] = None,
    device: str = "cpu",
) -> InferenceModel:
    """Fetch a model and open it as an onnxruntime session.

    Raises:
        ModelLoadError: On fetch or parse failure.
    """
    from facemesh.backends.onnx import OnnxModel

    model_path = fetch_model(url, models_dir)
    try:
        return OnnxModel(model_path, device=device)
    except Exception as e:
        raise ModelLoadError(url, e) from e


def _load_one(loader: ModelLoader, url: str) -> InferenceModel:
    try:
        return loader(url)
    except ModelLoadError:
        raise
    except Exception as e:
        raise ModelLoadError(url, e) from e


def load_models(detector_url: str, mesh_url: str, loader: ModelLoader) -> ModelHandles:
    """Load the detector and mesh models concurrently.

    Both loads always run to completion. If either fails, the one that
    succeeded is closed and the first failure is raised.

    Raises:
        ModelLoadError: If either model fails to load.
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="facemesh-load") as pool:
        detector_future = pool.submit(_load_one, loader, detector_url)
        mesh_future = pool.submit(_load_one, loader, mesh_url)

        errors = []
        loaded = []
        for future in (detector_future, mesh_future):
            try:
                loaded.append(future.result())
            except ModelLoadError as e:
                errors.append(e)

    if errors:
        for model in loaded:
            model.close()
        logger.error("Model loading failed: %s", errors[0])
        raise errors[0]

    detector, mesh = loaded
    return ModelHandles(detector=detector, mesh=mesh)


__all__ = [
    "ModelLoader",
    "ModelHandles",
    "fetch_model",
    "load_onnx_model",
    "load_models",
]
