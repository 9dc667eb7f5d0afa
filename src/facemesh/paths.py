"""Model cache directory utilities.

Downloaded models are cached under ``~/.facemesh/models`` unless a
directory is passed explicitly (``FaceMeshConfig.models_dir``).
"""

from pathlib import Path
from typing import Optional, Union


def get_home_dir() -> Path:
    """Return the facemesh home directory (``~/.facemesh``), creating it if needed."""
    home_dir = Path.home() / ".facemesh"
    home_dir.mkdir(parents=True, exist_ok=True)
    return home_dir


def get_models_dir(models_dir: Optional[Union[str, Path]] = None) -> Path:
    """Return the models directory, creating it if it doesn't exist.

    Args:
        models_dir: Explicit directory (absolute or relative to CWD).
            Defaults to ``{home}/models``.

    Returns:
        Absolute path to the models directory.
    """
    if models_dir is not None:
        resolved = Path(models_dir)
        if not resolved.is_absolute():
            resolved = Path.cwd() / resolved
    else:
        resolved = get_home_dir() / "models"
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved


__all__ = ["get_home_dir", "get_models_dir"]
