"""I/O utilities for data paths and JSON snapshot files."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

# Project root is 4 levels up from this file
_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


def get_project_root() -> Path:
    """Get the project root directory."""
    return _PROJECT_ROOT


def resolve_output_dir(output_dir: Path | None = None) -> Path:
    """Path of the snapshot directory, without creating it."""
    return Path(output_dir) if output_dir is not None else _PROJECT_ROOT / "public" / "data"


def get_output_dir(output_dir: Path | None = None) -> Path:
    """Get the directory snapshot files are written to.

    Args:
        output_dir: Explicit directory. Defaults to <project>/public/data.

    Returns:
        Path to the output directory (creates if doesn't exist)
    """
    path = resolve_output_dir(output_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_json(path: Path) -> Any:
    """Read and parse a JSON document.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the content is not valid JSON
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, data: Any) -> Path:
    """Write a JSON document, replacing any existing file atomically.

    The document is written to a temporary file in the same directory and
    renamed into place, so readers never observe a half-written file.

    Args:
        path: Destination path
        data: JSON-serializable document

    Returns:
        The destination path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    return path
