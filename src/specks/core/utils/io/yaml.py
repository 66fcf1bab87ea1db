"""YAML read helpers."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def read_yaml(path: Path, default: Any = None, raise_on_error: bool = False) -> Any:
    """Read YAML with error handling.

    Returns ``default`` if the file is missing or empty. Parse errors are
    raised when ``raise_on_error`` is set, otherwise ``default`` is returned.
    """
    path = Path(path)
    if not path.exists():
        if raise_on_error:
            raise FileNotFoundError(f"File not found: {path}")
        return default

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError:
        if raise_on_error:
            raise
        return default
    return data if data is not None else default


def iter_yaml_files(directory: Path) -> list[Path]:
    """Return ``*.yaml``/``*.yml`` files in ``directory`` in alphabetical order."""
    if not directory.is_dir():
        return []
    files = [p for p in directory.iterdir() if p.suffix in {".yaml", ".yml"} and p.is_file()]
    return sorted(files, key=lambda p: p.name)


__all__ = ["read_yaml", "iter_yaml_files"]
