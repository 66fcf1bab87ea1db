"""I/O utilities for specks.

- core: atomic writes, directory management
- json: locked reads, atomic writes
- yaml: config and schema loading
"""
from __future__ import annotations

from .core import atomic_write, ensure_directory, ensure_parent_dir
from .json import read_json, write_json_atomic
from .yaml import iter_yaml_files, read_yaml

__all__ = [
    "atomic_write",
    "ensure_directory",
    "ensure_parent_dir",
    "read_json",
    "write_json_atomic",
    "read_yaml",
    "iter_yaml_files",
]
