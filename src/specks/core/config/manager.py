"""
specks configuration management (YAML layers + environment overrides).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from specks.core.exceptions import ConfigError
from specks.core.schemas import SchemaValidationError, validate_payload
from specks.core.utils.io import iter_yaml_files, read_yaml
from specks.core.utils.merge import deep_merge
from specks.data import get_data_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "SPECKS_"
PROJECT_CONFIG_DIR = Path(".specks") / "config"


class ConfigManager:
    """Load, merge, and validate specks configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: SPECKS_<section>__<key>
    2. Project config: <repo>/.specks/config/*.yaml (alphabetical order)
    3. Bundled defaults: specks.data/config/*.yaml (alphabetical order)
    """

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = Path(repo_root)
        self.core_config_dir = get_data_path("config")
        self.project_config_dir = self.repo_root / PROJECT_CONFIG_DIR

    # ---------- environment overrides ----------

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX):
                continue
            raw = key[len(ENV_PREFIX):]
            segs = raw.split("__")
            if not raw or any(seg == "" for seg in segs):
                raise ConfigError(f"Malformed {ENV_PREFIX}* key: {key}")
            yield [seg.lower() for seg in segs], self._coerce_type(os.environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[str], value: Any) -> None:
        cur = root
        for part in path[:-1]:
            nxt = cur.get(part)
            if not isinstance(nxt, dict):
                nxt = {}
                cur[part] = nxt
            cur = nxt
        cur[path[-1]] = value

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, typed_value in self._iter_env_overrides():
            logger.debug("config override from env: %s", ".".join(path))
            self._set_nested(cfg, path, typed_value)

    # ---------- loading ----------

    def _load_directory(self, directory: Path, cfg: Dict[str, Any]) -> Dict[str, Any]:
        for path in iter_yaml_files(directory):
            try:
                data = read_yaml(path, default={}, raise_on_error=True)
            except Exception as exc:
                # Fail closed: configuration must never silently ignore invalid YAML.
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
            if not isinstance(data, dict):
                raise ConfigError(f"Config file must contain a mapping: {path}")
            cfg = deep_merge(cfg, data)
        return cfg

    def load_config(self, validate: bool = True) -> Dict[str, Any]:
        """Load the merged configuration.

        Raises:
            ConfigError: On unreadable YAML, malformed env keys, or schema failure.
        """
        cfg: Dict[str, Any] = {}
        cfg = self._load_directory(self.core_config_dir, cfg)
        cfg = self._load_directory(self.project_config_dir, cfg)
        self.apply_env_overrides(cfg)
        if validate:
            try:
                validate_payload(cfg, "config.schema.yaml")
            except SchemaValidationError as exc:
                raise ConfigError(str(exc), context={"errors": exc.errors}) from exc
        return cfg


__all__ = ["ConfigManager", "ENV_PREFIX", "PROJECT_CONFIG_DIR"]
