from __future__ import annotations

from pathlib import Path

import pytest

from specks.core.config import ConfigManager, LoggingConfig, WorktreeConfig
from specks.core.exceptions import ConfigError


def _write_project_config(repo_root: Path, text: str) -> None:
    cfg_dir = repo_root / ".specks" / "config"
    cfg_dir.mkdir(parents=True, exist_ok=True)
    (cfg_dir / "worktrees.yaml").write_text(text, encoding="utf-8")


class TestConfigManager:
    def test_bundled_defaults(self, tmp_path: Path) -> None:
        cfg = WorktreeConfig(tmp_path)
        assert cfg.root_dir_name == ".specks-worktrees"
        assert cfg.worktrees_root == (tmp_path / ".specks-worktrees").resolve()
        assert cfg.sessions_dir == cfg.worktrees_root / ".sessions"
        assert cfg.artifacts_dir == cfg.worktrees_root / ".artifacts"
        assert cfg.branch_namespace == "specks"
        assert cfg.primary_branch == "main"
        assert cfg.infrastructure_prefixes == (".specks/", ".beads/")
        assert cfg.min_git_version == (2, 15)
        assert cfg.init_command == []
        assert cfg.sync_command == []

    def test_project_config_overrides_defaults(self, tmp_path: Path) -> None:
        _write_project_config(
            tmp_path,
            "worktrees:\n  base_branch: develop\n  sync_command: [bd, sync, '{plan}']\n",
        )
        cfg = WorktreeConfig(tmp_path)
        assert cfg.base_branch == "develop"
        assert cfg.sync_command == ["bd", "sync", "{plan}"]
        # Untouched keys keep their defaults
        assert cfg.primary_branch == "main"

    def test_env_overrides_beat_project_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_project_config(tmp_path, "worktrees:\n  base_branch: develop\n")
        monkeypatch.setenv("SPECKS_WORKTREES__BASE_BRANCH", "trunk")
        monkeypatch.setenv("SPECKS_WORKTREES__INIT_COMMAND", '["make", "setup"]')
        cfg = WorktreeConfig(tmp_path)
        assert cfg.base_branch == "trunk"
        assert cfg.init_command == ["make", "setup"]

    def test_malformed_env_key_fails(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECKS_WORKTREES____X", "1")
        with pytest.raises(ConfigError):
            ConfigManager(tmp_path).load_config()

    def test_invalid_yaml_fails_closed(self, tmp_path: Path) -> None:
        _write_project_config(tmp_path, "worktrees: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigManager(tmp_path).load_config()

    def test_schema_violation_is_config_error(self, tmp_path: Path) -> None:
        _write_project_config(tmp_path, "worktrees:\n  branch_namespace: 'has/slash'\n")
        with pytest.raises(ConfigError) as excinfo:
            ConfigManager(tmp_path).load_config()
        assert excinfo.value.context["errors"]

    def test_get_dot_notation(self, tmp_path: Path) -> None:
        mgr = ConfigManager(tmp_path)
        assert mgr.get("worktrees.remote_name") == "origin"
        assert mgr.get("worktrees.nope", "fallback") == "fallback"

    def test_logging_defaults(self, tmp_path: Path) -> None:
        cfg = LoggingConfig(tmp_path)
        assert cfg.level == "WARNING"
        assert "%(message)s" in cfg.format


class TestInfrastructurePaths:
    @pytest.mark.parametrize(
        "path, expected",
        [
            (".specks/specks-auth.md", True),
            ("./.specks/specks-auth.md", True),
            (".beads/issues.jsonl", True),
            (".specks", True),
            (".specks-worktrees/x", False),
            ("src/.specks/file", False),
            ("README.md", False),
        ],
    )
    def test_is_infrastructure_path(self, tmp_path: Path, path: str, expected: bool) -> None:
        assert WorktreeConfig(tmp_path).is_infrastructure_path(path) is expected
