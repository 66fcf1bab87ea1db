from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from helpers.git_repo import write_plan
from specks import __version__
from specks.cli._dispatcher import build_parser, discover_commands, discover_domains, discover_root_commands, main


@pytest.fixture(autouse=True)
def _reset_specks_logger():
    logger = logging.getLogger("specks")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)


def test_discovers_commands() -> None:
    assert "worktree" in discover_domains()
    assert "commands" not in discover_domains()
    assert set(discover_commands("worktree")) == {"create", "list", "cleanup", "remove"}
    assert "merge" in discover_root_commands()


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_no_domain_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 0
    assert "worktree" in capsys.readouterr().out


def test_domain_without_command_prints_domain_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["worktree"]) == 1
    out = capsys.readouterr().out
    assert "create" in out and "cleanup" in out


def test_cleanup_modes_are_exclusive() -> None:
    parser = build_parser()
    assert parser.parse_args(["worktree", "cleanup"]).mode == "merged"
    assert parser.parse_args(["worktree", "cleanup", "--stale", "-n"]).mode == "stale"
    with pytest.raises(SystemExit):
        parser.parse_args(["worktree", "cleanup", "--merged", "--all"])


@pytest.mark.requires_git
def test_create_end_to_end(git_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    write_plan(git_repo)

    rc = main(["worktree", "create", ".specks/specks-auth.md", "--json", "--repo-root", str(git_repo)])

    assert rc == 0
    assert json.loads(capsys.readouterr().out)["branch_name"].startswith("specks/auth-")


@pytest.mark.requires_git
def test_exit_code_propagates(git_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    write_plan(git_repo)

    rc = main(["worktree", "create", ".specks/specks-auth.md", "--base", "nope", "--repo-root", str(git_repo)])

    assert rc == 6
    assert "Base branch 'nope' does not exist" in capsys.readouterr().err


@pytest.mark.requires_git
def test_verbose_enables_debug_logging(git_repo: Path) -> None:
    rc = main(["--verbose", "worktree", "list", "--json", "--repo-root", str(git_repo)])

    assert rc == 0
    assert logging.getLogger("specks").level == logging.DEBUG


def test_not_a_repository(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["worktree", "list", "--json", "--repo-root", str(tmp_path)])

    assert rc == 5
    assert json.loads(capsys.readouterr().err)["error"] == "not_a_repository"
