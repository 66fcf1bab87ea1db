from __future__ import annotations

import json
import re
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

from helpers.git_repo import (
    branches,
    git,
    registered_worktrees,
    session_files,
    status,
    worktree_dirs,
    write_plan,
)
from specks.core.exceptions import (
    BaseBranchNotFoundError,
    GitCommandError,
    NotARepositoryError,
    PlanNotFoundError,
    PlanValidationError,
    WorktreeCreateError,
    WorktreeError,
    WorktreeExistsError,
)
from specks.core.session import SessionStatus
from specks.core.worktree import create as create_module
from specks.core.worktree import create_worktree

NOW = datetime(2026, 2, 10, 14, 30, 22, tzinfo=timezone.utc)


def _assert_nothing_created(repo: Path) -> None:
    assert branches(repo) == []
    assert registered_worktrees(repo) == []
    assert worktree_dirs(repo) == []
    assert session_files(repo) == []


@pytest.mark.requires_git
class TestCreateWorktree:
    def test_creates_branch_directory_and_session(self, git_repo: Path) -> None:
        write_plan(git_repo, "auth", steps=3)

        result = create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert result.reused is False
        assert result.slug == "auth"
        assert result.branch_name == "specks/auth-20260210-143022"
        assert result.worktree_path == git_repo / ".specks-worktrees" / "specks__auth-20260210-143022"
        assert result.worktree_path.is_dir()
        assert registered_worktrees(git_repo) == [result.worktree_path]
        assert branches(git_repo) == ["specks/auth-20260210-143022"]

        record = json.loads(
            (git_repo / ".specks-worktrees" / ".sessions" / "auth-20260210-143022.json").read_text()
        )
        assert record["speck_path"] == ".specks/specks-auth.md"
        assert record["branch_name"] == "specks/auth-20260210-143022"
        assert record["base_branch"] == "main"
        assert record["total_steps"] == 3
        assert record["created_at"] == "2026-02-10T14:30:22Z"
        assert record["status"] == SessionStatus.PENDING.value
        assert record["reused"] is False

    def test_primary_checkout_stays_clean(self, git_repo: Path) -> None:
        write_plan(git_repo)
        create_worktree(git_repo, ".specks/specks-auth.md")
        assert status(git_repo) == ""

    def test_second_invocation_reuses_live_worktree(self, git_repo: Path) -> None:
        write_plan(git_repo)
        first = create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)
        before = session_files(git_repo)[0].read_text()

        later = datetime(2026, 2, 11, 9, 0, 0, tzinfo=timezone.utc)
        second = create_worktree(git_repo, ".specks/specks-auth.md", now=later)

        assert second.reused is True
        assert second.worktree_path == first.worktree_path
        assert second.branch_name == first.branch_name
        assert branches(git_repo) == [first.branch_name]
        assert len(session_files(git_repo)) == 1
        assert session_files(git_repo)[0].read_text() == before

    def test_reuse_without_session_record(self, git_repo: Path) -> None:
        write_plan(git_repo)
        first = create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)
        session_files(git_repo)[0].unlink()

        second = create_worktree(git_repo, ".specks/specks-auth.md")

        assert second.reused is True
        assert second.session.session_id == "auth-20260210-143022"
        assert second.session.created_at == "2026-02-10T14:30:22Z"
        assert second.worktree_path == first.worktree_path
        assert session_files(git_repo) == []

    def test_default_branch_name_is_timestamped(self, git_repo: Path) -> None:
        write_plan(git_repo)
        result = create_worktree(git_repo, git_repo / ".specks" / "specks-auth.md")
        assert re.fullmatch(r"specks/auth-\d{8}-\d{6}", result.branch_name)

    def test_fork_from_explicit_base(self, git_repo: Path) -> None:
        write_plan(git_repo)
        git(git_repo, "branch", "develop")
        result = create_worktree(git_repo, ".specks/specks-auth.md", "develop")
        assert result.session.base_branch == "develop"


@pytest.mark.requires_git
class TestCreatePreconditions:
    def test_not_a_repository(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(NotARepositoryError) as excinfo:
            create_worktree(plain, "plan.md")
        assert excinfo.value.exit_code == 5

    def test_missing_directory_is_not_a_repository(self, tmp_path: Path) -> None:
        with pytest.raises(NotARepositoryError):
            create_worktree(tmp_path / "missing", "plan.md")

    def test_subdirectory_is_rejected(self, git_repo: Path) -> None:
        sub = git_repo / "sub"
        sub.mkdir()
        with pytest.raises(NotARepositoryError):
            create_worktree(sub, "plan.md")

    def test_missing_base_branch(self, git_repo: Path) -> None:
        write_plan(git_repo)
        with pytest.raises(BaseBranchNotFoundError) as excinfo:
            create_worktree(git_repo, ".specks/specks-auth.md", "nope")
        assert excinfo.value.exit_code == 6
        _assert_nothing_created(git_repo)

    def test_missing_plan(self, git_repo: Path) -> None:
        with pytest.raises(PlanNotFoundError) as excinfo:
            create_worktree(git_repo, ".specks/specks-missing.md")
        assert excinfo.value.exit_code == 7
        _assert_nothing_created(git_repo)

    def test_plan_without_steps(self, git_repo: Path) -> None:
        write_plan(git_repo, "empty", steps=0)
        with pytest.raises(PlanValidationError) as excinfo:
            create_worktree(git_repo, ".specks/specks-empty.md")
        assert excinfo.value.exit_code == 8
        _assert_nothing_created(git_repo)

    def test_existing_directory_is_not_overwritten(self, git_repo: Path) -> None:
        write_plan(git_repo)
        occupied = git_repo / ".specks-worktrees" / "specks__auth-20260210-143022"
        occupied.mkdir(parents=True)
        (occupied / "keep.txt").write_text("mine", encoding="utf-8")

        with pytest.raises(WorktreeExistsError) as excinfo:
            create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert excinfo.value.exit_code == 3
        assert (occupied / "keep.txt").read_text() == "mine"
        assert branches(git_repo) == []


def _set_command(monkeypatch: pytest.MonkeyPatch, key: str, argv: list) -> None:
    monkeypatch.setenv(f"SPECKS_WORKTREES__{key}", json.dumps(argv))


@pytest.mark.requires_git
class TestCreateRollback:
    def test_failed_init_leaves_nothing_behind(self, git_repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        write_plan(git_repo)
        _set_command(monkeypatch, "INIT_COMMAND", ["git", "no-such-subcommand"])

        with pytest.raises(WorktreeCreateError) as excinfo:
            create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert excinfo.value.step == "init"
        assert excinfo.value.exit_code == 1
        assert excinfo.value.__cause__ is not None
        _assert_nothing_created(git_repo)
        assert not (git_repo / ".specks-worktrees").exists()
        assert status(git_repo) == ""

    def test_unparseable_sync_output_leaves_nothing_behind(
        self, git_repo: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_plan(git_repo)
        _set_command(monkeypatch, "SYNC_COMMAND", ["git", "--version"])

        with pytest.raises(WorktreeCreateError) as excinfo:
            create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert excinfo.value.step == "sync"
        _assert_nothing_created(git_repo)

    def test_failed_session_write_leaves_nothing_behind(self, git_repo: Path) -> None:
        write_plan(git_repo)
        root = git_repo / ".specks-worktrees"
        root.mkdir()
        # A file where the sessions directory should be makes the final write fail.
        (root / ".sessions").write_text("in the way", encoding="utf-8")

        with pytest.raises(WorktreeCreateError) as excinfo:
            create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert excinfo.value.step == "session"
        assert branches(git_repo) == []
        assert registered_worktrees(git_repo) == []
        assert worktree_dirs(git_repo) == []
        assert (root / ".sessions").read_text() == "in the way"

    def test_retry_after_failure_succeeds(self, git_repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        write_plan(git_repo)
        _set_command(monkeypatch, "INIT_COMMAND", ["git", "no-such-subcommand"])
        with pytest.raises(WorktreeCreateError):
            create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        monkeypatch.delenv("SPECKS_WORKTREES__INIT_COMMAND")
        result = create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)
        assert result.reused is False
        assert result.worktree_path.is_dir()


@pytest.mark.requires_git
class TestCreateCollaborators:
    def test_sync_mapping_is_recorded_and_infrastructure_committed(
        self, git_repo: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_plan(git_repo)
        init_script = (
            "import pathlib; p = pathlib.Path('.beads'); p.mkdir(exist_ok=True); "
            "(p / 'issues.jsonl').write_text('{}\\n')"
        )
        sync_script = (
            "import json; print(json.dumps({'status': 'ok', 'data': "
            "{'bead_mapping': {'step-0': 'bd-1', 'step-1': 'bd-2'}, 'root_bead_id': 'bd-0'}}))"
        )
        _set_command(monkeypatch, "INIT_COMMAND", [sys.executable, "-c", init_script])
        _set_command(monkeypatch, "SYNC_COMMAND", [sys.executable, "-c", sync_script])

        result = create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert result.session.beads_root == "bd-0"
        assert result.session.bead_mapping == {"step-0": "bd-1", "step-1": "bd-2"}
        subject = git(result.worktree_path, "log", "-1", "--format=%s").strip()
        assert subject == "chore: init worktree and sync beads for auth"
        assert ".beads/issues.jsonl" in git(result.worktree_path, "ls-files")
        assert status(result.worktree_path) == ""
        # Main is untouched.
        assert ".beads/issues.jsonl" not in git(git_repo, "ls-files")


def _git_failure(*argv: str) -> GitCommandError:
    return GitCommandError("simulated git failure", argv=["git", *argv], returncode=128)


def _fail_layout(monkeypatch: pytest.MonkeyPatch) -> None:
    ensure = create_module._RootLayout.ensure

    def ensure_then_fail(self) -> None:
        ensure(self)
        raise OSError("disk full")

    monkeypatch.setattr(create_module._RootLayout, "ensure", ensure_then_fail)


def _fail_branch(monkeypatch: pytest.MonkeyPatch) -> None:
    run_git = create_module.run_git

    def refuse_branch(root, *args, **kwargs):
        if args and args[0] == "branch":
            raise _git_failure(*args)
        return run_git(root, *args, **kwargs)

    monkeypatch.setattr(create_module, "run_git", refuse_branch)


def _fail_worktree_half_made(monkeypatch: pytest.MonkeyPatch) -> None:
    def half_made(root: Path, path: Path, branch: str) -> None:
        path.mkdir(parents=True)
        (path / "README.md").write_text("partial checkout\n", encoding="utf-8")
        raise _git_failure("worktree", "add", str(path), branch)

    monkeypatch.setattr(create_module, "add_worktree", half_made)


def _fail_worktree_after_registration(monkeypatch: pytest.MonkeyPatch) -> None:
    add_worktree = create_module.add_worktree

    def add_then_fail(root: Path, path: Path, branch: str) -> None:
        add_worktree(root, path, branch)
        raise _git_failure("worktree", "add", str(path), branch)

    monkeypatch.setattr(create_module, "add_worktree", add_then_fail)


def _fail_init(monkeypatch: pytest.MonkeyPatch) -> None:
    def init(template, *, plan, worktree):
        raise WorktreeError("init failed: simulated")

    monkeypatch.setattr(create_module, "run_init", init)


def _fail_sync(monkeypatch: pytest.MonkeyPatch) -> None:
    def sync(template, *, plan, worktree):
        raise WorktreeError("sync failed: simulated")

    monkeypatch.setattr(create_module, "run_sync", sync)


def _fail_commit(monkeypatch: pytest.MonkeyPatch) -> None:
    def commit(worktree, cfg, plan_rel, slug):
        raise _git_failure("commit", "-m", "chore")

    monkeypatch.setattr(create_module, "_commit_infrastructure", commit)


def _fail_session_write(monkeypatch: pytest.MonkeyPatch) -> None:
    def write_json_atomic(path, data, **kwargs):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        raise OSError("no space left on device")

    monkeypatch.setattr("specks.core.session.store.write_json_atomic", write_json_atomic)


def _fail_session_build(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_session(**fields):
        raise ValueError("bad session field")

    monkeypatch.setattr(create_module, "Session", broken_session)


@pytest.mark.requires_git
class TestCreateRollbackAtEachStep:
    @pytest.mark.parametrize(
        "step, inject",
        [
            ("layout", _fail_layout),
            ("branch", _fail_branch),
            ("worktree", _fail_worktree_half_made),
            ("worktree", _fail_worktree_after_registration),
            ("init", _fail_init),
            ("sync", _fail_sync),
            ("commit", _fail_commit),
            ("session", _fail_session_write),
            ("session", _fail_session_build),
        ],
        ids=[
            "layout",
            "branch",
            "worktree-half-made",
            "worktree-registered",
            "init",
            "sync",
            "commit",
            "session-write",
            "session-build",
        ],
    )
    def test_failure_leaves_fresh_repository_untouched(
        self, git_repo: Path, monkeypatch: pytest.MonkeyPatch, step: str, inject
    ) -> None:
        write_plan(git_repo)
        inject(monkeypatch)

        with pytest.raises(WorktreeCreateError) as excinfo:
            create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert excinfo.value.step == step
        _assert_nothing_created(git_repo)
        assert not (git_repo / ".specks-worktrees").exists()
        assert status(git_repo) == ""

    def test_session_write_failure_keeps_existing_bookkeeping(
        self, git_repo: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_plan(git_repo)
        sessions = git_repo / ".specks-worktrees" / ".sessions"
        sessions.mkdir(parents=True)
        (sessions / "other-20250101-000000.json").write_text("{}", encoding="utf-8")
        _fail_session_write(monkeypatch)

        with pytest.raises(WorktreeCreateError):
            create_worktree(git_repo, ".specks/specks-auth.md", now=NOW)

        assert [p.name for p in sessions.iterdir()] == ["other-20250101-000000.json"]
        assert branches(git_repo) == []
        assert worktree_dirs(git_repo) == []
