from __future__ import annotations

from pathlib import Path

import pytest

from helpers.git_repo import add_manual_worktree, branches, registered_worktrees, session_files, write_plan
from specks.core.exceptions import AmbiguousTargetError, DirtyWorktreeError, WorktreeNotFoundError
from specks.core.worktree import create_worktree, remove_worktree


@pytest.mark.requires_git
class TestRemoveWorktree:
    def test_remove_by_plan_path(self, git_repo: Path) -> None:
        write_plan(git_repo)
        created = create_worktree(git_repo, ".specks/specks-auth.md")

        info = remove_worktree(git_repo, ".specks/specks-auth.md")

        assert info.branch == created.branch_name
        assert info.worktree_path == created.worktree_path
        assert info.session_id == created.session.session_id
        assert info.speck_path == ".specks/specks-auth.md"
        assert info.branch_deleted is True
        assert not created.worktree_path.exists()
        assert branches(git_repo) == []
        assert registered_worktrees(git_repo) == []
        assert session_files(git_repo) == []

    def test_remove_by_branch_name(self, git_repo: Path) -> None:
        write_plan(git_repo)
        created = create_worktree(git_repo, ".specks/specks-auth.md")

        info = remove_worktree(git_repo, created.branch_name)

        assert info.to_dict()["branch_name"] == created.branch_name
        assert branches(git_repo) == []

    def test_remove_by_relative_and_absolute_path(self, git_repo: Path) -> None:
        first = add_manual_worktree(git_repo, "specks/one-20260101-000000")
        second = add_manual_worktree(git_repo, "specks/two-20260101-000000")

        remove_worktree(git_repo, ".specks-worktrees/specks__one-20260101-000000")
        remove_worktree(git_repo, str(second))

        assert not first.exists()
        assert not second.exists()
        assert branches(git_repo) == []

    def test_plan_with_several_worktrees_is_ambiguous(self, git_repo: Path) -> None:
        older = add_manual_worktree(git_repo, "specks/auth-20260101-000000")
        newer = add_manual_worktree(git_repo, "specks/auth-20260301-000000")

        with pytest.raises(AmbiguousTargetError) as excinfo:
            remove_worktree(git_repo, ".specks/specks-auth.md")

        err = excinfo.value
        assert err.exit_code == 9
        assert [c["branch"] for c in err.candidates] == [
            "specks/auth-20260301-000000",
            "specks/auth-20260101-000000",
        ]
        assert [c["path"] for c in err.candidates] == [str(newer), str(older)]
        assert older.exists() and newer.exists()

        remove_worktree(git_repo, "specks/auth-20260101-000000")
        assert branches(git_repo) == ["specks/auth-20260301-000000"]

    def test_dirty_worktree_needs_force(self, git_repo: Path) -> None:
        write_plan(git_repo)
        created = create_worktree(git_repo, ".specks/specks-auth.md")
        (created.worktree_path / "scratch.txt").write_text("unsaved", encoding="utf-8")

        with pytest.raises(DirtyWorktreeError) as excinfo:
            remove_worktree(git_repo, ".specks/specks-auth.md")
        assert excinfo.value.exit_code == 10
        assert created.worktree_path.exists()
        assert branches(git_repo) == [created.branch_name]

        remove_worktree(git_repo, ".specks/specks-auth.md", force=True)
        assert not created.worktree_path.exists()
        assert branches(git_repo) == []

    def test_unknown_target(self, git_repo: Path) -> None:
        add_manual_worktree(git_repo, "specks/auth-20260101-000000")

        for target in (".specks/specks-other.md", "specks/other-20260101-000000", "nowhere"):
            with pytest.raises(WorktreeNotFoundError) as excinfo:
                remove_worktree(git_repo, target)
            assert excinfo.value.exit_code == 12

        assert branches(git_repo) == ["specks/auth-20260101-000000"]
