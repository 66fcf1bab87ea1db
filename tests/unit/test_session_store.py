from __future__ import annotations

import json
from pathlib import Path

import pytest

from specks.core.config import WorktreeConfig
from specks.core.exceptions import SessionError
from specks.core.session import Session, SessionStatus, SessionStore, sanitize_session_id


def _session(session_id: str = "auth-20260210-143022", **overrides) -> Session:
    data = dict(
        session_id=session_id,
        speck_path=".specks/specks-auth.md",
        speck_slug="auth",
        branch_name=f"specks/{session_id}",
        base_branch="main",
        worktree_path=f"/repo/.specks-worktrees/specks__{session_id}",
        created_at="2026-02-10T14:30:22Z",
        last_updated_at="2026-02-10T14:30:22Z",
        total_steps=3,
    )
    data.update(overrides)
    return Session(**data)


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(WorktreeConfig(tmp_path))


class TestSessionStore:
    def test_save_then_load(self, store: SessionStore) -> None:
        session = _session(bead_mapping={"step-0": "bd-1"}, beads_root="bd-0")
        path = store.save(session)

        assert path == store.sessions_dir / "auth-20260210-143022.json"
        loaded = store.load("auth-20260210-143022")
        assert loaded.branch_name == "specks/auth-20260210-143022"
        assert loaded.bead_mapping == {"step-0": "bd-1"}
        assert loaded.status is SessionStatus.PENDING
        assert loaded.total_steps == 3

    def test_record_is_pretty_json(self, store: SessionStore) -> None:
        path = store.save(_session())
        text = path.read_text(encoding="utf-8")
        assert text.endswith("\n")
        assert json.loads(text)["schema_version"] == "1"

    def test_missing_session_raises(self, store: SessionStore) -> None:
        with pytest.raises(SessionError):
            store.load("nope")
        assert store.load_optional("nope") is None

    def test_corrupt_record_raises_on_load_but_is_absent_when_listing(self, store: SessionStore) -> None:
        store.sessions_dir.mkdir(parents=True)
        (store.sessions_dir / "bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(SessionError):
            store.load("bad")
        assert store.load_optional("bad") is None
        assert "bad" in store.list_ids()

    def test_invalid_record_refused_on_save(self, store: SessionStore) -> None:
        with pytest.raises(SessionError):
            store.save(_session(total_steps=-1))
        assert not store.exists("auth-20260210-143022")

    def test_delete_removes_record_and_artifacts(self, store: SessionStore) -> None:
        store.save(_session())
        step_dir = store.step_artifacts_dir("auth-20260210-143022", 1)
        (step_dir / "architect.json").write_text("{}", encoding="utf-8")
        assert step_dir == store.artifacts_root / "auth-20260210-143022" / "step-1"

        assert store.delete("auth-20260210-143022") is True
        assert not store.exists("auth-20260210-143022")
        assert not store.artifacts_dir("auth-20260210-143022").exists()
        assert store.delete("auth-20260210-143022") is False

    def test_list_ids_includes_artifact_only_sessions(self, store: SessionStore) -> None:
        store.save(_session("a-20260101-000000"))
        store.step_artifacts_dir("b-20260101-000000", 0)
        assert store.list_ids() == ["a-20260101-000000", "b-20260101-000000"]

    def test_record_step_advances_status(self, store: SessionStore) -> None:
        store.save(_session(total_steps=2))
        s = store.record_step("auth-20260210-143022", "step-0", commit_hash="abc", summary="did 0")
        assert s.status is SessionStatus.IN_PROGRESS
        s = store.record_step("auth-20260210-143022", "step-1", commit_hash="def", summary="did 1")
        assert s.status is SessionStatus.COMPLETED
        assert [x.step for x in store.load("auth-20260210-143022").step_summaries] == ["step-0", "step-1"]

    def test_set_status(self, store: SessionStore) -> None:
        store.save(_session())
        store.set_status("auth-20260210-143022", SessionStatus.NEEDS_RECONCILE)
        assert store.load("auth-20260210-143022").status is SessionStatus.NEEDS_RECONCILE


@pytest.mark.parametrize("bad", ["", "../x", "a/b", "a b"])
def test_sanitize_session_id_rejects_escapes(bad: str) -> None:
    with pytest.raises(SessionError):
        sanitize_session_id(bad)
