import os
import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'specks' and tests/ importable as 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from helpers.git_repo import init_repo  # noqa: E402

_GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "specks-tests",
    "GIT_AUTHOR_EMAIL": "tests@example.invalid",
    "GIT_COMMITTER_NAME": "specks-tests",
    "GIT_COMMITTER_EMAIL": "tests@example.invalid",
}


def pytest_configure(config):  # type: ignore[no-untyped-def]
    config.addinivalue_line("markers", "requires_git: test drives a real git repository")


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path_factory, monkeypatch):
    """Deterministic git identity, no user git config, no SPECKS_* overrides."""
    for key in list(os.environ):
        if key.startswith("SPECKS_"):
            monkeypatch.delenv(key, raising=False)
    for key, value in _GIT_IDENTITY.items():
        monkeypatch.setenv(key, value)
    # Developer hooks, signing and default-branch settings must not leak in.
    monkeypatch.setenv("HOME", str(tmp_path_factory.mktemp("home")))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_DIR", raising=False)
    monkeypatch.delenv("GIT_WORK_TREE", raising=False)
    yield


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A real git repository on ``main`` with one commit."""
    return init_repo(tmp_path / "repo")
