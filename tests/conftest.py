"""
Shared fixtures for coderoom tests.

Repositories are real git repositories created under tmp_path with fixed
author and committer dates, so branch recency and commit order are
deterministic.
"""

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from coderoom.api import Coderoom
from coderoom.config import get_default_config

BASE_TS = 1_700_000_000


def git(path, *args, ts=None):
    """Run git in ``path`` and return stripped stdout."""
    env = dict(
        os.environ,
        GIT_AUTHOR_NAME="Test Author",
        GIT_AUTHOR_EMAIL="author@example.com",
        GIT_COMMITTER_NAME="Test Author",
        GIT_COMMITTER_EMAIL="author@example.com",
        GIT_CONFIG_NOSYSTEM="1",
        GIT_MERGE_AUTOEDIT="no",
    )
    if ts is not None:
        env["GIT_AUTHOR_DATE"] = f"{ts} +0000"
        env["GIT_COMMITTER_DATE"] = f"{ts} +0000"
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", "-c", "init.defaultBranch=main", *args],
        cwd=str(path),
        env=env,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


class GitRepos:
    """Factory for throwaway repositories under one base directory."""

    def __init__(self, base):
        self.base = Path(base)
        self._counter = 0

    def init(self, relpath, branch="main"):
        path = self.base / relpath
        path.mkdir(parents=True, exist_ok=True)
        git(path, "init", "-q")
        git(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
        return path

    def commit(self, path, message, ts=None):
        """Commit a new file and return the commit hash."""
        self._counter += 1
        ts = BASE_TS + self._counter * 60 if ts is None else ts
        (Path(path) / f"file-{self._counter}.txt").write_text(f"{message}\n")
        git(path, "add", "-A")
        git(path, "commit", "-q", "-m", message, ts=ts)
        return git(path, "rev-parse", "HEAD")

    def create(self, relpath, commits=("initial commit",), readme=None, origin=None):
        """Initialize a repository on ``main`` with the given commit messages."""
        path = self.init(relpath)
        if readme is not None:
            (path / "README.md").write_text(readme)
        for message in commits:
            self.commit(path, message)
        if origin:
            git(path, "remote", "add", "origin", origin)
        return path

    def checkout(self, path, branch, create=False):
        if create:
            git(path, "checkout", "-q", "-b", branch)
        else:
            git(path, "checkout", "-q", branch)

    def corrupt(self, path):
        """Make git refuse to open the repository."""
        (Path(path) / ".git" / "HEAD").write_text("garbage\n")


@pytest.fixture
def git_repos(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    return GitRepos(tmp_path / "src")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "catalog.db"


@pytest.fixture
def room(tmp_path, db_path):
    """Coderoom on a private catalog and config file."""
    return Coderoom(
        config=get_default_config(),
        config_path=str(tmp_path / "config.yaml"),
        db_path=str(db_path),
    )
