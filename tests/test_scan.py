"""
Tests for the repository scanner.

Tests cover:
- Discovery order, nested repositories and the ignore set
- Metadata extraction (branch, origin, README excerpt, empty repos)
- Idempotent rescans and update detection
- Pruning on and off, and protection of unreadable subtrees
- Corrupt repositories and cancellation
"""

import os

import pytest

from coderoom.database import Database
from coderoom.database.errors import get_scan_errors
from coderoom.database.repository import get_repo_by_path, get_repo_id, list_repo_paths
from coderoom.database.tags import add_tag_association, list_tag_counts
from coderoom.exit_codes import NotFoundError
from coderoom.services import CancelToken, ScanService
from coderoom.services.scan_service import read_readme_excerpt

from conftest import git


def real(path):
    return os.path.realpath(str(path))


@pytest.fixture
def scanner(db_path):
    return ScanService(db_path)


def catalog_paths(db_path):
    with Database(db_path) as db:
        return list_repo_paths(db)


class TestDiscovery:
    """Tests for walking roots."""

    def test_finds_repositories_in_sorted_order(self, git_repos, scanner):
        git_repos.create("b/two")
        git_repos.create("a/one")
        git_repos.create("c")

        found = list(scanner.discover(real(git_repos.base)))

        assert found == [
            real(git_repos.base / "a" / "one"),
            real(git_repos.base / "b" / "two"),
            real(git_repos.base / "c"),
        ]

    def test_does_not_descend_into_repositories(self, git_repos, scanner):
        outer = git_repos.create("outer")
        git_repos.create("outer/vendor/inner")

        assert list(scanner.discover(real(git_repos.base))) == [real(outer)]

    def test_ignored_names_skip_subtree(self, git_repos, scanner):
        git_repos.create("app")
        git_repos.create("app2/node_modules/dep")
        git_repos.create("deep/target/x/y")

        found = list(scanner.discover(real(git_repos.base), {"node_modules", "target"}))

        assert found == [real(git_repos.base / "app")]

    def test_root_is_never_ignored(self, git_repos, scanner):
        root = git_repos.base / "node_modules"
        git_repos.create("node_modules/lib")

        found = list(scanner.discover(real(root), {"node_modules"}))

        assert found == [real(root / "lib")]

    def test_gitfile_counts_as_repository(self, tmp_path, scanner):
        worktree = tmp_path / "wt"
        worktree.mkdir()
        (worktree / ".git").write_text("gitdir: /elsewhere\n")

        assert list(scanner.discover(real(tmp_path))) == [real(worktree)]

    def test_symlinks_are_not_followed(self, git_repos, scanner, tmp_path):
        target = git_repos.create("real")
        walk_root = tmp_path / "walk"
        walk_root.mkdir()
        os.symlink(str(target), str(walk_root / "link"))

        assert list(scanner.discover(real(walk_root))) == []


class TestMetadata:
    """Tests for metadata extraction."""

    def test_reads_branch_origin_and_readme(self, git_repos, scanner):
        path = git_repos.create(
            "tool",
            readme="# Tool\n\nParser for TOML files.\n",
            origin="https://example.com/tool.git",
        )

        repo = scanner.read_metadata(real(path), now=123)

        assert repo.name == "tool"
        assert repo.default_branch == "main"
        assert repo.origin_url == "https://example.com/tool.git"
        assert repo.readme_excerpt == "# Tool Parser for TOML files."
        assert repo.last_commit_ts is not None
        assert repo.last_scan_ts == 123

    def test_falls_back_to_other_remote(self, git_repos, scanner):
        path = git_repos.create("fork")
        git(path, "remote", "add", "upstream", "https://example.com/up.git")

        assert scanner.read_metadata(real(path)).origin_url == "https://example.com/up.git"

    def test_empty_repository(self, git_repos, scanner):
        path = git_repos.init("empty")

        repo = scanner.read_metadata(real(path))

        assert repo.last_commit_ts is None
        assert repo.default_branch == "main"
        assert repo.readme_excerpt is None

    def test_readme_excerpt_is_bounded(self, tmp_path):
        lines = [f"line {i} " + "x" * 40 for i in range(20)]
        (tmp_path / "README").write_text("\n".join(lines) + "\n")

        excerpt = read_readme_excerpt(str(tmp_path))

        assert len(excerpt) == 280
        assert excerpt.startswith("line 0 ")
        assert "line 10" not in excerpt

    def test_readme_control_characters_removed(self, tmp_path):
        (tmp_path / "README.md").write_text("Hello\x07 \tworld\x1b[0m\n")

        assert read_readme_excerpt(str(tmp_path)) == "Hello world [0m"


class TestScanRoot:
    """Tests for scanning and pruning."""

    def test_scan_adds_repositories(self, git_repos, scanner, db_path):
        git_repos.create("one")
        git_repos.create("two")

        summary = scanner.scan_root(str(git_repos.base))

        assert summary.added == 2
        assert summary.found == 2
        assert catalog_paths(db_path) == [
            real(git_repos.base / "one"),
            real(git_repos.base / "two"),
        ]

    def test_rescan_is_idempotent(self, git_repos, scanner, db_path):
        git_repos.create("one")
        scanner.scan_root(str(git_repos.base))
        with Database(db_path) as db:
            first = get_repo_by_path(db, real(git_repos.base / "one"))

        summary = scanner.scan_root(str(git_repos.base))

        with Database(db_path) as db:
            second = get_repo_by_path(db, real(git_repos.base / "one"))
        assert summary.added == 0
        assert summary.unchanged == 1
        assert second.same_metadata(first)
        assert second.first_seen_ts == first.first_seen_ts

    def test_new_commit_is_an_update(self, git_repos, scanner):
        path = git_repos.create("one")
        scanner.scan_root(str(git_repos.base))
        git_repos.commit(path, "second commit")

        summary = scanner.scan_root(str(git_repos.base))

        assert summary.updated == 1

    def test_missing_root(self, scanner, tmp_path):
        with pytest.raises(NotFoundError):
            scanner.scan_root(str(tmp_path / "nope"))

    def test_prune_off_keeps_vanished_repository(self, git_repos, scanner, db_path):
        gone = git_repos.create("gone")
        git_repos.create("stays")
        scanner.scan_root(str(git_repos.base))
        _remove_tree(gone)

        summary = scanner.scan_root(str(git_repos.base))

        assert summary.pruned == 0
        assert real(gone) in catalog_paths(db_path)

    def test_prune_removes_vanished_repository_and_its_tags(self, git_repos, scanner, db_path):
        gone = git_repos.create("gone")
        git_repos.create("stays")
        scanner.scan_root(str(git_repos.base))
        with Database(db_path) as db:
            add_tag_association(db, get_repo_id(db, real(gone)), "old")
        _remove_tree(gone)

        summary = scanner.scan_root(str(git_repos.base), prune=True)

        assert summary.pruned == 1
        assert catalog_paths(db_path) == [real(git_repos.base / "stays")]
        with Database(db_path) as db:
            assert list_tag_counts(db) == []

    def test_prune_is_limited_to_root(self, git_repos, scanner, db_path):
        git_repos.create("a/one")
        other = git_repos.create("b/two")
        scanner.scan_root(str(git_repos.base))

        scanner.scan_root(str(git_repos.base / "a"), prune=True)

        assert real(other) in catalog_paths(db_path)

    def test_prune_respects_ignore_set(self, git_repos, scanner, db_path):
        git_repos.create("app/vendor/dep")
        scanner.scan_root(str(git_repos.base))

        summary = scanner.scan_root(str(git_repos.base), ignore_names={"vendor"}, prune=True)

        assert summary.pruned == 1
        assert catalog_paths(db_path) == []

    def test_corrupt_repository_is_skipped_and_recorded(self, git_repos, scanner, db_path):
        bad = git_repos.create("bad")
        git_repos.create("good")
        scanner.scan_root(str(git_repos.base))
        git_repos.corrupt(bad)

        summary = scanner.scan_root(str(git_repos.base), prune=True)

        assert summary.skipped == 1
        assert summary.issues[0].error_type == "git-data-corrupt"
        # The last good metadata survives and is not pruned
        assert real(bad) in catalog_paths(db_path)
        with Database(db_path) as db:
            errors = get_scan_errors(db)
        assert [e['path'] for e in errors] == [real(bad)]

    @pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0,
                        reason="root can read any directory")
    def test_unreadable_directory_is_reported_and_protected(self, git_repos, scanner, db_path):
        locked = git_repos.base / "locked"
        inside = git_repos.create("locked/inside")
        git_repos.create("open")
        scanner.scan_root(str(git_repos.base))

        os.chmod(str(locked), 0)
        try:
            summary = scanner.scan_root(str(git_repos.base), prune=True)
        finally:
            os.chmod(str(locked), 0o755)

        assert summary.pruned == 0
        assert [issue.path for issue in summary.issues] == [real(locked)]
        assert summary.issues[0].error_type == "filesystem-access"
        assert real(inside) in catalog_paths(db_path)

    def test_cancelled_scan_does_not_prune(self, git_repos, scanner, db_path):
        gone = git_repos.create("gone")
        scanner.scan_root(str(git_repos.base))
        _remove_tree(gone)
        git_repos.create("new")
        token = CancelToken()
        token.cancel()

        summary = scanner.scan_root(str(git_repos.base), prune=True, cancel=token)

        assert summary.cancelled
        assert summary.added == 0
        assert catalog_paths(db_path) == [real(gone)]

    def test_scan_roots_records_missing_root(self, git_repos, scanner, tmp_path):
        git_repos.create("one")

        summary = scanner.scan_roots([str(tmp_path / "missing"), str(git_repos.base)])

        assert summary.added == 1
        assert summary.issues[0].error_type == "not-found"

    def test_prune_missing(self, git_repos, scanner, db_path):
        gone = git_repos.create("gone")
        git_repos.create("stays")
        scanner.scan_root(str(git_repos.base))
        _remove_tree(gone)

        summary = scanner.prune_missing()

        assert summary.pruned == 1
        assert catalog_paths(db_path) == [real(git_repos.base / "stays")]


def _remove_tree(path):
    import shutil
    shutil.rmtree(str(path))
