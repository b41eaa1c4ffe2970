"""
Repository scanner for coderoom.

Walks configured roots, detects git repositories, extracts their metadata
and upserts it into the catalog. Optionally prunes catalog entries under a
root that were not found again.
"""

import logging
import os
import re
import time
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, List, Optional, Set

from ..database import Database, transaction
from ..database.errors import SCAN, clear_scan_error_for_path, record_scan_error
from ..database.repository import (
    list_repo_paths,
    list_repo_paths_under_root,
    prune_paths,
    upsert_repo,
)
from ..database.tags import prune_orphan_tags
from ..domain.repository import ADDED, UPDATED, UNCHANGED, Repository
from ..exit_codes import (
    CommandError,
    FilesystemAccessError,
    GitDataError,
    NotFoundError,
)
from ..infra.git_client import GitClient
from .coordinator import CancelToken

logger = logging.getLogger(__name__)

README_CANDIDATES = (
    'README.md',
    'Readme.md',
    'readme.md',
    'README.MD',
    'README.rst',
    'README.txt',
    'README',
)
README_EXCERPT_CHARS = 280
README_EXCERPT_LINES = 10
README_READ_BYTES = 64 * 1024

_WHITESPACE = re.compile(r'\s+')


@dataclass(frozen=True)
class ScanIssue:
    """A path skipped during a scan or rebuild."""
    path: str
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'path': self.path, 'error_type': self.error_type, 'message': self.message}


@dataclass
class ScanSummary:
    """Outcome of one scan (one or more roots)."""
    roots: List[str] = field(default_factory=list)
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    pruned: int = 0
    skipped: int = 0
    issues: List[ScanIssue] = field(default_factory=list)
    cancelled: bool = False

    @property
    def found(self) -> int:
        return self.added + self.updated + self.unchanged

    def count(self, outcome: str) -> None:
        if outcome == ADDED:
            self.added += 1
        elif outcome == UPDATED:
            self.updated += 1
        elif outcome == UNCHANGED:
            self.unchanged += 1

    def merge(self, other: 'ScanSummary') -> 'ScanSummary':
        self.roots.extend(other.roots)
        self.added += other.added
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.pruned += other.pruned
        self.skipped += other.skipped
        self.issues.extend(other.issues)
        self.cancelled = self.cancelled or other.cancelled
        return self

    def to_dict(self) -> Dict:
        return {
            'roots': list(self.roots),
            'found': self.found,
            'added': self.added,
            'updated': self.updated,
            'unchanged': self.unchanged,
            'pruned': self.pruned,
            'skipped': self.skipped,
            'errors': len(self.issues),
            'issues': [issue.to_dict() for issue in self.issues],
            'cancelled': self.cancelled,
        }


def issue_from_error(path: str, error: CommandError) -> ScanIssue:
    return ScanIssue(path, error.kind, str(error))


def read_readme_excerpt(repo_path: str, limit: int = README_EXCERPT_CHARS) -> Optional[str]:
    """
    Short plain-text excerpt of a repository's README.

    The first README candidate that exists wins. Its first non-empty lines
    are joined with spaces, control characters removed, and the result cut
    to ``limit`` characters. Returns None when there is no readable README.
    """
    for candidate in README_CANDIDATES:
        readme = Path(repo_path) / candidate
        if not readme.is_file():
            continue
        try:
            with open(readme, 'rb') as f:
                raw = f.read(README_READ_BYTES)
        except OSError as e:
            logger.debug(f"Cannot read {readme}: {e}")
            return None
        text = raw.decode('utf-8', errors='replace')
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        joined = ' '.join(lines[:README_EXCERPT_LINES])
        cleaned = ''.join(
            ' ' if unicodedata.category(ch) == 'Cc' else ch for ch in joined
        )
        cleaned = _WHITESPACE.sub(' ', cleaned).strip()
        return cleaned[:limit] or None
    return None


def is_under(path: str, directory: str) -> bool:
    prefix = directory if directory.endswith(os.sep) else directory + os.sep
    return path == directory or path.startswith(prefix)


class ScanService:
    """
    Discovers repositories under roots and keeps the catalog in step.

    Example:
        scanner = ScanService(db_path)
        summary = scanner.scan_root("~/src", ignore_names={"node_modules"}, prune=True)
        print(summary.added, summary.pruned)
    """

    def __init__(self, db_path, git_client: Optional[GitClient] = None):
        self.db_path = db_path
        self.git = git_client or GitClient()

    def discover(
        self,
        root: str,
        ignore_names: Iterable[str] = (),
        cancel: Optional[CancelToken] = None,
        on_error: Optional[Callable[[str, OSError], None]] = None,
    ) -> Generator[str, None, None]:
        """
        Yield repository paths under ``root`` in sorted walk order.

        A directory holding a ``.git`` entry is a repository and is not
        descended into. Child directories whose name is in ``ignore_names``
        are skipped with their whole subtree; the root itself is never
        matched against the ignore set. Symlinks are not followed.

        Args:
            root: Canonical directory to walk
            ignore_names: Exact directory names to skip
            cancel: Checked before each directory
            on_error: Called with (directory, error) for unreadable directories
        """
        ignore = set(ignore_names)
        stack = [root]

        while stack:
            if cancel is not None and cancel.cancelled:
                logger.info(f"Scan of {root} cancelled")
                return
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.warning(f"Skipping unreadable directory {current}: {e.strerror or e}")
                if on_error is not None:
                    on_error(current, e)
                continue

            if any(entry.name == '.git' for entry in entries):
                yield current
                continue

            children = []
            for entry in entries:
                try:
                    if not entry.is_dir(follow_symlinks=False):
                        continue
                except OSError:
                    continue
                if entry.name in ignore:
                    logger.debug(f"Ignoring {entry.path}")
                    continue
                children.append(entry.path)

            # Reverse so the smallest name is popped first
            stack.extend(reversed(children))

    def read_metadata(self, repo_path: str, now: Optional[int] = None) -> Repository:
        """
        Extract catalog metadata from a repository.

        Raises:
            FilesystemAccessError: if the directory cannot be read
            GitDataError: if git cannot read the repository
        """
        if not os.access(repo_path, os.R_OK | os.X_OK):
            raise FilesystemAccessError(f"Cannot read {repo_path}", path=repo_path)

        self.git.verify(repo_path)
        head = self.git.head_commit(repo_path)
        last_commit_ts = self.git.commit_time(repo_path, head) if head else None

        return Repository.from_path(
            repo_path,
            default_branch=self.git.current_branch(repo_path),
            origin_url=self.git.origin_url(repo_path),
            readme_excerpt=read_readme_excerpt(repo_path),
            last_commit_ts=last_commit_ts,
            last_scan_ts=int(now if now is not None else time.time()),
        )

    def scan_root(
        self,
        root: str,
        ignore_names: Iterable[str] = (),
        prune: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> ScanSummary:
        """
        Scan one root and upsert every repository found.

        Each repository is upserted in its own transaction. With ``prune``,
        cataloged repositories at or under the root that were not found
        again are deleted in one final transaction, except those below a
        directory that could not be read. A cancelled scan never prunes.

        Raises:
            NotFoundError: if root is not an existing directory
        """
        root = os.path.realpath(os.path.expanduser(str(root)))
        if not os.path.isdir(root):
            raise NotFoundError(f"Root directory not found: {root}")

        summary = ScanSummary(roots=[root])
        keep: Set[str] = set()
        unreadable: List[str] = []

        def on_error(directory: str, error: OSError) -> None:
            unreadable.append(directory)
            summary.issues.append(ScanIssue(
                directory, FilesystemAccessError.kind, error.strerror or str(error)
            ))

        logger.info(f"Scanning {root}")
        with Database(self.db_path) as db:
            for repo_path in self.discover(root, ignore_names, cancel, on_error):
                if cancel is not None and cancel.cancelled:
                    break
                keep.add(repo_path)
                try:
                    repo = self.read_metadata(repo_path)
                except (GitDataError, FilesystemAccessError) as e:
                    logger.warning(f"Skipping {repo_path}: {e}")
                    summary.skipped += 1
                    summary.issues.append(issue_from_error(repo_path, e))
                    with transaction(db):
                        record_scan_error(db, repo_path, e.kind, str(e), SCAN)
                    continue

                with transaction(db):
                    outcome = upsert_repo(db, repo)
                    clear_scan_error_for_path(db, repo_path, SCAN)
                summary.count(outcome)
                logger.debug(f"{outcome}: {repo_path}")

            with transaction(db):
                for directory in unreadable:
                    record_scan_error(
                        db, directory, FilesystemAccessError.kind,
                        "directory could not be read", SCAN
                    )

            if cancel is not None and cancel.cancelled:
                summary.cancelled = True
            elif prune:
                with transaction(db):
                    stale = [
                        path for path in list_repo_paths_under_root(db, root)
                        if path not in keep
                        and not any(is_under(path, d) for d in unreadable)
                    ]
                    summary.pruned = prune_paths(db, stale)
                    prune_orphan_tags(db)
                if summary.pruned:
                    logger.info(f"Pruned {summary.pruned} repositories under {root}")

        return summary

    def scan_roots(
        self,
        roots: Iterable[str],
        ignore_names: Iterable[str] = (),
        prune: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> ScanSummary:
        """
        Scan several roots in order. A missing root is recorded as an issue
        and the remaining roots are still scanned.
        """
        summary = ScanSummary()
        for root in roots:
            if cancel is not None and cancel.cancelled:
                summary.cancelled = True
                break
            try:
                summary.merge(self.scan_root(root, ignore_names, prune, cancel))
            except NotFoundError as e:
                logger.warning(str(e))
                summary.issues.append(issue_from_error(str(root), e))
        return summary

    def prune_missing(self, cancel: Optional[CancelToken] = None) -> ScanSummary:
        """
        Delete catalog entries whose directory no longer holds a repository.

        Paths that exist but cannot be inspected are kept.
        """
        summary = ScanSummary()
        with Database(self.db_path) as db:
            missing = []
            for path in list_repo_paths(db):
                if cancel is not None and cancel.cancelled:
                    summary.cancelled = True
                    return summary
                if self.git.is_git_repo(path):
                    continue
                if os.path.exists(path) and not os.access(path, os.R_OK | os.X_OK):
                    summary.skipped += 1
                    continue
                missing.append(path)

            with transaction(db):
                summary.pruned = prune_paths(db, missing)
                prune_orphan_tags(db)

        logger.info(f"Pruned {summary.pruned} missing repositories")
        return summary
