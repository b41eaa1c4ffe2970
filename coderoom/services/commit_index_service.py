"""
Commit index builder for coderoom.

For each repository, selects the N most recently updated branches (local
and remote-tracking) and walks up to M first-parent commits from each tip.
The resulting window replaces the repository's previous window atomically.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import validate_commit_index_limits
from ..database import Database, transaction
from ..database.commits import replace_commit_window
from ..database.errors import INDEX, clear_scan_error_for_path, record_scan_error
from ..database.repository import get_repo_id
from ..domain.commit import CommitBranch, CommitEntry
from ..exit_codes import FilesystemAccessError, GitDataError, NotFoundError
from ..infra.git_client import GitClient
from .coordinator import CancelToken
from .scan_service import ScanIssue, issue_from_error

logger = logging.getLogger(__name__)

# Stored message bodies are cut to this many characters
MAX_MESSAGE_CHARS = 4000


@dataclass
class IndexSummary:
    """Outcome of a commit-index rebuild."""
    branches: int
    commits_per_branch: int
    repos_indexed: int = 0
    entries: int = 0
    skipped: int = 0
    issues: List[ScanIssue] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> Dict:
        return {
            'branches': self.branches,
            'commits_per_branch': self.commits_per_branch,
            'repos_indexed': self.repos_indexed,
            'entries': self.entries,
            'skipped': self.skipped,
            'errors': len(self.issues),
            'issues': [issue.to_dict() for issue in self.issues],
            'cancelled': self.cancelled,
        }


class CommitIndexService:
    """
    Builds and stores bounded commit windows.

    Example:
        indexer = CommitIndexService(db_path)
        summary = indexer.rebuild(["/src/app"], branches=10, commits_per_branch=50)
    """

    def __init__(
        self,
        db_path,
        git_client: Optional[GitClient] = None,
        max_message_chars: int = MAX_MESSAGE_CHARS,
    ):
        self.db_path = db_path
        self.git = git_client or GitClient()
        self.max_message_chars = max_message_chars

    def select_branches(self, repo_path: str, limit: int) -> List[CommitBranch]:
        """The ``limit`` branches with the newest tips (ties by refname)."""
        branches = self.git.branches(repo_path)
        branches.sort(key=lambda b: (-(b.timestamp or 0), b.refname))
        return [
            CommitBranch(
                refname=b.refname,
                name=b.name,
                kind=b.kind,
                tip_oid=b.oid,
                tip_ts=b.timestamp,
            )
            for b in branches[:limit]
        ]

    def build_window(
        self,
        repo_path: str,
        branches: int,
        commits_per_branch: int,
    ) -> Tuple[List[CommitBranch], List[CommitEntry]]:
        """
        Read a repository's window from git without touching the catalog.

        Raises:
            GitDataError: if refs or history cannot be read
        """
        self.git.verify(repo_path)
        selected = self.select_branches(repo_path, branches)

        entries: List[CommitEntry] = []
        for branch in selected:
            commits = self.git.first_parent_log(
                repo_path, branch.tip_oid or branch.refname, commits_per_branch
            )
            for position, commit in enumerate(commits[:commits_per_branch]):
                entries.append(CommitEntry(
                    refname=branch.refname,
                    branch_name=branch.name,
                    branch_kind=branch.kind,
                    oid=commit.hash,
                    position=position,
                    author_ts=commit.timestamp,
                    author=commit.author,
                    email=commit.email,
                    summary=commit.summary,
                    body=commit.message[:self.max_message_chars],
                ))
        return selected, entries

    def rebuild_repo(
        self,
        db: Database,
        repo_path: str,
        branches: int,
        commits_per_branch: int,
    ) -> int:
        """
        Rebuild one repository's window.

        Raises:
            NotFoundError: if the repository is not cataloged
            FilesystemAccessError: if its directory is gone or unreadable
            GitDataError: if git cannot read it
        """
        repo_id = get_repo_id(db, repo_path)
        if repo_id is None:
            raise NotFoundError(f"Repository not in catalog: {repo_path}")
        if not os.path.isdir(repo_path):
            raise FilesystemAccessError(f"Repository directory missing: {repo_path}", path=repo_path)

        selected, entries = self.build_window(repo_path, branches, commits_per_branch)
        stored = replace_commit_window(db, repo_id, selected, entries)
        with transaction(db):
            clear_scan_error_for_path(db, repo_path, INDEX)
        logger.debug(f"Indexed {stored} commits on {len(selected)} branches of {repo_path}")
        return stored

    def rebuild(
        self,
        repo_paths: Iterable[str],
        branches: int,
        commits_per_branch: int,
        cancel: Optional[CancelToken] = None,
    ) -> IndexSummary:
        """
        Rebuild windows for several repositories.

        Unreadable repositories are recorded and skipped; the rest are still
        indexed. Cancellation is checked before each repository.

        Raises:
            ValidationError: if a limit is out of range
        """
        validate_commit_index_limits(branches, commits_per_branch)
        summary = IndexSummary(branches=branches, commits_per_branch=commits_per_branch)

        with Database(self.db_path) as db:
            for repo_path in repo_paths:
                if cancel is not None and cancel.cancelled:
                    summary.cancelled = True
                    logger.info("Commit index rebuild cancelled")
                    break
                try:
                    summary.entries += self.rebuild_repo(db, repo_path, branches, commits_per_branch)
                    summary.repos_indexed += 1
                except (GitDataError, FilesystemAccessError) as e:
                    logger.warning(f"Skipping {repo_path}: {e}")
                    summary.skipped += 1
                    summary.issues.append(issue_from_error(repo_path, e))
                    with transaction(db):
                        record_scan_error(db, repo_path, e.kind, str(e), INDEX)

        logger.info(
            f"Indexed {summary.entries} commits from {summary.repos_indexed} repositories"
        )
        return summary
