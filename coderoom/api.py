"""
High-level Python API for coderoom.

Wires configuration, the catalog and the services into the operations a
front-end needs.

Example:
    import coderoom

    room = coderoom.Coderoom()

    # Catalog a directory tree
    summary = room.scan("~/src", prune=True)
    print(summary.added, summary.pruned)

    # Search repositories by name and README
    for hit in room.search_repos("parser", scopes=["name", "readme"]):
        print(hit.repo.name, hit.matched_in)

    # Index commit history, then search it
    room.commit_index_rebuild(all=True)
    for hit in room.search_commits("fix race"):
        print(hit.entry.repo_name, hit.snippet)

    # Tag management
    room.tag_add("~/src/app", "work")
    room.tag_remove("~/src/app", "work")
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import (
    add_ignore_dir_name,
    add_root,
    apply_env_overrides,
    get_commit_index_limits,
    get_config_path,
    get_ignore_dir_names,
    get_roots,
    load_config,
    normalize_root,
    remove_ignore_dir_name,
    remove_root,
    reset_ignore_dir_names,
    save_config,
    set_commit_index_limits,
    validate_commit_index_limits,
)
from .database import Database, get_database_info, get_db_path, transaction
from .database.commits import count_commit_entries, list_commit_branches, list_commit_entries
from .database.errors import get_scan_errors
from .database.repository import (
    get_repo_by_path,
    get_repo_id,
    list_repo_paths,
    resolve_repo_path,
    touch_access,
)
from .domain.commit import CommitBranch
from .domain.repository import Repository
from .domain.search import DEFAULT_PER_PAGE, Page, validate_page
from .domain.tag import TagCount
from .exit_codes import NotFoundError, ValidationError
from .infra.git_client import GitClient
from .services import (
    CancelToken,
    CommitIndexService,
    IndexSummary,
    OperationState,
    ScanService,
    ScanSummary,
    SearchService,
    TagService,
    get_coordinator,
)

logger = logging.getLogger(__name__)

SEARCH_MODES = ('repos', 'commits')


class Coderoom:
    """
    High-level API for coderoom.

    Mutating operations (scan, scan_all, prune, commit_index_rebuild) go
    through the catalog's coordinator and raise BusyError while another one
    runs. Everything else only reads the catalog, or touches tags and
    access times directly.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        config_path: Optional[str] = None,
        db_path: Optional[str] = None,
        git_client: Optional[GitClient] = None,
    ):
        """
        Initialize Coderoom.

        Args:
            config: Full config dict (overrides file and environment if provided)
            config_path: Path to config file (default: ~/.coderoom/config.yaml)
            db_path: Catalog file (default: from config or ~/.coderoom/coderoom.db)
            git_client: Git client to share between services
        """
        self.config_path = Path(config_path).expanduser() if config_path else get_config_path()
        if config is not None:
            self._file_config = config
            self._config = config
        else:
            # Edits are saved from the file view; reads use the environment too
            self._file_config = load_config(self.config_path, env_overrides=False)
            self._config = apply_env_overrides(copy.deepcopy(self._file_config))
        self.db_path = Path(db_path).expanduser() if db_path else get_db_path(self._config)

        self._git_client = git_client or GitClient()
        self.coordinator = get_coordinator(self.db_path)
        self.scanner = ScanService(self.db_path, git_client=self._git_client)
        self.indexer = CommitIndexService(self.db_path, git_client=self._git_client)
        self.tag_service = TagService(self.db_path)
        self.search_service = SearchService(self.db_path)

    @property
    def config(self) -> Dict[str, Any]:
        return self._config

    def save_config(self) -> Path:
        """Write the file-backed config (never environment overrides)."""
        path = save_config(self._file_config, self.config_path)
        if self._config is not self._file_config:
            self._config = apply_env_overrides(copy.deepcopy(self._file_config))
        return path

    # Catalog

    def init_catalog(self) -> Dict[str, Any]:
        """Create the catalog (and a default config file if none exists)."""
        with Database(self.db_path):
            pass
        if not self.config_path.exists():
            self.save_config()
        info = get_database_info(self.db_path)
        info['config_path'] = str(self.config_path)
        return info

    def database_info(self) -> Dict[str, Any]:
        return get_database_info(self.db_path)

    def scan_errors(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with Database(self.db_path) as db:
            return get_scan_errors(db, limit=limit)

    # Roots and ignores (configuration)

    def roots(self) -> List[str]:
        return get_roots(self._config)

    def add_root(self, path: str) -> bool:
        """Add a scan root; the directory must exist."""
        root = normalize_root(path)
        if not Path(root).is_dir():
            raise NotFoundError(f"Root directory not found: {root}")
        added = add_root(self._file_config, root)
        if added:
            self.save_config()
        return added

    def remove_root(self, path: str) -> None:
        if not remove_root(self._file_config, path):
            raise NotFoundError(f"Not a configured root: {path}")
        self.save_config()

    def ignores(self) -> List[str]:
        return get_ignore_dir_names(self._config)

    def add_ignore(self, name: str) -> bool:
        added = add_ignore_dir_name(self._file_config, name)
        if added:
            self.save_config()
        return added

    def remove_ignore(self, name: str) -> None:
        if not remove_ignore_dir_name(self._file_config, name):
            raise NotFoundError(f"Not an ignored directory name: {name}")
        self.save_config()

    def reset_ignores(self) -> List[str]:
        reset_ignore_dir_names(self._file_config)
        self.save_config()
        return self.ignores()

    # Scanning

    def scan(self, root: str, prune: bool = False,
             cancel: Optional[CancelToken] = None) -> ScanSummary:
        """
        Scan one root; the root is remembered in the configuration.

        Raises:
            BusyError: if another mutating operation is running
            NotFoundError: if the root does not exist
        """
        with self.coordinator.operation(OperationState.SCANNING, cancel) as token:
            summary = self.scanner.scan_root(root, self.ignores(), prune=prune, cancel=token)
        if add_root(self._file_config, root):
            self.save_config()
        return summary

    def scan_all(self, prune: bool = False,
                 cancel: Optional[CancelToken] = None) -> ScanSummary:
        """Scan every configured root."""
        with self.coordinator.operation(OperationState.SCANNING, cancel) as token:
            return self.scanner.scan_roots(self.roots(), self.ignores(), prune=prune, cancel=token)

    def prune(self, cancel: Optional[CancelToken] = None) -> ScanSummary:
        """Drop catalog entries whose repository no longer exists on disk."""
        with self.coordinator.operation(OperationState.SCANNING, cancel) as token:
            return self.scanner.prune_missing(cancel=token)

    def cancel(self) -> bool:
        """Ask the running scan or rebuild to stop at its next checkpoint."""
        return self.coordinator.cancel()

    @property
    def state(self) -> OperationState:
        return self.coordinator.state

    # Repositories

    def resolve(self, ref: str) -> str:
        """Resolve a path or name to a cataloged repository path."""
        with Database(self.db_path) as db:
            path = resolve_repo_path(db, ref)
        if path is None:
            raise NotFoundError(f"No cataloged repository matches {ref!r}")
        return path

    def repos(self, tag: Optional[str] = None, recent: bool = False,
              page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> Page:
        return self.search_service.browse(tag=tag, recent=recent, page=page, per_page=per_page)

    def repo(self, ref: str) -> Repository:
        path = self.resolve(ref)
        with Database(self.db_path) as db:
            repo = get_repo_by_path(db, path)
        if repo is None:
            raise NotFoundError(f"No cataloged repository matches {ref!r}")
        return repo

    def open_repo(self, ref: str) -> Repository:
        """Return a repository's details and record the access."""
        path = self.resolve(ref)
        with Database(self.db_path) as db:
            with transaction(db):
                touch_access(db, path)
            repo = get_repo_by_path(db, path)
        if repo is None:
            raise NotFoundError(f"No cataloged repository matches {ref!r}")
        return repo

    # Search

    def search_repos(self, query: str, scopes: Optional[Iterable[str]] = None,
                     recent: bool = False, page: int = 1,
                     per_page: int = DEFAULT_PER_PAGE) -> Page:
        return self.search_service.repos(query, scopes=scopes, recent=recent,
                                         page=page, per_page=per_page)

    def search_commits(self, query: str, scopes: Optional[Iterable[str]] = None,
                       branch: Optional[str] = None, page: int = 1,
                       per_page: int = DEFAULT_PER_PAGE) -> Page:
        return self.search_service.commits(query, scopes=scopes, branch=branch,
                                           page=page, per_page=per_page)

    def search(self, mode: str, query: str, scopes: Optional[Iterable[str]] = None,
               page: int = 1, per_page: int = DEFAULT_PER_PAGE,
               recent: bool = False, branch: Optional[str] = None) -> Page:
        """Dispatch to repository or commit search."""
        if mode == 'repos':
            return self.search_repos(query, scopes, recent=recent, page=page, per_page=per_page)
        if mode == 'commits':
            return self.search_commits(query, scopes, branch=branch, page=page, per_page=per_page)
        raise ValidationError(f"Unknown search mode {mode!r}; expected one of: {', '.join(SEARCH_MODES)}")

    # Tags

    def tag_add(self, ref: str, tag: str) -> bool:
        return self.tag_service.add(self.resolve(ref), tag)

    def tag_remove(self, ref: str, tag: str) -> None:
        self.tag_service.remove(self.resolve(ref), tag)

    def tags(self, ref: Optional[str] = None) -> List[str]:
        if ref is not None:
            return self.tag_service.names(self.resolve(ref))
        return self.tag_service.names()

    def tag_counts(self) -> List[TagCount]:
        return self.tag_service.counts()

    # Commit index

    def commit_index_limits(self):
        return get_commit_index_limits(self._config)

    def commit_index_rebuild(
        self,
        repo: Optional[str] = None,
        all: bool = False,
        branches: Optional[int] = None,
        commits_per_branch: Optional[int] = None,
        cancel: Optional[CancelToken] = None,
    ) -> IndexSummary:
        """
        Rebuild the commit window of one repository or of all of them.

        Explicit limits are validated before anything runs and, on success,
        saved as the new defaults.

        Raises:
            ValidationError: for out-of-range limits or no target
            NotFoundError: if ``repo`` is not cataloged
            BusyError: if another mutating operation is running
        """
        if not all and not repo:
            raise ValidationError("Pass a repository or all=True")

        default_branches, default_commits = self.commit_index_limits()
        n = default_branches if branches is None else branches
        m = default_commits if commits_per_branch is None else commits_per_branch
        validate_commit_index_limits(n, m)

        with self.coordinator.operation(OperationState.INDEXING, cancel) as token:
            if all:
                with Database(self.db_path) as db:
                    paths = list_repo_paths(db)
            else:
                paths = [self.resolve(repo)]
            summary = self.indexer.rebuild(paths, n, m, cancel=token)

        if (n, m) != (default_branches, default_commits):
            set_commit_index_limits(self._file_config, n, m)
            self.save_config()
        return summary

    def commit_branches(self, ref: str) -> List[CommitBranch]:
        path = self.resolve(ref)
        with Database(self.db_path) as db:
            return list_commit_branches(db, get_repo_id(db, path))

    def commits(self, ref: str, refname: str, page: int = 1,
                per_page: int = DEFAULT_PER_PAGE) -> Page:
        """Indexed commits of one branch, tip first."""
        validate_page(page, per_page)
        path = self.resolve(ref)
        with Database(self.db_path) as db:
            repo_id = get_repo_id(db, path)
            branches = {b.refname: b for b in list_commit_branches(db, repo_id)}
            branch = branches.get(refname) or next(
                (b for b in branches.values() if b.name == refname), None
            )
            if branch is None:
                raise NotFoundError(f"Branch {refname!r} is not indexed for {path}")
            total = count_commit_entries(db, repo_id, branch.refname)
            items = list_commit_entries(db, repo_id, branch.refname,
                                        limit=per_page, offset=(page - 1) * per_page)
        return Page(items=tuple(items), total=total, page=page, per_page=per_page)


def create(config_path: Optional[str] = None, db_path: Optional[str] = None) -> Coderoom:
    """Build a Coderoom from the on-disk configuration."""
    return Coderoom(config_path=config_path, db_path=db_path)
