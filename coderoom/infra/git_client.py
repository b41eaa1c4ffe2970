"""
Git client infrastructure for coderoom.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

Commands are run with an argument list (no shell) against the local
on-disk repository only.
"""

import os
import subprocess
from dataclasses import dataclass
from typing import Optional, List, Tuple
import logging

from ..exit_codes import GitDataError

logger = logging.getLogger(__name__)

# Field and record separators used in --format strings
FIELD_SEP = '\x00'
RECORD_SEP = '\x1e'

_BRANCH_FORMAT = '%00'.join([
    '%(refname)',
    '%(refname:short)',
    '%(objectname)',
    '%(objecttype)',
    '%(symref)',
    '%(committerdate:raw)',
])

_LOG_FORMAT = '%H%x00%at%x00%an%x00%ae%x00%B%x1e'


@dataclass
class GitBranch:
    """A local or remote-tracking branch."""
    refname: str
    name: str
    kind: str
    oid: str
    timestamp: Optional[int] = None


@dataclass
class GitCommit:
    """A git commit with metadata."""
    hash: str
    timestamp: Optional[int]
    author: str
    email: str
    message: str

    @property
    def summary(self) -> str:
        """First line of the message."""
        stripped = self.message.strip()
        return stripped.splitlines()[0].strip() if stripped else ''


class GitClient:
    """
    Abstraction over git commands.

    Provides methods for common git operations with consistent
    error handling and return types.

    Example:
        client = GitClient()
        if client.is_git_repo("/path/to/repo"):
            print(client.current_branch("/path/to/repo"))
    """

    def __init__(self, timeout: int = 30, git: str = 'git'):
        """
        Initialize GitClient.

        Args:
            timeout: Command timeout in seconds (default: 30)
            git: git executable to run
        """
        self.timeout = timeout
        self.git = git
        self._env = dict(os.environ, GIT_TERMINAL_PROMPT='0', GIT_OPTIONAL_LOCKS='0')

    def _run(
        self,
        args: List[str],
        cwd: str,
        check: bool = False,
    ) -> Tuple[Optional[str], int]:
        """
        Run a git command.

        Args:
            args: git arguments (without the executable)
            cwd: Working directory
            check: Raise GitDataError on non-zero exit

        Returns:
            Tuple of (stdout, returncode)
        """
        cmd = [self.git] + args
        # Never let git discover a repository above cwd
        env = dict(self._env, GIT_CEILING_DIRECTORIES=os.path.dirname(os.path.abspath(cwd)))
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out in {cwd}: {' '.join(args)}")
            if check:
                raise GitDataError(f"git {args[0]} timed out", path=cwd)
            return None, -1
        except OSError as e:
            logger.error(f"Git command failed in {cwd}: {' '.join(args)} - {e}")
            if check:
                raise GitDataError(f"Cannot run git in {cwd}: {e}", path=cwd)
            return None, -1

        if check and result.returncode != 0:
            message = (result.stderr or '').strip() or f"exit status {result.returncode}"
            raise GitDataError(f"git {args[0]} failed in {cwd}: {message}", path=cwd)

        output = result.stdout
        return output.strip() if output else None, result.returncode

    def is_git_repo(self, path: str) -> bool:
        """Check if path holds a .git directory or gitfile."""
        return os.path.lexists(os.path.join(path, '.git'))

    def verify(self, path: str) -> None:
        """Raise GitDataError unless git can open the repository at path."""
        self._run(['rev-parse', '--git-dir'], cwd=path, check=True)

    def head_commit(self, path: str) -> Optional[str]:
        """
        Hash of the commit HEAD points at.

        Returns None for an empty repository (HEAD names a branch that has
        no commits yet). A HEAD that exists but cannot be resolved is
        reported as GitDataError.
        """
        oid, code = self._run(['rev-parse', '--verify', '--quiet', 'HEAD^{commit}'], cwd=path)
        if code == 0 and oid:
            return oid

        ref, code = self._run(['symbolic-ref', '--quiet', 'HEAD'], cwd=path)
        if code == 0 and ref:
            _, exists = self._run(['show-ref', '--verify', '--quiet', ref], cwd=path)
            if exists != 0:
                return None
        raise GitDataError(f"HEAD does not resolve to a commit in {path}", path=path)

    def commit_time(self, path: str, rev: str = 'HEAD') -> Optional[int]:
        """Committer timestamp of a revision."""
        output, _ = self._run(['log', '-1', '--format=%ct', rev, '--'], cwd=path, check=True)
        return int(output) if output and output.isdigit() else None

    def current_branch(self, path: str) -> Optional[str]:
        """Short name of the branch HEAD points at, None when detached."""
        output, code = self._run(['symbolic-ref', '--short', '--quiet', 'HEAD'], cwd=path)
        return output if code == 0 and output else None

    def remote_url(self, path: str, remote: str = 'origin') -> Optional[str]:
        """Get remote URL."""
        output, code = self._run(['config', '--get', f'remote.{remote}.url'], cwd=path)
        return output if code == 0 and output else None

    def remotes(self, path: str) -> List[str]:
        output, code = self._run(['remote'], cwd=path)
        if code != 0 or not output:
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def origin_url(self, path: str) -> Optional[str]:
        """URL of ``origin``, else of the first remote that has one."""
        url = self.remote_url(path, 'origin')
        if url:
            return url
        for remote in self.remotes(path):
            url = self.remote_url(path, remote)
            if url:
                return url
        return None

    def branches(self, path: str) -> List[GitBranch]:
        """
        Local and remote-tracking branches pointing at commits.

        Symbolic refs such as ``refs/remotes/origin/HEAD`` are skipped.
        """
        output, _ = self._run(
            ['for-each-ref', f'--format={_BRANCH_FORMAT}', 'refs/heads', 'refs/remotes'],
            cwd=path,
            check=True,
        )
        branches = []
        for line in (output or '').splitlines():
            fields = line.split(FIELD_SEP)
            if len(fields) != 6:
                logger.debug(f"Unparseable ref line in {path}: {line!r}")
                continue
            refname, short, oid, objtype, symref, date = fields
            if symref or refname.endswith('/HEAD') or objtype != 'commit':
                continue
            kind = 'local' if refname.startswith('refs/heads/') else 'remote'
            branches.append(GitBranch(
                refname=refname,
                name=short,
                kind=kind,
                oid=oid,
                timestamp=_parse_raw_date(date),
            ))
        return branches

    def first_parent_log(self, path: str, rev: str, limit: int) -> List[GitCommit]:
        """
        Up to ``limit`` commits reachable from ``rev`` through first parents,
        starting with ``rev`` itself.
        """
        output, _ = self._run(
            ['log', '--first-parent', f'--max-count={int(limit)}',
             f'--format={_LOG_FORMAT}', rev, '--'],
            cwd=path,
            check=True,
        )
        commits = []
        for record in (output or '').split(RECORD_SEP):
            record = record.lstrip('\n')
            if not record:
                continue
            fields = record.split(FIELD_SEP, 4)
            if len(fields) != 5:
                raise GitDataError(f"Unexpected git log output in {path}", path=path)
            oid, ts, author, email, message = fields
            commits.append(GitCommit(
                hash=oid,
                timestamp=int(ts) if ts.isdigit() else None,
                author=author,
                email=email,
                message=message.rstrip('\n'),
            ))
        return commits


def _parse_raw_date(raw: str) -> Optional[int]:
    """Seconds from a git raw date (``1700000000 +0000``)."""
    head = raw.strip().split(' ', 1)[0] if raw.strip() else ''
    return int(head) if head.isdigit() else None
