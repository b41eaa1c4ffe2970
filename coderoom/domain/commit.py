"""
Commit index domain objects for coderoom.

The commit index is a bounded window per repository: up to N branches,
each with up to M first-parent commits starting at the branch tip.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

LOCAL = 'local'
REMOTE = 'remote'


@dataclass(frozen=True)
class CommitBranch:
    """A branch selected into a repository's window."""
    refname: str
    name: str
    kind: str = LOCAL
    tip_oid: Optional[str] = None
    tip_ts: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'refname': self.refname,
            'name': self.name,
            'kind': self.kind,
            'tip_oid': self.tip_oid,
            'tip_ts': self.tip_ts,
        }


@dataclass(frozen=True)
class CommitEntry:
    """
    One commit as seen from one indexed branch.

    The same commit reachable from two indexed branches yields two entries;
    identity is (repository, refname, oid).
    """
    refname: str
    branch_name: str
    branch_kind: str
    oid: str
    position: int
    author_ts: Optional[int] = None
    author: Optional[str] = None
    email: Optional[str] = None
    summary: str = ''
    body: str = ''
    repo_path: Optional[str] = None
    repo_name: Optional[str] = None

    @property
    def short_oid(self) -> str:
        return self.oid[:10]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repo_path': self.repo_path,
            'repo_name': self.repo_name,
            'refname': self.refname,
            'branch': self.branch_name,
            'branch_kind': self.branch_kind,
            'oid': self.oid,
            'position': self.position,
            'author_ts': self.author_ts,
            'author': self.author,
            'email': self.email,
            'summary': self.summary,
            'body': self.body,
        }

    def __str__(self) -> str:
        return f"{self.short_oid} {self.summary}"
