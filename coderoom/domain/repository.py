"""
Repository domain object for coderoom.

Repository represents a cataloged git repository with its metadata.
It's designed to be immutable and serializable for JSONL output.
"""

import os
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

# Upsert outcomes reported by the catalog
ADDED = 'added'
UPDATED = 'updated'
UNCHANGED = 'unchanged'

# Fields compared when deciding whether a rescan changed anything
METADATA_FIELDS = (
    'name',
    'default_branch',
    'origin_url',
    'readme_excerpt',
    'last_commit_ts',
)


@dataclass(frozen=True)
class Repository:
    """
    A git repository known to the catalog.

    Identity is the canonical absolute ``path``. Timestamps are unix seconds;
    ``first_seen_ts``, ``last_scan_ts`` and ``last_access_ts`` are owned by
    the catalog and left as None on freshly scanned values.
    """
    path: str
    name: str
    default_branch: Optional[str] = None
    origin_url: Optional[str] = None
    readme_excerpt: Optional[str] = None
    last_commit_ts: Optional[int] = None
    first_seen_ts: Optional[int] = None
    last_scan_ts: Optional[int] = None
    last_access_ts: Optional[int] = None
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_path(cls, path: str, **kwargs) -> 'Repository':
        """Create a Repository from a path, using the basename as name."""
        path = os.path.realpath(os.path.expanduser(path))
        return cls(path=path, name=os.path.basename(path) or path, **kwargs)

    def metadata(self) -> Dict[str, Any]:
        return {field: getattr(self, field) for field in METADATA_FIELDS}

    def same_metadata(self, other: 'Repository') -> bool:
        return self.metadata() == other.metadata()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'name': self.name,
            'default_branch': self.default_branch,
            'origin_url': self.origin_url,
            'readme_excerpt': self.readme_excerpt,
            'last_commit_ts': self.last_commit_ts,
            'first_seen_ts': self.first_seen_ts,
            'last_scan_ts': self.last_scan_ts,
            'last_access_ts': self.last_access_ts,
            'tags': list(self.tags),
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.path})"
