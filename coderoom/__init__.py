"""
coderoom - A local catalog and search index for git repositories.

coderoom discovers the git repositories under your chosen directories,
keeps their metadata and a bounded slice of their commit history in a
SQLite catalog, and answers scoped, highlighted searches over both.

Quick Start:
    import coderoom

    room = coderoom.Coderoom()
    room.scan("~/src", prune=True)

    for hit in room.search_repos("parser"):
        print(hit.repo.name, hit.matched_in)

    room.commit_index_rebuild(all=True)
    for hit in room.search_commits("segfault", scopes=["body"]):
        print(hit.entry.short_oid, hit.snippet)

Domain Objects:
    Repository - Cataloged git repository
    CommitEntry - One indexed commit on one branch
    TagCount - Tag with its repository count
    Page - One page of results
"""

__version__ = "0.1.0"

from .api import Coderoom, create
from .domain import (
    CommitBranch,
    CommitEntry,
    CommitHit,
    Page,
    RepoHit,
    Repository,
    TagCount,
)
from .exit_codes import (
    BusyError,
    CommandError,
    ConfigError,
    ConstraintViolationError,
    FilesystemAccessError,
    GitDataError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)

__all__ = [
    '__version__',
    'Coderoom',
    'create',
    'CommitBranch',
    'CommitEntry',
    'CommitHit',
    'Page',
    'RepoHit',
    'Repository',
    'TagCount',
    'BusyError',
    'CommandError',
    'ConfigError',
    'ConstraintViolationError',
    'FilesystemAccessError',
    'GitDataError',
    'NotFoundError',
    'StorageUnavailableError',
    'ValidationError',
]
