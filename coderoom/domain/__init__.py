"""
Domain objects for coderoom.

Immutable value objects shared by the catalog, the services and the CLI.
"""

from .repository import Repository, ADDED, UPDATED, UNCHANGED
from .commit import CommitBranch, CommitEntry, LOCAL, REMOTE
from .tag import TagCount, normalize_tag
from .search import (
    Page, RepoHit, CommitHit, Highlight,
    REPO_SCOPES, COMMIT_SCOPES, contains_ci, match_spans, make_snippet,
)

__all__ = [
    'Repository', 'ADDED', 'UPDATED', 'UNCHANGED',
    'CommitBranch', 'CommitEntry', 'LOCAL', 'REMOTE',
    'TagCount', 'normalize_tag',
    'Page', 'RepoHit', 'CommitHit', 'Highlight',
    'REPO_SCOPES', 'COMMIT_SCOPES', 'contains_ci', 'match_spans', 'make_snippet',
]
