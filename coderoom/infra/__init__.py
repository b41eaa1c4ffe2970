"""
Infrastructure layer for coderoom.

Wraps external tools (git) behind small clients.
"""

from .git_client import GitClient, GitBranch, GitCommit

__all__ = ['GitClient', 'GitBranch', 'GitCommit']
