"""
Service layer for coderoom.

Services hold the catalog's operations; the CLI and the API facade only
wire them to configuration and output.
"""

from .coordinator import CancelToken, Coordinator, OperationState, get_coordinator
from .scan_service import ScanService, ScanSummary, ScanIssue
from .commit_index_service import CommitIndexService, IndexSummary
from .tag_service import TagService
from .search_service import SearchService

__all__ = [
    'CancelToken',
    'Coordinator',
    'OperationState',
    'get_coordinator',
    'ScanService',
    'ScanSummary',
    'ScanIssue',
    'CommitIndexService',
    'IndexSummary',
    'TagService',
    'SearchService',
]
