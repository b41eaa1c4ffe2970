"""
Search engine for coderoom.

Repository search matches a literal, case-insensitive query against the
selected scopes (name, path, readme, tags). Commit search matches indexed
commit summaries and bodies. Every hit reports which fields matched and
where, so callers can render badges and highlights.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from ..database import Database
from ..database.commits import (
    count_commit_entries,
    count_search_commit_entries,
    search_commit_entries,
)
from ..database.repository import (
    count_repos,
    count_search_repos,
    list_repos,
    search_repos,
)
from ..domain.commit import CommitEntry
from ..domain.repository import Repository
from ..domain.search import (
    COMMIT_SCOPES,
    DEFAULT_PER_PAGE,
    REPO_SCOPES,
    CommitHit,
    Highlight,
    Page,
    RepoHit,
    make_snippet,
    match_spans,
    parse_scopes,
    validate_page,
    validate_query,
)
from ..domain.tag import normalize_tag

logger = logging.getLogger(__name__)


def repo_provenance(repo: Repository, query: str,
                    scopes: Iterable[str]) -> Tuple[Tuple[str, ...], Tuple[Highlight, ...]]:
    """Fields of ``repo`` that contain ``query``, with their spans."""
    matched = []
    highlights = []
    for scope in scopes:
        if scope == 'tags':
            for tag in repo.tags:
                spans = match_spans(tag, query)
                if spans:
                    highlights.append(Highlight('tags', tag, tuple(spans)))
            if any(h.field == 'tags' for h in highlights):
                matched.append('tags')
            continue

        text = {
            'name': repo.name,
            'path': repo.path,
            'readme': repo.readme_excerpt,
        }[scope]
        spans = match_spans(text, query)
        if spans:
            matched.append(scope)
            highlights.append(Highlight(scope, text, tuple(spans)))
    return tuple(matched), tuple(highlights)


def commit_hit(entry: CommitEntry, query: str, scopes: Iterable[str]) -> CommitHit:
    """Provenance, snippet and summary spans for one matching entry."""
    scopes = tuple(scopes)
    summary_spans = match_spans(entry.summary, query) if 'summary' in scopes else []
    body_spans = match_spans(entry.body, query) if 'body' in scopes else []

    matched = []
    if summary_spans:
        matched.append('summary')
    if body_spans:
        matched.append('body')

    if body_spans:
        snippet, snippet_spans = make_snippet(entry.body, body_spans)
    else:
        snippet, snippet_spans = make_snippet(entry.summary, summary_spans)

    return CommitHit(
        entry=entry,
        matched_in=tuple(matched),
        snippet=snippet,
        snippet_spans=tuple(snippet_spans),
        summary_spans=tuple(summary_spans),
    )


class SearchService:
    """
    Read-only queries over the catalog.

    Example:
        search = SearchService(db_path)
        page = search.repos("parser", scopes=["name", "readme"])
        for hit in page:
            print(hit.repo.name, hit.matched_in)
    """

    def __init__(self, db_path):
        self.db_path = db_path

    def browse(
        self,
        tag: Optional[str] = None,
        recent: bool = False,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Page:
        """One page of cataloged repositories, optionally by tag."""
        validate_page(page, per_page)
        tag = normalize_tag(tag) if tag is not None else None
        offset = (page - 1) * per_page
        with Database(self.db_path) as db:
            total = count_repos(db, tag)
            items = list_repos(db, tag=tag, recent=recent, limit=per_page, offset=offset)
        return Page(items=tuple(items), total=total, page=page, per_page=per_page)

    def repos(
        self,
        query: str,
        scopes: Optional[Iterable[str]] = None,
        recent: bool = False,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Page:
        """
        Search repositories.

        Args:
            query: Literal text, matched ignoring case
            scopes: Subset of name, path, readme, tags; empty means all
            recent: Order recently opened repositories first
            page: 1-based page number
            per_page: Page size, 1..200

        Raises:
            ValidationError: for a blank query, unknown scope or bad paging
        """
        query = validate_query(query)
        chosen = parse_scopes(scopes, REPO_SCOPES)
        validate_page(page, per_page)
        offset = (page - 1) * per_page

        with Database(self.db_path) as db:
            total = count_search_repos(db, query, chosen)
            repos = search_repos(db, query, chosen, recent=recent, limit=per_page, offset=offset)

        hits: List[RepoHit] = []
        for repo in repos:
            matched_in, highlights = repo_provenance(repo, query, chosen)
            hits.append(RepoHit(repo=repo, matched_in=matched_in, highlights=highlights))
        return Page(items=tuple(hits), total=total, page=page, per_page=per_page,
                    query=query, scopes=chosen)

    def commits(
        self,
        query: str,
        scopes: Optional[Iterable[str]] = None,
        branch: Optional[str] = None,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Page:
        """
        Search indexed commits.

        Args:
            query: Literal text, matched ignoring case
            scopes: Subset of summary, body; empty means both
            branch: Prefix of the branch short name or full refname

        Raises:
            ValidationError: for a blank query, unknown scope or bad paging
        """
        query = validate_query(query)
        chosen = parse_scopes(scopes, COMMIT_SCOPES)
        validate_page(page, per_page)
        branch = (branch or '').strip() or None
        offset = (page - 1) * per_page

        with Database(self.db_path) as db:
            total = count_search_commit_entries(db, query, chosen, branch)
            entries = search_commit_entries(db, query, chosen, branch=branch,
                                            limit=per_page, offset=offset)

        hits = [commit_hit(entry, query, chosen) for entry in entries]
        return Page(items=tuple(hits), total=total, page=page, per_page=per_page,
                    query=query, scopes=chosen)

    def commit_index_size(self) -> int:
        """Entries currently in the commit index (0 means never built)."""
        with Database(self.db_path) as db:
            return count_commit_entries(db)
