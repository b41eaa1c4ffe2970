"""
Search result objects and text matching for coderoom.

Matching is a case-insensitive literal substring test. The same function is
registered as the SQLite ``contains_ci`` function and used here to compute
matched-in provenance and highlight spans, so filtering and highlighting
always agree.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple, Iterable, Sequence

from ..exit_codes import ValidationError
from .commit import CommitEntry
from .repository import Repository

Span = Tuple[int, int]

REPO_SCOPES = ('name', 'path', 'readme', 'tags')
COMMIT_SCOPES = ('summary', 'body')

SCOPE_ALIASES = {
    'tag': 'tags',
    'message': 'body',
}

DEFAULT_PER_PAGE = 25
MAX_PER_PAGE = 200
SNIPPET_RADIUS = 60
ELLIPSIS = '…'


def _pattern(query: str):
    return re.compile(re.escape(query), re.IGNORECASE)


def contains_ci(text: Optional[str], query: Optional[str]) -> bool:
    """True if ``query`` occurs in ``text`` ignoring case."""
    if text is None or not query:
        return False
    return _pattern(query).search(text) is not None


def match_spans(text: Optional[str], query: str) -> List[Span]:
    """Every non-overlapping (start, end) occurrence of query in text."""
    if not text or not query:
        return []
    return [m.span() for m in _pattern(query).finditer(text)]


def make_snippet(text: str, spans: Sequence[Span],
                 radius: int = SNIPPET_RADIUS) -> Tuple[str, List[Span]]:
    """
    Cut a window of ``radius`` characters around the first match.

    Returns the snippet and the spans that fall inside it, shifted to
    snippet coordinates. Ellipses mark cut ends.
    """
    if not text:
        return '', []
    if not spans:
        end = min(len(text), radius * 2)
        return text[:end] + (ELLIPSIS if end < len(text) else ''), []

    first_start, first_end = spans[0]
    start = max(0, first_start - radius)
    end = min(len(text), first_end + radius)
    prefix = ELLIPSIS if start > 0 else ''
    suffix = ELLIPSIS if end < len(text) else ''
    offset = len(prefix) - start
    shifted = [(s + offset, e + offset) for s, e in spans if s >= start and e <= end]
    return prefix + text[start:end] + suffix, shifted


def parse_scopes(scopes: Optional[Iterable[str]], allowed: Sequence[str]) -> Tuple[str, ...]:
    """
    Validate a scope selection.

    An empty selection means every allowed scope. The result keeps the
    canonical order of ``allowed``.
    """
    if not scopes:
        return tuple(allowed)
    chosen = set()
    for scope in scopes:
        name = SCOPE_ALIASES.get(str(scope).strip().lower(), str(scope).strip().lower())
        if name not in allowed:
            raise ValidationError(
                f"Unknown search scope {scope!r}; expected one of: {', '.join(allowed)}"
            )
        chosen.add(name)
    return tuple(s for s in allowed if s in chosen)


def validate_query(query: Optional[str]) -> str:
    """Reject blank queries; anything else is matched exactly as given."""
    if not query or not query.strip():
        raise ValidationError("Search query must not be empty")
    return query


def validate_page(page: int, per_page: int) -> None:
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise ValidationError(f"page must be >= 1, got {page!r}")
    if (isinstance(per_page, bool) or not isinstance(per_page, int)
            or not 1 <= per_page <= MAX_PER_PAGE):
        raise ValidationError(f"per_page must be between 1 and {MAX_PER_PAGE}, got {per_page!r}")


@dataclass(frozen=True)
class Highlight:
    """Match spans within one field value."""
    field: str
    text: str
    spans: Tuple[Span, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'text': self.text,
            'spans': [list(s) for s in self.spans],
        }


@dataclass(frozen=True)
class RepoHit:
    """A repository search result with matched-in provenance."""
    repo: Repository
    matched_in: Tuple[str, ...]
    highlights: Tuple[Highlight, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = self.repo.to_dict()
        data['matched_in'] = list(self.matched_in)
        data['highlights'] = [h.to_dict() for h in self.highlights]
        return data


@dataclass(frozen=True)
class CommitHit:
    """A commit search result with a snippet around the first match."""
    entry: CommitEntry
    matched_in: Tuple[str, ...]
    snippet: str = ''
    snippet_spans: Tuple[Span, ...] = ()
    summary_spans: Tuple[Span, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = self.entry.to_dict()
        data['matched_in'] = list(self.matched_in)
        data['snippet'] = self.snippet
        data['snippet_spans'] = [list(s) for s in self.snippet_spans]
        data['summary_spans'] = [list(s) for s in self.summary_spans]
        return data


@dataclass(frozen=True)
class Page:
    """One page of an ordered result set."""
    items: Tuple[Any, ...]
    total: int
    page: int
    per_page: int
    query: Optional[str] = None
    scopes: Tuple[str, ...] = field(default=())

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'page': self.page,
            'per_page': self.per_page,
            'has_more': self.has_more,
            'query': self.query,
            'scopes': list(self.scopes),
            'items': [item.to_dict() for item in self.items],
        }
