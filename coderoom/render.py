"""
Rendering functions for coderoom output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .domain.commit import CommitBranch
from .domain.search import Page
from .domain.repository import Repository
from .domain.tag import TagCount

console = Console()

MATCH_STYLE = "bold black on yellow"


def _table(title: Optional[str] = None) -> Table:
    return Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )


def format_ts(ts: Optional[int]) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


def highlight(text: Optional[str], spans: Iterable[Tuple[int, int]],
              style: str = "") -> Text:
    """Rich Text with every span marked."""
    result = Text(text or "", style=style)
    for start, end in spans:
        result.stylize(MATCH_STYLE, start, end)
    return result


def _page_caption(page: Page) -> str:
    if page.total == 0:
        return "no results"
    first = page.offset + 1
    last = page.offset + len(page)
    more = " (more)" if page.has_more else ""
    return f"{first}-{last} of {page.total}, page {page.page}{more}"


def render_repos(page: Page, title: str = "Repositories") -> None:
    """Render a page of repositories."""
    if not page.items:
        console.print("[yellow]No repositories found.[/yellow]")
        return

    table = _table(title)
    table.add_column("Name", style="cyan")
    table.add_column("Branch", style="green")
    table.add_column("Last commit")
    table.add_column("Tags", style="blue")
    table.add_column("Path", style="dim")

    for repo in page.items:
        table.add_row(
            repo.name,
            repo.default_branch or "-",
            format_ts(repo.last_commit_ts),
            ", ".join(repo.tags),
            repo.path,
        )
    table.caption = _page_caption(page)
    console.print(table)


def render_repo_hits(page: Page) -> None:
    """Render repository search results with highlighted matches."""
    if not page.items:
        console.print(f"[yellow]No repositories match {page.query!r}.[/yellow]")
        return

    table = _table(f"Repositories matching {page.query!r}")
    table.add_column("Name", style="cyan")
    table.add_column("Matched in", style="magenta")
    table.add_column("Tags", style="blue")
    table.add_column("Path", style="dim")
    table.add_column("README")

    for hit in page.items:
        spans: Dict[str, Any] = {h.field: h.spans for h in hit.highlights if h.field != 'tags'}
        tag_spans = {h.text: h.spans for h in hit.highlights if h.field == 'tags'}
        tags = Text(", ").join(
            highlight(tag, tag_spans.get(tag, ())) for tag in hit.repo.tags
        )
        table.add_row(
            highlight(hit.repo.name, spans.get('name', ())),
            ", ".join(hit.matched_in),
            tags,
            highlight(hit.repo.path, spans.get('path', ())),
            highlight(hit.repo.readme_excerpt, spans.get('readme', ())),
        )
    table.caption = _page_caption(page)
    console.print(table)


def render_commit_hits(page: Page) -> None:
    """Render commit search results with highlighted snippets."""
    if not page.items:
        console.print(f"[yellow]No indexed commits match {page.query!r}.[/yellow]")
        return

    table = _table(f"Commits matching {page.query!r}")
    table.add_column("Repository", style="cyan")
    table.add_column("Branch", style="green")
    table.add_column("Commit", style="yellow")
    table.add_column("Date")
    table.add_column("Summary")
    table.add_column("Snippet")

    for hit in page.items:
        entry = hit.entry
        table.add_row(
            entry.repo_name or "-",
            entry.branch_name,
            entry.short_oid,
            format_ts(entry.author_ts),
            highlight(entry.summary, hit.summary_spans),
            highlight(hit.snippet, hit.snippet_spans, style="dim"),
        )
    table.caption = _page_caption(page)
    console.print(table)


def render_repo_detail(repo: Repository) -> None:
    table = _table(repo.name)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Path", repo.path)
    table.add_row("Default branch", repo.default_branch or "-")
    table.add_row("Origin", repo.origin_url or "-")
    table.add_row("Last commit", format_ts(repo.last_commit_ts))
    table.add_row("First seen", format_ts(repo.first_seen_ts))
    table.add_row("Last scanned", format_ts(repo.last_scan_ts))
    table.add_row("Last opened", format_ts(repo.last_access_ts))
    table.add_row("Tags", ", ".join(repo.tags) or "-")
    table.add_row("README", repo.readme_excerpt or "-")
    console.print(table)


def render_summary(title: str, stats: Dict[str, Any]) -> None:
    """Render a scan or rebuild summary and its issues."""
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in stats.items():
        if key in ('issues', 'roots'):
            continue
        table.add_row(key.replace('_', ' ').capitalize(), str(value))
    console.print(table)

    issues = stats.get('issues') or []
    if issues:
        render_issues(issues)


def render_issues(issues: Sequence[Dict[str, Any]]) -> None:
    table = _table("Skipped")
    table.add_column("Path", style="dim")
    table.add_column("Type", style="red")
    table.add_column("Message")
    for issue in issues:
        table.add_row(
            issue.get('path', ''),
            issue.get('error_type', ''),
            issue.get('message') or issue.get('error_message') or '',
        )
    console.print(table)


def render_tag_counts(counts: List[TagCount]) -> None:
    if not counts:
        console.print("[yellow]No tags.[/yellow]")
        return
    table = _table("Tags")
    table.add_column("Tag", style="blue")
    table.add_column("Repositories", justify="right")
    for tag in counts:
        table.add_row(tag.name, str(tag.count))
    console.print(table)


def render_branches(branches: List[CommitBranch]) -> None:
    if not branches:
        console.print("[yellow]No indexed branches.[/yellow]")
        return
    table = _table("Indexed branches")
    table.add_column("Branch", style="green")
    table.add_column("Kind")
    table.add_column("Tip", style="yellow")
    table.add_column("Updated")
    for branch in branches:
        table.add_row(branch.name, branch.kind, (branch.tip_oid or "")[:10],
                      format_ts(branch.tip_ts))
    console.print(table)


def render_commits(page: Page) -> None:
    if not page.items:
        console.print("[yellow]No indexed commits.[/yellow]")
        return
    table = _table()
    table.add_column("#", justify="right")
    table.add_column("Commit", style="yellow")
    table.add_column("Date")
    table.add_column("Author", style="cyan")
    table.add_column("Summary")
    for entry in page.items:
        table.add_row(str(entry.position), entry.short_oid, format_ts(entry.author_ts),
                      entry.author or "-", entry.summary)
    table.caption = _page_caption(page)
    console.print(table)


def render_list(title: str, values: Sequence[str]) -> None:
    if not values:
        console.print(f"[yellow]No {title.lower()} configured.[/yellow]")
        return
    table = _table(title)
    table.add_column(title[:-1] if title.endswith('s') else title, style="cyan")
    for value in values:
        table.add_row(value)
    console.print(table)
