"""
Tests for coderoom.render module.
"""

from io import StringIO

from rich.console import Console

from coderoom import render
from coderoom.domain.repository import Repository
from coderoom.domain.search import Highlight, Page, RepoHit
from coderoom.render import MATCH_STYLE, format_ts, highlight


def _capture(monkeypatch):
    buffer = StringIO()
    monkeypatch.setattr(render, "console", Console(file=buffer, width=200))
    return buffer


def test_highlight_marks_spans():
    text = highlight("parser for toml", [(0, 6)])

    assert text.plain == "parser for toml"
    assert [(s.start, s.end, s.style) for s in text.spans] == [(0, 6, MATCH_STYLE)]


def test_format_ts():
    assert format_ts(None) == "-"
    assert format_ts(0) == "-"
    assert len(format_ts(1_700_000_000)) == len("2023-11-14 22:13")


def test_render_repo_hits(monkeypatch):
    buffer = _capture(monkeypatch)
    repo = Repository.from_path("/dev/a", readme_excerpt="Parser for TOML", tags=("lib",))
    hit = RepoHit(repo, ("readme",), (Highlight("readme", "Parser for TOML", ((0, 6),)),))
    page = Page(items=(hit,), total=1, page=1, per_page=25, query="parser", scopes=("readme",))

    render.render_repo_hits(page)

    output = buffer.getvalue()
    assert "Parser for TOML" in output
    assert "readme" in output
    assert "1-1 of 1" in output


def test_render_empty_page(monkeypatch):
    buffer = _capture(monkeypatch)

    render.render_repos(Page(items=(), total=0, page=1, per_page=25))

    assert "No repositories found" in buffer.getvalue()
