"""
Search command.

Searches repositories by default, or the commit index with --commits.
"""

import click

from ..cli_utils import catalog_command, get_room, pretty_option
from ..domain.search import COMMIT_SCOPES, DEFAULT_PER_PAGE, REPO_SCOPES
from ..render import render_commit_hits, render_repo_hits


@click.command("search")
@click.argument("query")
@click.option('--commits', is_flag=True, help='Search indexed commit messages')
@click.option('--in', 'scopes', multiple=True,
              help=f"Field to search (repeatable). Repositories: {', '.join(REPO_SCOPES)}; "
                   f"commits: {', '.join(COMMIT_SCOPES)}. Default: all")
@click.option('--branch', '-b', help='Commit search: branch name prefix')
@click.option('--recent', is_flag=True, help='Recently opened repositories first')
@click.option('--page', default=1, type=int, show_default=True)
@click.option('--per-page', default=DEFAULT_PER_PAGE, type=int, show_default=True)
@pretty_option
@catalog_command
def search_cmd(query, commits, scopes, branch, recent, page, per_page, pretty):
    """Search the catalog.

    QUERY is matched literally, ignoring case.

    Examples:

    \b
        coderoom search parser
        coderoom search parser --in name --in readme --pretty
        coderoom search "fix race" --commits --branch main
    """
    room = get_room()
    mode = 'commits' if commits else 'repos'
    result = room.search(mode, query, scopes=scopes, page=page, per_page=per_page,
                         recent=recent, branch=branch)
    if pretty:
        if commits:
            render_commit_hits(result)
        else:
            render_repo_hits(result)
        return None
    return result.to_dict()
