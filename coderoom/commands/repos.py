"""
Repository browsing commands: list, open, errors, init.
"""

import click

from ..cli_utils import catalog_command, get_room, pretty_option
from ..domain.search import DEFAULT_PER_PAGE
from ..render import console, render_issues, render_repo_detail, render_repos


@click.command("init")
@catalog_command
def init_cmd():
    """Create the catalog and a default configuration file."""
    return get_room().init_catalog()


@click.command("list")
@click.option('--tag', '-t', help='Only repositories carrying this tag')
@click.option('--recent', is_flag=True, help='Recently opened repositories first')
@click.option('--page', default=1, type=int, show_default=True)
@click.option('--per-page', default=DEFAULT_PER_PAGE, type=int, show_default=True)
@pretty_option
@catalog_command
def list_cmd(tag, recent, page, per_page, pretty):
    """List cataloged repositories.

    Examples:

    \b
        coderoom list
        coderoom list --tag work --recent --pretty
    """
    result = get_room().repos(tag=tag, recent=recent, page=page, per_page=per_page)
    if pretty:
        render_repos(result)
        return None
    return result.to_dict()


@click.command("open")
@click.argument("repo")
@pretty_option
@catalog_command
def open_cmd(repo, pretty):
    """Show a repository and record it as recently opened.

    REPO: Path or name of a cataloged repository
    """
    result = get_room().open_repo(repo)
    if pretty:
        render_repo_detail(result)
        return None
    return result.to_dict()


@click.command("errors")
@click.option('--limit', type=int, help='Show at most this many')
@pretty_option
@catalog_command
def errors_cmd(limit, pretty):
    """Show paths skipped by the last scans and rebuilds."""
    errors = get_room().scan_errors(limit=limit)
    if pretty:
        if errors:
            render_issues(errors)
        else:
            console.print("[green]No scan errors.[/green]")
        return None
    return errors
