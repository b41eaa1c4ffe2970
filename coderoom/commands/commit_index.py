"""
Commit index commands.

`commit-index` rebuilds the bounded window (N branches x M first-parent
commits) of one repository or all of them; `commits` browses what was
indexed.
"""

import click

from ..cli_utils import catalog_command, get_room, pretty_option
from ..config import MAX_COMMIT_INDEX_BRANCHES, MAX_COMMIT_INDEX_COMMITS_PER_BRANCH
from ..domain.search import DEFAULT_PER_PAGE
from ..exit_codes import ValidationError
from ..render import console, render_branches, render_commits, render_summary


@click.command("commit-index")
@click.option('--all', 'index_all', is_flag=True, help='Rebuild every cataloged repository')
@click.option('--repo', help='Path or name of one repository')
@click.option('--branches', type=int,
              help=f'Branches per repository (1-{MAX_COMMIT_INDEX_BRANCHES}); saved as default')
@click.option('--commits-per-branch', type=int,
              help=f'Commits per branch (1-{MAX_COMMIT_INDEX_COMMITS_PER_BRANCH}); saved as default')
@pretty_option
@catalog_command
def commit_index_cmd(index_all, repo, branches, commits_per_branch, pretty):
    """Rebuild the commit index.

    Examples:

    \b
        coderoom commit-index --all
        coderoom commit-index --repo app --branches 5 --commits-per-branch 100
    """
    if index_all == bool(repo):
        raise ValidationError("Pass exactly one of --all or --repo")

    room = get_room()
    if pretty:
        with console.status("Indexing commits..."):
            summary = room.commit_index_rebuild(repo=repo, all=index_all, branches=branches,
                                                commits_per_branch=commits_per_branch)
        render_summary("Commit Index Summary", summary.to_dict())
        return None
    return room.commit_index_rebuild(repo=repo, all=index_all, branches=branches,
                                     commits_per_branch=commits_per_branch).to_dict()


@click.command("commits")
@click.argument("repo")
@click.argument("branch", required=False)
@click.option('--page', default=1, type=int, show_default=True)
@click.option('--per-page', default=DEFAULT_PER_PAGE, type=int, show_default=True)
@pretty_option
@catalog_command
def commits_cmd(repo, branch, page, per_page, pretty):
    """List indexed branches of REPO, or the indexed commits of BRANCH."""
    room = get_room()
    if not branch:
        branches = room.commit_branches(repo)
        if pretty:
            render_branches(branches)
            return None
        return [b.to_dict() for b in branches]

    result = room.commits(repo, branch, page=page, per_page=per_page)
    if pretty:
        render_commits(result)
        return None
    return result.to_dict()
