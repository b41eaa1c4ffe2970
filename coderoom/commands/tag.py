"""
Tag management commands.

Tags are normalized (trimmed, lower-cased, inner whitespace turned into
dashes) before they are stored or looked up.
"""

import click

from ..cli_utils import catalog_command, get_room, pretty_option
from ..render import render_list, render_tag_counts


@click.group("tag")
def tag_cmd():
    """Manage repository tags."""
    pass


@tag_cmd.command("add")
@click.argument("repo")
@click.argument("tags", nargs=-1, required=True)
@catalog_command
def tag_add(repo, tags):
    """Add tags to a repository.

    Examples:

    \b
        coderoom tag add ~/src/app work
        coderoom tag add app "web app" backend
    """
    room = get_room()
    results = []
    for tag in tags:
        created = room.tag_add(repo, tag)
        results.append({'repo': room.resolve(repo), 'tag': tag, 'added': created})
    return results


@tag_cmd.command("remove")
@click.argument("repo")
@click.argument("tags", nargs=-1, required=True)
@catalog_command
def tag_remove(repo, tags):
    """Remove tags from a repository."""
    room = get_room()
    results = []
    for tag in tags:
        room.tag_remove(repo, tag)
        results.append({'repo': room.resolve(repo), 'tag': tag, 'removed': True})
    return results


@tag_cmd.command("list")
@click.argument("repo", required=False)
@pretty_option
@catalog_command
def tag_list(repo, pretty):
    """List tags with repository counts, or the tags of one repository."""
    room = get_room()
    if repo:
        tags = room.tags(repo)
        if pretty:
            render_list("Tags", tags)
            return None
        return {'repo': room.resolve(repo), 'tags': tags}

    counts = room.tag_counts()
    if pretty:
        render_tag_counts(counts)
        return None
    return [tag.to_dict() for tag in counts]
