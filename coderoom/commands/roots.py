"""
Scan root and ignore-list commands.

Roots are the directories `coderoom scan --all` walks. Ignored directory
names are skipped (with their subtree) wherever they appear under a root.
"""

import click
from rich.console import Console

from ..cli_utils import catalog_command, get_room, pretty_option
from ..render import render_list

console = Console(stderr=True)


@click.group("roots")
def roots_cmd():
    """Manage scan roots."""
    pass


@roots_cmd.command("list")
@pretty_option
@catalog_command
def roots_list(pretty):
    """List configured roots."""
    roots = get_room().roots()
    if pretty:
        render_list("Roots", roots)
        return None
    return roots


@roots_cmd.command("add")
@click.argument("path", type=click.Path(file_okay=False))
@catalog_command
def roots_add(path):
    """Add a scan root.

    Examples:

    \b
        coderoom roots add ~/src
    """
    room = get_room()
    if room.add_root(path):
        console.print(f"[green]✓[/green] Added root: [cyan]{path}[/cyan]")
    else:
        console.print(f"[yellow]Already a root:[/yellow] {path}")
    return room.roots()


@roots_cmd.command("remove")
@click.argument("path")
@catalog_command
def roots_remove(path):
    """Remove a scan root. Cataloged repositories stay until pruned."""
    room = get_room()
    room.remove_root(path)
    console.print(f"[green]✓[/green] Removed root: [cyan]{path}[/cyan]")
    return room.roots()


@click.group("ignores")
def ignores_cmd():
    """Manage directory names skipped while scanning."""
    pass


@ignores_cmd.command("list")
@pretty_option
@catalog_command
def ignores_list(pretty):
    """List ignored directory names."""
    names = get_room().ignores()
    if pretty:
        render_list("Ignored names", names)
        return None
    return names


@ignores_cmd.command("add")
@click.argument("name")
@catalog_command
def ignores_add(name):
    """Ignore directories with this exact name."""
    room = get_room()
    if room.add_ignore(name):
        console.print(f"[green]✓[/green] Ignoring: [cyan]{name}[/cyan]")
    else:
        console.print(f"[yellow]Already ignored:[/yellow] {name}")
    return room.ignores()


@ignores_cmd.command("remove")
@click.argument("name")
@catalog_command
def ignores_remove(name):
    """Stop ignoring a directory name."""
    room = get_room()
    room.remove_ignore(name)
    console.print(f"[green]✓[/green] No longer ignoring: [cyan]{name}[/cyan]")
    return room.ignores()


@ignores_cmd.command("reset")
@catalog_command
def ignores_reset():
    """Restore the default ignore list."""
    return get_room().reset_ignores()
