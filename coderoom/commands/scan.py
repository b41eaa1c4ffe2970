"""
Scan and prune commands.

Scanning walks one root (or every configured root), upserts the
repositories it finds and, with --prune, drops cataloged repositories under
that root that are gone.
"""

import click

from ..cli_utils import catalog_command, get_room, pretty_option
from ..exit_codes import ValidationError
from ..render import console, render_summary


@click.command("scan")
@click.option('--root', '-r', 'roots', multiple=True,
              type=click.Path(file_okay=False), help='Directory to scan (repeatable)')
@click.option('--all', 'scan_all', is_flag=True, help='Scan every configured root')
@click.option('--prune', is_flag=True,
              help='Remove cataloged repositories under the root that were not found')
@pretty_option
@catalog_command
def scan_cmd(roots, scan_all, prune, pretty):
    """Discover repositories and update the catalog.

    Examples:

    \b
        coderoom scan --root ~/src
        coderoom scan --root ~/src --root ~/work --prune
        coderoom scan --all
    """
    if not roots and not scan_all:
        raise ValidationError("Pass --root PATH or --all")

    room = get_room()
    if scan_all:
        if pretty:
            with console.status("Scanning configured roots..."):
                summary = room.scan_all(prune=prune)
        else:
            summary = room.scan_all(prune=prune)
    else:
        summary = None
        for root in roots:
            if pretty:
                with console.status(f"Scanning {root}..."):
                    result = room.scan(root, prune=prune)
            else:
                result = room.scan(root, prune=prune)
            summary = result if summary is None else summary.merge(result)

    if pretty:
        render_summary("Scan Summary", summary.to_dict())
        return None
    return summary.to_dict()


@click.command("prune")
@pretty_option
@catalog_command
def prune_cmd(pretty):
    """Remove cataloged repositories that no longer exist on disk."""
    summary = get_room().prune()
    if pretty:
        render_summary("Prune Summary", summary.to_dict())
        return None
    return summary.to_dict()
