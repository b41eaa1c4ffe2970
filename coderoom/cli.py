#!/usr/bin/env python3

import click

from coderoom import __version__
from coderoom.commands.commit_index import commit_index_cmd, commits_cmd
from coderoom.commands.repos import errors_cmd, init_cmd, list_cmd, open_cmd
from coderoom.commands.roots import ignores_cmd, roots_cmd
from coderoom.commands.scan import prune_cmd, scan_cmd
from coderoom.commands.search import search_cmd
from coderoom.commands.tag import tag_cmd


@click.group()
@click.version_option(version=__version__, prog_name="coderoom")
def cli():
    """coderoom - Local catalog and search index for git repositories.

    Discovers the repositories under your roots, keeps their metadata and
    a bounded slice of commit history in SQLite, and searches both.
    """
    pass


# Catalog
cli.add_command(init_cmd)
cli.add_command(scan_cmd)
cli.add_command(prune_cmd)
cli.add_command(list_cmd)
cli.add_command(open_cmd)
cli.add_command(errors_cmd)

# Search and commit history
cli.add_command(search_cmd)
cli.add_command(commit_index_cmd)
cli.add_command(commits_cmd)

# Command groups
cli.add_command(tag_cmd)
cli.add_command(roots_cmd)
cli.add_command(ignores_cmd)


def main():
    """Main entry point for the CLI."""
    return cli()


if __name__ == "__main__":
    main()
