"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
from functools import wraps
from typing import Any, Generator

import click

from .api import Coderoom, create
from .config import setup_logging
from .exit_codes import INTERRUPTED, CommandError, get_exit_code_for_exception

# Options shared by commands that print tables
pretty_option = click.option(
    '--pretty', is_flag=True, help='Render a table instead of JSON'
)


def get_room() -> Coderoom:
    """Coderoom for the current environment, with logging configured."""
    room = create()
    setup_logging(room.config)
    return room


def catalog_command(func):
    """
    Decorator that provides standard CLI behavior:
    - Clean JSON output on stdout for returned values
    - JSON error objects and stable exit codes for CommandError
    - Exit code 130 on Ctrl+C

    The wrapped callback returns a dict, a list/generator of dicts, or None
    when it printed its own output.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
            output_result(result)
        except KeyboardInterrupt:
            click.echo("Interrupted by user", err=True)
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            click.echo(f"Error: {e}", err=True)
            error_obj = {
                "error": str(e),
                "type": e.kind,
                "exit_code": e.exit_code,
            }
            print(json.dumps(error_obj, ensure_ascii=False), flush=True)
            sys.exit(e.exit_code)
        except OSError as e:
            click.echo(f"Error: {e}", err=True)
            print(json.dumps({"error": str(e), "type": type(e).__name__},
                             ensure_ascii=False), flush=True)
            sys.exit(get_exit_code_for_exception(e))

    return wrapper


def output_result(result: Any) -> None:
    """
    Standard output handler for results.

    Args:
        result: The result to output (dict, list, or generator)
    """
    if result is None:
        return
    if isinstance(result, (Generator, list, tuple)):
        for item in result:
            print(json.dumps(item, ensure_ascii=False), flush=True)
    else:
        print(json.dumps(result, ensure_ascii=False), flush=True)
