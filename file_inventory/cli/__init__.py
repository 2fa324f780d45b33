"""CLI interface for file-inventory.

Modular CLI structure with commands split by functionality.
"""

import logging

import click
from dotenv import load_dotenv

from file_inventory import __version__

# Load environment variables (SMTP/LDAP secrets) from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show the file-inventory version and exit.",
)
@click.pass_context
def main(ctx: click.Context, version: bool) -> None:
    """File inventory - find files by extension across many servers.

    \b
      file-inventory scan CONFIG      Scan all targets, write report, mail summary
      file-inventory targets CONFIG   List the servers a scan would cover
      file-inventory check CONFIG     Validate config and test SSH connectivity
    """
    if version:
        click.echo(__version__)
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def register_commands() -> None:
    """Register all commands with the main CLI."""
    from file_inventory.cli.scan import check, scan, targets

    main.add_command(scan)
    main.add_command(targets)
    main.add_command(check)


# Register commands at import time
register_commands()

__all__ = ["main"]
