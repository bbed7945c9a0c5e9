"""
Main CLI entry point for fileshift.
"""

import click

from .. import __version__
from .organize import organize
from .undo import undo


@click.group()
@click.version_option(__version__, prog_name="fileshift")
def cli() -> None:
    """Move files into category folders, with undo."""


cli.add_command(organize)
cli.add_command(undo)


if __name__ == "__main__":
    cli()
