"""Version command - show infragraph version."""

import click
from ... import __version__


@click.command()
def version():
    """Show infragraph version."""
    click.echo(f"infragraph version {__version__}")
