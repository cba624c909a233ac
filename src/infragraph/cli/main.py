"""Main CLI entry point for infragraph."""

import click
from .commands.plan import plan
from .commands.apply import apply, destroy
from .commands.graph import graph
from .commands.state import state
from .commands.version import version
from ..utils.logging import get_logger, resolve_level, setup_logging
from .. import __version__

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="infragraph", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Log progress to stderr')
@click.option('--debug', is_flag=True, help='Log everything, including per-step details')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Config file merged over user and project config')
@click.pass_context
def cli(ctx, verbose, debug, config_path):
    """infragraph - Declarative resource-graph provisioner."""
    setup_logging(resolve_level(verbose=verbose, debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(graph)
cli.add_command(state)
cli.add_command(version)
