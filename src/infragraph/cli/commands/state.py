"""State commands - inspect tracked resources."""

import json
import sys
import click
from ...config import load_engine_config
from ...presentation.human_formatter import format_state_record
from ...state.backends import LocalStateBackend
from ...state.store import open_state
from ...utils.errors import InfragraphError
from ..utils import EXIT_PARTIAL_FAILURE, exit_code_for, format_error


def _open(ctx):
    settings = load_engine_config(ctx.obj.get("config_path") if ctx.obj else None)
    return open_state(LocalStateBackend(settings.state.path), persist=False)


@click.group()
def state():
    """Inspect the state file."""
    pass


@state.command(name="list")
@click.pass_context
def list_resources(ctx):
    """List tracked resource addresses."""
    try:
        with _open(ctx) as store:
            for address in store.addresses():
                click.echo(address)
    except InfragraphError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(exit_code_for(e))


@state.command()
@click.argument('address')
@click.option('--json', 'as_json', is_flag=True, help='Output the raw state record')
@click.pass_context
def show(ctx, address, as_json):
    """Show the recorded attributes of ADDRESS."""
    try:
        with _open(ctx) as store:
            record = store.get(address)
            known = store.addresses()
    except InfragraphError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(exit_code_for(e))

    if record is None:
        suggestion = None
        similar = [a for a in known if address.lower() in a.lower() or a.split(".")[-1] == address]
        if similar:
            suggestion = f"Similar resources: {', '.join(similar[:5])}"
        click.echo(format_error(f"Resource '{address}' is not in state.", suggestion), err=True)
        sys.exit(EXIT_PARTIAL_FAILURE)

    if as_json:
        click.echo(json.dumps(record.model_dump(mode="json"), indent=2))
    else:
        click.echo(format_state_record(record))
