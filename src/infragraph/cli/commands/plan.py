"""Plan command - show what apply would change."""

import json
import sys
from pathlib import Path
import click
from ...engine import build_engine
from ...execute.cancellation import CancellationToken
from ...presentation.human_formatter import format_plan
from ...report.artifact import generate_artifacts
from ...utils.errors import InfragraphError
from ...utils.logging import get_logger
from ..utils import (
    EXIT_PARTIAL_FAILURE,
    exit_code_for,
    format_error,
    load_run,
    run_interruptible,
    suggestion_for,
)

logger = get_logger("cli.plan")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@click.option('--json', 'as_json', is_flag=True, help='Output structured JSON instead of human-readable')
@click.option('--out', type=click.Path(file_okay=False), help='Write plan audit artifacts to this directory')
@click.option('--refresh/--no-refresh', default=None, help='Read tracked resources back before diffing')
@click.option('--destroy', is_flag=True, help='Plan the destruction of every tracked resource')
@click.pass_context
def plan(ctx, declarations, as_json, out, refresh, destroy):
    """
    Show the actions needed to converge infrastructure to DECLARATIONS.

    Nothing is created, changed or destroyed, and state is not written.
    """
    try:
        settings, resources = load_run(ctx, declarations)
        token = CancellationToken()
        engine = build_engine(settings, token=token)
        planned = run_interruptible(
            lambda: engine.plan_async(resources, destroy=destroy, refresh=refresh),
            token,
        )

        if out:
            generate_artifacts(planned.plan, planned.order, Path(out))
            click.echo(f"Artifacts written to: {out}", err=True)

        if as_json:
            payload = {
                "plan": planned.plan.model_dump(mode="json"),
                "steps": planned.order.model_dump(mode="json")["steps"],
            }
            click.echo(json.dumps(payload, indent=2))
        else:
            click.echo(format_plan(planned.plan, planned.order))

    except InfragraphError as e:
        click.echo(format_error(str(e), suggestion_for(e)), err=True)
        sys.exit(exit_code_for(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Plan failed: {e}"), err=True)
        sys.exit(EXIT_PARTIAL_FAILURE)
