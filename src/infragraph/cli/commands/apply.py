"""Apply and destroy commands - converge infrastructure."""

import json
import sys
from pathlib import Path
import click
from ...engine import build_engine
from ...execute.cancellation import CancellationToken
from ...presentation.human_formatter import format_apply_report, format_plan
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

logger = get_logger("cli.apply")


def run_apply(ctx, declarations, destroy, as_json, out, refresh, parallelism) -> None:
    """Shared body of apply and destroy; always exits."""
    try:
        overrides = {"executor": {"concurrency": parallelism}} if parallelism else None
        settings, resources = load_run(ctx, declarations, overrides=overrides)
        token = CancellationToken()
        engine = build_engine(settings, token=token)
        result = run_interruptible(
            lambda: engine.apply_async(resources, destroy=destroy, refresh=refresh),
            token,
        )

        if out:
            generate_artifacts(result.plan, result.order, Path(out), report=result.report)

        if as_json:
            payload = {
                "plan": result.plan.model_dump(mode="json"),
                "report": result.report.model_dump(mode="json"),
                "exit_code": result.exit_code,
            }
            click.echo(json.dumps(payload, indent=2))
        else:
            click.echo(format_plan(result.plan, result.order))
            click.echo("")
            click.echo(format_apply_report(result.report))

        sys.exit(result.exit_code)

    except InfragraphError as e:
        click.echo(format_error(str(e), suggestion_for(e)), err=True)
        sys.exit(exit_code_for(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(EXIT_PARTIAL_FAILURE)


_common_options = [
    click.argument('declarations', type=click.Path(exists=False)),
    click.option('--json', 'as_json', is_flag=True, help='Output structured JSON instead of human-readable'),
    click.option('--out', type=click.Path(file_okay=False), help='Write plan and run artifacts to this directory'),
    click.option('--refresh/--no-refresh', default=None, help='Read tracked resources back before diffing'),
    click.option('--parallelism', type=click.IntRange(min=1), default=None, help='Maximum concurrent provider operations'),
]


def common_options(func):
    for option in reversed(_common_options):
        func = option(func)
    return func


@click.command()
@common_options
@click.pass_context
def apply(ctx, declarations, as_json, out, refresh, parallelism):
    """
    Converge infrastructure to DECLARATIONS.

    Exits 0 when every resource converged, 1 when some failed or were
    blocked, 2 when the declarations are invalid (nothing is changed).
    """
    run_apply(ctx, declarations, False, as_json, out, refresh, parallelism)


@click.command()
@common_options
@click.pass_context
def destroy(ctx, declarations, as_json, out, refresh, parallelism):
    """Destroy every resource tracked in state, dependents first."""
    run_apply(ctx, declarations, True, as_json, out, refresh, parallelism)
