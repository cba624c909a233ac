"""Graph command - print the dependency graph."""

import json
import sys
import click
from ...graph.dependency_graph import DependencyGraph
from ...presentation.human_formatter import format_graph
from ...state.backends import LocalStateBackend
from ...state.store import open_state
from ...utils.errors import InfragraphError
from ..utils import exit_code_for, format_error, load_run, suggestion_for


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@click.option('--json', 'as_json', is_flag=True, help='Output edges and topological order as JSON')
@click.pass_context
def graph(ctx, declarations, as_json):
    """Print dependency edges (dependent -> dependency) for DECLARATIONS and state."""
    try:
        settings, resources = load_run(ctx, declarations)
        with open_state(LocalStateBackend(settings.state.path), persist=False) as store:
            dependency_graph = DependencyGraph()
            dependency_graph.build_from_resources(resources, store.records().values())
    except InfragraphError as e:
        click.echo(format_error(str(e), suggestion_for(e)), err=True)
        sys.exit(exit_code_for(e))

    if as_json:
        payload = {
            "edges": [
                {"dependent": dependent, "dependency": dependency, "kinds": kinds}
                for dependent, dependency, kinds in dependency_graph.edges()
            ],
            "order": dependency_graph.topological_order(),
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(format_graph(dependency_graph))
