"""
Diff command group for govpub.

Read-only previews of what a publish would change.
"""

import click

from ..cli_utils import add_common_options, handle_errors, load_json_file, open_context
from ..output import emit_diff
from ..services.reconciler import DiffReconciler


@click.group('diff')
def diff_cmd():
    """Compare local documents with what is published."""
    pass


@diff_cmd.command('entities')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--exit-code', 'exit_code', is_flag=True,
              help='Exit with status 1 when there are differences')
@add_common_options('pretty', 'verbose')
@handle_errors
def diff_entities_handler(file, exit_code, pretty, verbose):
    """Compare local entities with the published entity registry.

    FILE holds a list of entities, or an object with `entities`.

    \b
    Examples:
        govpub diff entities entities.json --pretty
    """
    data = load_json_file(file)
    local_entities = data.get('entities') if isinstance(data, dict) else data

    context = open_context(verbose)
    diff = DiffReconciler(context.client, context.publisher).diff_entities(local_entities)
    emit_diff(diff, pretty=pretty)

    if exit_code and diff.has_changes:
        raise SystemExit(1)
