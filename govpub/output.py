"""
Output module for govpub.

Every command writes JSONL to stdout by default so results can be
piped into jq or another tool. With --pretty the same rows are drawn
as Rich tables. Errors always go to stderr as a single JSON object.

Usage:
    from govpub.output import emit, emit_error

    emit(documents, pretty=pretty)
    emit_error("No statement published for entity acme", type="NotFoundError")
"""

import json
import sys
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.table import Table

# Columns shown first when a table has no explicit column list
PREFERRED_COLUMNS = ('id', 'name', 'type', 'path', 'branch', 'uri', 'changes')
MAX_COLUMNS = 8


def emit(
    items: Iterable[Any],
    pretty: bool = False,
    columns: Optional[List[str]] = None,
    title: Optional[str] = None,
) -> None:
    """
    Emit records as JSONL, or as a table when pretty is set.

    Records are dicts or objects with a to_dict() method.
    """
    if pretty:
        _emit_table(items, columns, title)
    else:
        _emit_jsonl(items)


def _to_dict(item: Any) -> Dict[str, Any]:
    if hasattr(item, 'to_dict'):
        return item.to_dict()
    if isinstance(item, dict):
        return item
    return {'value': str(item)}


def _emit_jsonl(items: Iterable[Any]) -> None:
    for item in items:
        print(json.dumps(_to_dict(item), ensure_ascii=False), flush=True)


def _emit_table(items: Iterable[Any], columns: Optional[List[str]] = None, title: Optional[str] = None) -> None:
    rows = [_to_dict(item) for item in items]
    console = Console()

    if not rows:
        console.print("Nothing published yet")
        return

    columns = columns or _auto_columns(rows[0])
    table = Table(title=title, show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*[_format_value(row.get(column)) for column in columns])

    console.print(table)


def _auto_columns(first_row: Dict[str, Any]) -> List[str]:
    keys = set(first_row)
    columns = [column for column in PREFERRED_COLUMNS if column in keys]
    columns.extend(sorted(keys - set(columns)))
    return columns[:MAX_COLUMNS]


def _format_value(value: Any, max_len: int = 60) -> str:
    """Render one cell: lists are joined and clipped, nested objects elided."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'yes' if value else 'no'
    if isinstance(value, list):
        text = ', '.join(str(v) for v in value[:3])
        if len(value) > 3:
            text += f' (+{len(value) - 3} more)'
        return text
    if isinstance(value, dict):
        return '{...}'

    text = str(value)
    return text if len(text) <= max_len else text[:max_len - 3] + '...'


def emit_error(error: str, type: str = "error") -> None:
    """Write an error to stderr as one JSON object with its class name."""
    print(json.dumps({'error': error, 'type': type}, ensure_ascii=False), file=sys.stderr, flush=True)


def emit_publish_result(result: Any, pretty: bool = False) -> None:
    """Emit one PublishResult as a JSON line or a short Rich summary."""
    if not pretty:
        _emit_jsonl([result])
        return

    console = Console()
    action = "Updated" if result.is_update else "Published"
    console.print(f"[green]{action}[/green] {len(result.files)} file(s) on [cyan]{result.branch}[/cyan]")
    for path, uri in zip(result.files, result.uris):
        console.print(f"  {path}  [dim]{uri}[/dim]")
    console.print(f"Pull request [bold]#{result.pull_request.number}[/bold]: {result.pull_request.url}")


def emit_diff(diff: Any, pretty: bool = False) -> None:
    """Emit a DiffResult: one JSON line per item plus a summary, or Rich tables."""
    sections = (('added', diff.added), ('modified', diff.modified),
                ('unchanged', diff.unchanged), ('deleted', diff.deleted))

    if not pretty:
        for status, items in sections:
            for item in items:
                print(json.dumps({'status': status, **item.to_dict()}, ensure_ascii=False), flush=True)
        print(json.dumps({'type': 'summary', **diff.summary()}, ensure_ascii=False), flush=True)
        return

    console = Console()
    styles = {'added': 'green', 'modified': 'yellow', 'unchanged': 'dim', 'deleted': 'red'}
    table = Table(title="Entity changes", show_header=True, header_style="bold")
    table.add_column("Status")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Changes")
    for status, items in sections:
        for item in items:
            table.add_row(
                f"[{styles[status]}]{status}[/{styles[status]}]",
                item.id,
                item.name or '',
                _format_value(item.changes),
            )
    console.print(table)

    summary = diff.summary()
    console.print(
        f"{summary['addedCount']} added, {summary['modifiedCount']} modified, "
        f"{summary['unchangedCount']} unchanged, {summary['deletedCount']} deleted "
        f"({summary['totalLocal']} local, {summary['totalRemote']} published)"
    )
