"""
Library command group for govpub.

Browse what is already published in the governance repository.
"""

import json

import click

from ..cli_utils import add_common_options, handle_errors, open_context
from ..domain.document import TargetKind
from ..exit_codes import NotFoundError
from ..output import emit
from ..services.library_service import LibraryService

DOCUMENT_KINDS = [kind.value for kind in TargetKind if kind is not TargetKind.ASSET]


def _library(verbose: bool) -> LibraryService:
    context = open_context(verbose)
    return LibraryService(context.client, context.publisher)


@click.group('library')
def library_cmd():
    """Browse published governance documents.

    \b
    Examples:
        govpub library list schema --pretty
        govpub library available vct home.json
        govpub library assets
    """
    pass


@library_cmd.command('list')
@click.argument('kind', type=click.Choice(DOCUMENT_KINDS))
@add_common_options('pretty', 'verbose')
@handle_errors
def library_list_handler(kind, pretty, verbose):
    """List published documents of one kind."""
    documents = _library(verbose).list_documents(TargetKind(kind))
    emit(documents, pretty=pretty, columns=['name', 'path', 'uri'] if pretty else None)


@library_cmd.command('available')
@click.argument('kind', type=click.Choice(DOCUMENT_KINDS))
@click.argument('filename')
@add_common_options('verbose')
@handle_errors
def library_available_handler(kind, filename, verbose):
    """Check whether FILENAME is still free for KIND."""
    available = _library(verbose).is_available(TargetKind(kind), filename)
    print(json.dumps({'kind': kind, 'filename': filename, 'available': available}))


@library_cmd.command('show')
@click.argument('kind', type=click.Choice(DOCUMENT_KINDS))
@click.argument('filename')
@add_common_options('verbose')
@handle_errors
def library_show_handler(kind, filename, verbose):
    """Print one published document with its current hash."""
    document = _library(verbose).read_document(TargetKind(kind), filename)
    print(json.dumps(document.to_dict(), ensure_ascii=False))


@library_cmd.command('entities')
@add_common_options('pretty', 'verbose')
@handle_errors
def library_entities_handler(pretty, verbose):
    """List entities of the published registry."""
    emit(_library(verbose).list_entities(), pretty=pretty)


@library_cmd.command('entity-statement')
@click.argument('entity_id')
@add_common_options('verbose')
@handle_errors
def library_entity_statement_handler(entity_id, verbose):
    """Print the published statement of one entity."""
    document = _library(verbose).get_entity_statement(entity_id)
    if document is None:
        raise NotFoundError(f"No statement published for entity {entity_id}")
    print(json.dumps(document.to_dict(), ensure_ascii=False))


@library_cmd.command('assets')
@add_common_options('pretty', 'verbose')
@handle_errors
def library_assets_handler(pretty, verbose):
    """List published image assets."""
    assets = _library(verbose).list_published_assets()
    emit(assets, pretty=pretty, columns=['id', 'type', 'filename', 'uri'] if pretty else None)
