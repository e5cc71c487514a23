"""
Publish command group for govpub.

Every subcommand proposes its change as a new branch plus pull request
against the governance repository and prints the PublishResult.
"""

from pathlib import Path
from typing import Optional

import click

from ..cli_utils import (
    add_common_options,
    handle_errors,
    load_bytes_file,
    load_json_file,
    open_context,
    resolve_actor,
)
from ..domain.document import ASSET_TYPES, TargetKind
from ..exit_codes import ValidationError
from ..output import emit_publish_result
from ..services.publish_service import PublishService

BATCH_KINDS = [kind.value for kind in TargetKind if kind is not TargetKind.ASSET]


def _service(verbose: bool):
    context = open_context(verbose)
    return context, PublishService(context.client, context.publisher)


@click.group('publish')
def publish_cmd():
    """Publish governance documents as pull requests.

    Each publish creates a branch named `<kind>/<verb>-<name>-<millis>`,
    commits the document(s) to it and opens a pull request against the
    base branch.

    \b
    Examples:
        # Publish a JSON Schema
        govpub publish schema address-v1.json
        # Publish a JSON-LD context
        govpub publish schema address-v1.jsonld --context
        # Publish three vocabulary types in one commit
        govpub publish vocab vocab-types.json
        # Refuse to overwrite a concurrently edited VCT
        govpub publish vct home.json --expected-sha 3f2a...
    """
    pass


@publish_cmd.command('schema')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', help='Target filename (default: the source filename)')
@click.option('--context', 'as_context', is_flag=True, help='Publish as a JSON-LD context')
@add_common_options('title', 'description', 'expected_sha', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_schema_handler(file, name, as_context, title, description, expected_sha, actor_login, pretty, verbose):
    """Publish a JSON Schema or JSON-LD context."""
    content = load_json_file(file)
    context, service = _service(verbose)
    result = service.publish_schema(
        name or Path(file).name,
        content,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
        mode='jsonld-context' if as_context else 'json-schema',
        expected_sha=expected_sha,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('vct')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', help='Target filename (default: the source filename)')
@add_common_options('title', 'description', 'expected_sha', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_vct_handler(file, name, title, description, expected_sha, actor_login, pretty, verbose):
    """Publish a VCT branding file."""
    content = load_json_file(file)
    context, service = _service(verbose)
    result = service.publish_vct(
        name or Path(file).name,
        content,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
        expected_sha=expected_sha,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('entities')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@add_common_options('title', 'description', 'expected_sha', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_entities_handler(file, title, description, expected_sha, actor_login, pretty, verbose):
    """Replace the entity registry (entities.json)."""
    content = load_json_file(file)
    context, service = _service(verbose)
    result = service.publish_entity_registry(
        content,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
        expected_sha=expected_sha,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('entity-statement')
@click.argument('entity_id')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@add_common_options('title', 'description', 'expected_sha', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_entity_statement_handler(entity_id, file, title, description, expected_sha, actor_login, pretty, verbose):
    """Publish the statement of one entity.

    FILE holds the entity object, or a registry containing ENTITY_ID.
    """
    data = load_json_file(file)
    entity = data
    if isinstance(data, dict) and isinstance(data.get('entities'), list):
        entity = next((e for e in data['entities'] if isinstance(e, dict) and e.get('id') == entity_id), None)
        if entity is None:
            raise ValidationError(f"Entity {entity_id} not found in {file}")
    if not isinstance(entity, dict):
        raise ValidationError(f"{file} must contain an entity object")

    context, service = _service(verbose)
    result = service.publish_entity_statement(
        entity_id,
        entity,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
        expected_sha=expected_sha,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('entity-logo')
@click.argument('entity_id')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', help='Target filename (default: the source filename)')
@add_common_options('title', 'description', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_entity_logo_handler(entity_id, file, name, title, description, actor_login, pretty, verbose):
    """Publish a logo image into the entity logos folder."""
    content = load_bytes_file(file)
    context, service = _service(verbose)
    result = service.publish_entity_logo(
        entity_id,
        name or Path(file).name,
        content,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('vocab')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@add_common_options('title', 'description', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_vocab_handler(file, title, description, actor_login, pretty, verbose):
    """Publish vocabulary types, all in one commit.

    FILE holds a list of vocabulary types, or an object with `vocabTypes`.
    """
    data = load_json_file(file)
    vocab_types = data.get('vocabTypes') if isinstance(data, dict) else data
    context, service = _service(verbose)
    result = service.publish_vocab(
        vocab_types,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('batch')
@click.argument('kind', type=click.Choice(BATCH_KINDS))
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@add_common_options('title', 'description', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_batch_handler(kind, files, title, description, actor_login, pretty, verbose):
    """Publish several documents of one kind in a single commit."""
    documents = {Path(f).name: load_json_file(f) for f in files}
    if len(documents) != len(files):
        raise ValidationError("Batch files must have distinct names")
    context, service = _service(verbose)
    result = service.publish_batch(
        TargetKind(kind),
        documents,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('harmonization')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@add_common_options('title', 'description', 'expected_sha', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_harmonization_handler(file, title, description, expected_sha, actor_login, pretty, verbose):
    """Replace the data harmonization mappings (mappings.json)."""
    content = load_json_file(file)
    context, service = _service(verbose)
    result = service.publish_harmonization(
        content,
        actor=resolve_actor(context.client, actor_login),
        title=title,
        description=description,
        expected_sha=expected_sha,
    )
    emit_publish_result(result, pretty=pretty)


@publish_cmd.command('asset')
@click.argument('asset_type', type=click.Choice(sorted(ASSET_TYPES)))
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--entity-id', help='Owning entity (required for entity-logo)')
@click.option('--name', help='Asset name (default: the source filename stem)')
@add_common_options('title', 'description', 'actor', 'pretty', 'verbose')
@handle_errors
def publish_asset_handler(
    asset_type: str,
    file: str,
    entity_id: Optional[str],
    name: Optional[str],
    title: Optional[str],
    description: Optional[str],
    actor_login: Optional[str],
    pretty: bool,
    verbose: bool,
):
    """Publish an image asset (entity logo, credential background or icon)."""
    content = load_bytes_file(file)
    context, service = _service(verbose)
    result = service.publish_asset(
        asset_type,
        Path(file).name,
        content,
        actor=resolve_actor(context.client, actor_login),
        entity_id=entity_id,
        name=name,
        title=title,
        description=description,
    )
    emit_publish_result(result, pretty=pretty)
