"""
Publish service for govpub.

One operation per publish target. Every operation follows the same
sequence: encode and validate the document(s), resolve the base branch,
check what is already published there, allocate a branch, write the
file(s), open a pull request.

Branches are never deleted here. If a step after branch allocation
fails, the branch (and for batches, its commit) stays in the
repository; the failure is logged with the branch name so it can be
cleaned up or superseded by a retry.
"""

import logging
import posixpath
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..config import PublisherConfig
from ..domain.diff import DiffResult
from ..domain.document import (
    ENTITY_REGISTRY_FILENAME,
    HARMONIZATION_FILENAME,
    ContentBlob,
    PublishTarget,
    TargetKind,
    build_entity_statement,
    decode_data_url,
    encode_document,
    file_stem,
    normalize_filename,
    validate_filename,
)
from ..domain.publish import Actor, PublishResult
from ..exit_codes import PublishError, ValidationError
from ..infra.github_client import GitHubClient
from .batch_publisher import AtomicMultiFilePublisher, BatchPublishRequest
from .branch_service import BaseBranchResolver, BranchAllocator
from .file_publisher import FilePublishRequest, SingleFilePublisher
from .pull_request_service import ChangeSummary, PullRequestComposer
from .reconciler import DiffReconciler

logger = logging.getLogger(__name__)

SCHEMA_MODES = ('json-schema', 'jsonld-context')

_UNSAFE_ASSET_CHARS = re.compile(r"[^a-z0-9-]")


def _require_actor(actor: Optional[Actor]) -> Actor:
    if actor is None or not actor.login:
        raise ValidationError("An acting user is required")
    return actor


class PublishService:
    """
    Publish governance documents as pull requests.

    Example:
        service = PublishService(client, publisher_config)
        result = service.publish_schema("address-v1", schema, actor=Actor(login="octocat"))
        print(result.pull_request.url)
    """

    def __init__(
        self,
        client: GitHubClient,
        config: PublisherConfig,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            client: GitHub client bound to the governance repository
            config: Publishing configuration
            clock: Returns the current time in seconds (time.time by default)
        """
        self.client = client
        self.config = config
        self.clock = clock or time.time
        self.resolver = BaseBranchResolver(client, config.coordinates)
        self.allocator = BranchAllocator(client, self.clock)
        self.file_publisher = SingleFilePublisher(client)
        self.batch_publisher = AtomicMultiFilePublisher(client, self.allocator)
        self.composer = PullRequestComposer(client, app_name=config.app_name, app_url=config.app_url)
        self.reconciler = DiffReconciler(client, config)

    # ------------------------------------------------------------------
    # Shared flows
    # ------------------------------------------------------------------
    def _publish_file(
        self,
        path: str,
        content: bytes,
        branch_prefix: str,
        verb: str,
        slug: str,
        commit_description: str,
        summarize: Callable[[bool], ChangeSummary],
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        expected_sha: Optional[str] = None,
    ) -> PublishResult:
        base_branch = self.resolver.resolve()
        current_sha = self.file_publisher.read_base(path, base_branch, expected_sha)
        branch = self.allocator.allocate(base_branch, branch_prefix, verb, slug)

        try:
            written = self.file_publisher.write(FilePublishRequest(
                branch=branch.name,
                base_branch=base_branch,
                path=path,
                content=content,
                description=commit_description,
                message=title,
                expected_sha=expected_sha,
            ), current_sha)
            pull_request = self.composer.open(
                head=branch.name,
                base=base_branch,
                summary=summarize(written.is_update),
                actor=actor,
                title=title,
                body=description,
            )
        except PublishError as e:
            logger.warning(f"Publishing {path} failed after creating branch {branch.name}; branch left in place: {e}")
            raise

        return PublishResult(
            pull_request=pull_request,
            branch=branch.name,
            files=[written.path],
            uris=[self.config.uri_for(written.path)],
            is_update=written.is_update,
        )

    def _publish_blobs(
        self,
        target: PublishTarget,
        blobs: List[ContentBlob],
        names: List[str],
        slug: str,
        summary: ChangeSummary,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PublishResult:
        self.batch_publisher.validate_documents(blobs)
        base_branch = self.resolver.resolve()
        batch = self.batch_publisher.publish(BatchPublishRequest(
            base_branch=base_branch,
            documents=blobs,
            branch_prefix=target.branch_prefix,
            verb='add',
            slug=slug,
            label=target.label,
            message=title,
            names=names,
        ))

        try:
            pull_request = self.composer.open(
                head=batch.branch.name,
                base=base_branch,
                summary=summary,
                actor=actor,
                title=title,
                body=description,
            )
        except PublishError as e:
            logger.warning(f"Opening pull request failed; branch {batch.branch.name} left in place: {e}")
            raise

        return PublishResult(
            pull_request=pull_request,
            branch=batch.branch.name,
            files=list(batch.paths),
            uris=[self.config.uri_for(path) for path in batch.paths],
        )

    # ------------------------------------------------------------------
    # Single-document targets
    # ------------------------------------------------------------------
    def publish_schema(
        self,
        filename: str,
        content: Any,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        mode: str = 'json-schema',
        expected_sha: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish a JSON Schema, or a JSON-LD context when `mode` is "jsonld-context".

        Written to `<schema folder>/<name>.json` or `<context folder>/<name>.jsonld`.
        """
        if mode not in SCHEMA_MODES:
            raise ValidationError(f"Unknown schema mode: {mode}")
        kind = TargetKind.CONTEXT if mode == 'jsonld-context' else TargetKind.SCHEMA
        return self._publish_named_document(kind, filename, content, actor, title, description, expected_sha)

    def publish_vct(
        self,
        filename: str,
        content: Any,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        expected_sha: Optional[str] = None,
    ) -> PublishResult:
        """Publish a VCT branding file to `<vct folder>/<name>.json`."""
        return self._publish_named_document(TargetKind.VCT, filename, content, actor, title, description, expected_sha)

    def _publish_named_document(
        self,
        kind: TargetKind,
        filename: str,
        content: Any,
        actor: Actor,
        title: Optional[str],
        description: Optional[str],
        expected_sha: Optional[str],
    ) -> PublishResult:
        target = self.config.target(kind)
        final_filename = normalize_filename(filename, target.extension)
        data = encode_document(content)
        actor = _require_actor(actor)

        return self._publish_file(
            path=target.path_for(final_filename),
            content=data,
            branch_prefix=target.branch_prefix,
            verb='add',
            slug=file_stem(final_filename),
            commit_description=f"{target.label}: {final_filename}",
            summarize=lambda is_update: ChangeSummary(
                label=target.label,
                name=final_filename,
                is_update=is_update,
            ),
            actor=actor,
            title=title,
            description=description,
            expected_sha=expected_sha,
        )

    def publish_entity_registry(
        self,
        content: Any,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        expected_sha: Optional[str] = None,
    ) -> PublishResult:
        """Replace the entity registry at `<entity folder>/entities.json`."""
        data = encode_document(content)
        actor = _require_actor(actor)
        target = self.config.target(TargetKind.ENTITY)

        return self._publish_file(
            path=target.path_for(ENTITY_REGISTRY_FILENAME),
            content=data,
            branch_prefix=target.branch_prefix,
            verb='update',
            slug='entities',
            commit_description='entity registry',
            summarize=lambda is_update: ChangeSummary(
                label='entity registry',
                name=ENTITY_REGISTRY_FILENAME,
                is_update=is_update,
                subject='the entity registry.',
                title='Update entity registry',
            ),
            actor=actor,
            title=title,
            description=description,
            expected_sha=expected_sha,
        )

    def publish_entity_statement(
        self,
        entity_id: str,
        entity: Mapping[str, Any],
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        expected_sha: Optional[str] = None,
    ) -> PublishResult:
        """Publish one entity's statement to `<entity folder>/<entity_id>.json`."""
        if not entity_id or not entity:
            raise ValidationError("entityId and entity are required")
        validate_filename(entity_id)
        actor = _require_actor(actor)
        target = self.config.target(TargetKind.ENTITY)

        published_at = datetime.fromtimestamp(self.clock(), timezone.utc)
        statement = build_entity_statement(dict(entity), actor, target.folder, published_at)
        data = encode_document(statement)
        name = entity.get('name') or entity_id

        details = [f"**Entity Types:** {', '.join(entity.get('entityTypes') or []) or 'None'}"]
        if entity.get('dataProviderTypes'):
            details.append(f"**Data Provider Types:** {', '.join(entity['dataProviderTypes'])}")
        if entity.get('regionsCovered'):
            details.append(f"**Regions Covered:** {', '.join(entity['regionsCovered'])}")

        return self._publish_file(
            path=target.path_for(f"{entity_id}.json"),
            content=data,
            branch_prefix=target.branch_prefix,
            verb='publish',
            slug=entity_id,
            commit_description=f"entity statement: {name}",
            summarize=lambda is_update: ChangeSummary(
                label='entity',
                name=name,
                is_update=is_update,
                subject=f"the entity statement for **{name}** (`{entity_id}`).",
                details=details,
            ),
            actor=actor,
            title=title,
            description=description,
            expected_sha=expected_sha,
        )

    def publish_entity_logo(
        self,
        entity_id: str,
        filename: str,
        content: Any,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish an entity logo to `<entity folder>/logos/<filename>`.

        Text content is treated as base64, optionally as a data URL.
        """
        if not entity_id or not filename or not content:
            raise ValidationError("entityId, filename, and content are required")
        validate_filename(filename)
        data = decode_data_url(content) if isinstance(content, str) else encode_document(content)
        actor = _require_actor(actor)
        target = self.config.target(TargetKind.ENTITY)

        return self._publish_file(
            path=f"{self.config.asset_folder(self.config.asset_type('entity-logo'))}/{filename}",
            content=data,
            branch_prefix=target.branch_prefix,
            verb='add',
            slug=f"logo-{entity_id}",
            commit_description=f"logo for entity: {entity_id}",
            summarize=lambda is_update: ChangeSummary(
                label='logo for entity',
                name=entity_id,
                is_update=is_update,
                subject=f"a logo for the entity `{entity_id}`.",
            ),
            actor=actor,
            title=title,
            description=description,
        )

    def publish_harmonization(
        self,
        content: Any,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        expected_sha: Optional[str] = None,
    ) -> PublishResult:
        """Replace the data harmonization mappings at `<harmonization folder>/mappings.json`."""
        data = encode_document(content)
        actor = _require_actor(actor)
        target = self.config.target(TargetKind.HARMONIZATION)

        return self._publish_file(
            path=target.path_for(HARMONIZATION_FILENAME),
            content=data,
            branch_prefix=target.branch_prefix,
            verb='update',
            slug='mappings',
            commit_description=target.label,
            summarize=lambda is_update: ChangeSummary(
                label=target.label,
                name=HARMONIZATION_FILENAME,
                is_update=is_update,
                subject=f"the {target.label}.",
                title=f"Update {target.label}",
            ),
            actor=actor,
            title=title,
            description=description,
            expected_sha=expected_sha,
        )

    def publish_asset(
        self,
        asset_type: str,
        filename: str,
        content: Any,
        actor: Actor,
        entity_id: Optional[str] = None,
        name: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish a binary asset (entity logo, credential background or icon).

        Entity logos are stored as `<entity_id><ext>`; other assets use
        a sanitized `name` (or the source filename stem).
        """
        if not filename or content is None or not asset_type:
            raise ValidationError("filename, content, and assetType are required")
        kind = self.config.asset_type(asset_type)
        validate_filename(filename)
        ext = posixpath.splitext(filename)[1]

        if asset_type == 'entity-logo':
            if not entity_id:
                raise ValidationError("entityId is required for entity-logo type")
            validate_filename(entity_id)
            target_filename = f"{entity_id}{ext}"
        else:
            raw = (name or file_stem(filename)).lower()
            safe_name = _UNSAFE_ASSET_CHARS.sub('', re.sub(r"\s+", '-', raw))
            if not safe_name:
                raise ValidationError(f"Cannot derive an asset name from {name or filename!r}")
            target_filename = f"{safe_name}{ext}"

        data = decode_data_url(content) if isinstance(content, str) else encode_document(content)
        actor = _require_actor(actor)
        path = f"{self.config.asset_folder(kind)}/{target_filename}"

        details = [f"**Type:** {kind.label}", f"**File:** `{path}`"]
        if entity_id:
            details.append(f"**Entity ID:** {entity_id}")

        return self._publish_file(
            path=path,
            content=data,
            branch_prefix=f"asset/{asset_type}",
            verb='add',
            slug=file_stem(target_filename),
            commit_description=f"{asset_type}: {target_filename}",
            summarize=lambda is_update: ChangeSummary(
                label=asset_type,
                name=target_filename,
                is_update=is_update,
                subject=f"a new {kind.label}: `{target_filename}`",
                details=details,
            ),
            actor=actor,
            title=title,
            description=description,
        )

    # ------------------------------------------------------------------
    # Atomic batches
    # ------------------------------------------------------------------
    def publish_vocab(
        self,
        vocab_types: Sequence[Mapping[str, Any]],
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish vocabulary types as one commit, one `<vocab folder>/<id>.json` per type.
        """
        if not vocab_types or isinstance(vocab_types, (str, bytes, Mapping)):
            raise ValidationError("vocabTypes array is required")
        actor = _require_actor(actor)
        target = self.config.target(TargetKind.VOCAB)

        blobs = []
        names = []
        items = []
        for vocab_type in vocab_types:
            if not isinstance(vocab_type, Mapping) or not vocab_type.get('id'):
                raise ValidationError("Every vocabulary type needs an id")
            type_id = validate_filename(str(vocab_type['id']))
            type_name = vocab_type.get('name') or type_id
            blobs.append(ContentBlob(
                path=target.path_for(f"{type_id}.json"),
                data=encode_document(dict(vocab_type)),
            ))
            names.append(type_name)
            items.append(f"`{type_id}`: {type_name}")

        count = len(blobs)
        if count == 1:
            summary = ChangeSummary(
                label=target.label,
                name=names[0],
                subject=f"a {target.label} to the governance repository.",
                items=items,
                items_heading='Vocabulary types',
            )
        else:
            summary = ChangeSummary(
                label=target.label,
                name=names[0],
                subject=f"{count} {target.label}s to the governance repository.",
                items=items,
                items_heading='Vocabulary types',
                title=f"Add {count} {target.label}s",
            )

        return self._publish_blobs(
            target=target,
            blobs=blobs,
            names=names,
            slug=f"{count}-types",
            summary=summary,
            actor=actor,
            title=title,
            description=description,
        )

    def publish_batch(
        self,
        kind: TargetKind,
        documents: Mapping[str, Any],
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish several documents of one kind as a single commit.

        Args:
            kind: Target kind (not ASSET)
            documents: filename -> content
        """
        if kind is TargetKind.ASSET:
            raise ValidationError("Assets cannot be published as a batch")
        if not documents:
            raise ValidationError("At least one document is required")
        actor = _require_actor(actor)
        target = self.config.target(kind)

        blobs = []
        names = []
        for filename, content in documents.items():
            final_filename = normalize_filename(filename, target.extension)
            blobs.append(ContentBlob(path=target.path_for(final_filename), data=encode_document(content)))
            names.append(final_filename)

        count = len(blobs)
        slug = file_stem(names[0]) if count == 1 else f"{count}-files"
        summary = ChangeSummary(
            label=target.label,
            name=names[0],
            subject=None if count == 1 else f"{count} {target.label} files.",
            items=[f"`{n}`" for n in names] if count > 1 else [],
            title=None if count == 1 else f"Add {count} {target.label} files",
        )

        return self._publish_blobs(
            target=target,
            blobs=blobs,
            names=names,
            slug=slug,
            summary=summary,
            actor=actor,
            title=title,
            description=description,
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    def diff_entities(self, local_entities: Sequence[Dict[str, Any]]) -> DiffResult:
        """Preview how local entities differ from the published registry."""
        return self.reconciler.diff_entities(local_entities)
