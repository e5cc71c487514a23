"""
Domain layer for govpub.

Contains pure domain objects with no I/O or side effects:
- Document targets and encoding (PublishTarget, ContentBlob)
- Publishing records (Branch, CommitSpec, PullRequest, PublishResult)
- Reconciliation results (DiffItem, DiffResult)

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .document import (
    ASSET_TYPES,
    AssetType,
    ContentBlob,
    PublishTarget,
    TargetKind,
    build_entity_statement,
    encode_document,
    normalize_filename,
    slugify,
)
from .publish import (
    Actor,
    Branch,
    CommitSpec,
    PublishResult,
    PullRequest,
    RepositoryCoordinates,
    TreeEntry,
)
from .diff import DiffItem, DiffResult

__all__ = [
    'ASSET_TYPES',
    'AssetType',
    'ContentBlob',
    'PublishTarget',
    'TargetKind',
    'build_entity_statement',
    'encode_document',
    'normalize_filename',
    'slugify',
    'Actor',
    'Branch',
    'CommitSpec',
    'PublishResult',
    'PullRequest',
    'RepositoryCoordinates',
    'TreeEntry',
    'DiffItem',
    'DiffResult',
]
