"""
Document encoding for govpub.

Turns an in-memory document (object, text or raw bytes) into the
canonical bytes and repository path it will occupy once published,
and holds the fixed table of publish targets.
"""

import base64
import binascii
import json
import posixpath
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from ..exit_codes import ValidationError
from .publish import Actor

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
_DATA_URL_PREFIX = re.compile(r"^data:[\w.+-]+/[\w.+-]+;base64,")


class TargetKind(Enum):
    """Logical kind of a published document."""
    SCHEMA = "schema"
    CONTEXT = "context"
    VCT = "vct"
    ENTITY = "entity"
    VOCAB = "vocab"
    HARMONIZATION = "harmonization"
    ASSET = "asset"


@dataclass(frozen=True)
class PublishTarget:
    """Folder, file extension and naming used for one document kind."""
    kind: TargetKind
    folder: str
    extension: str
    label: str
    branch_prefix: str

    def path_for(self, filename: str) -> str:
        """Repository path of a file stored under this target's folder."""
        if not self.folder:
            return filename
        return f"{self.folder}/{filename}"


@dataclass(frozen=True)
class AssetType:
    """A binary asset category and the folder it is published under."""
    key: str
    owner: TargetKind  # whose folder the asset lives in
    subfolder: str
    label: str


ASSET_TYPES: Dict[str, AssetType] = {
    'entity-logo': AssetType('entity-logo', TargetKind.ENTITY, 'logos', 'Entity Logo'),
    'credential-background': AssetType(
        'credential-background', TargetKind.VCT, 'backgrounds', 'Credential Background'
    ),
    'credential-icon': AssetType('credential-icon', TargetKind.VCT, 'icons', 'Credential Icon'),
}

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp')

ENTITY_REGISTRY_FILENAME = 'entities.json'
HARMONIZATION_FILENAME = 'mappings.json'

# kind -> (extension, label, branch prefix); assets keep their source extension
TARGET_SPECS: Dict[TargetKind, Tuple[str, str, str]] = {
    TargetKind.SCHEMA: ('.json', 'JSON Schema', 'schema'),
    TargetKind.CONTEXT: ('.jsonld', 'JSON-LD Context', 'context'),
    TargetKind.VCT: ('.json', 'VCT branding file', 'vct'),
    TargetKind.ENTITY: ('.json', 'entity statement', 'entity'),
    TargetKind.VOCAB: ('.json', 'vocabulary type', 'vocab'),
    TargetKind.HARMONIZATION: ('.json', 'data harmonization mappings', 'harmonization'),
    TargetKind.ASSET: ('', 'asset', 'asset'),
}


def build_targets(folders: Mapping[TargetKind, str]) -> Dict[TargetKind, PublishTarget]:
    """Build the publish target table from the configured folder per kind."""
    targets = {}
    for kind, (extension, label, prefix) in TARGET_SPECS.items():
        targets[kind] = PublishTarget(
            kind=kind,
            folder=folders.get(kind, '').strip('/'),
            extension=extension,
            label=label,
            branch_prefix=prefix,
        )
    return targets


@dataclass(frozen=True)
class ContentBlob:
    """Encoded bytes plus the path they will occupy. Lives for one publish call."""
    path: str
    data: bytes

    @property
    def filename(self) -> str:
        return posixpath.basename(self.path)


def encode_document(content: Any) -> bytes:
    """
    Serialize a document into canonical bytes.

    Bytes pass through untouched, text is UTF-8 encoded, and any other
    value is written as 2-space indented JSON with non-ASCII preserved.
    """
    if content is None:
        raise ValidationError("Content is required")
    if isinstance(content, bytes):
        return content
    if isinstance(content, str):
        return content.encode('utf-8')
    try:
        return json.dumps(content, indent=2, ensure_ascii=False).encode('utf-8')
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Content is not JSON serializable: {e}") from e


def validate_filename(filename: Optional[str]) -> str:
    """Reject empty names and anything that could escape its folder."""
    if not filename or not filename.strip():
        raise ValidationError("Filename is required")
    if '/' in filename or '\\' in filename or filename in ('.', '..'):
        raise ValidationError(f"Invalid filename: {filename!r}")
    return filename


def normalize_filename(filename: Optional[str], extension: str) -> str:
    """
    Ensure a filename carries the target's extension.

    A `.json` suffix is swapped rather than doubled when the target
    wants `.jsonld`.
    """
    filename = validate_filename(filename)
    if not extension or filename.endswith(extension):
        return filename
    if filename.endswith('.json'):
        filename = filename[:-len('.json')]
    return filename + extension


def file_stem(filename: str) -> str:
    """Filename without its final extension."""
    return posixpath.splitext(filename)[0]


def slugify(value: str, default: str = "document") -> str:
    """Return a branch-name friendly slug for the given value."""
    normalised = _SLUG_PATTERN.sub("-", value.lower()).strip("-")
    return normalised or default


def decode_data_url(content: str) -> bytes:
    """Decode base64 content, stripping a `data:<mime>;base64,` prefix if present."""
    payload = _DATA_URL_PREFIX.sub('', content.strip())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Content is not valid base64: {e}") from e


def _resolve_logo_uri(logo_uri: str, entity_folder: str) -> str:
    if logo_uri.startswith('http') or logo_uri.startswith('/'):
        return logo_uri
    return f"{entity_folder}/logos/{logo_uri}"


# Optional fields copied into a statement only when they hold a value
_STATEMENT_OPTIONAL_FIELDS = (
    'description',
    'dataProviderTypes',
    'serviceProviderTypes',
    'regionsCovered',
    'status',
    'logoUri',
    'primaryColor',
    'website',
    'contactEmail',
    'contactPhone',
    'contactName',
    'did',
)


def build_entity_statement(
    entity: Dict[str, Any],
    actor: Actor,
    entity_folder: str,
    published_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the published form of a single entity.

    Empty optional fields are dropped, a relative logo filename is
    resolved under the entity logos folder, and the statement is
    stamped with when and by whom it was published.
    """
    published = (published_at or datetime.now(timezone.utc)).astimezone(timezone.utc)

    statement: Dict[str, Any] = {
        'id': entity.get('id'),
        'name': entity.get('name'),
        'entityTypes': list(entity.get('entityTypes') or []),
    }
    for key in _STATEMENT_OPTIONAL_FIELDS:
        value = entity.get(key)
        if not value:
            continue
        if key == 'logoUri':
            value = _resolve_logo_uri(value, entity_folder)
        statement[key] = value

    statement['publishedAt'] = published.isoformat().replace('+00:00', 'Z')
    statement['publishedBy'] = actor.to_dict()
    return {key: value for key, value in statement.items() if value is not None}
