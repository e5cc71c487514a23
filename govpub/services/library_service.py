"""
Library service for govpub.

Read-only views of what is already published in the governance
repository: document listings, name availability, single documents,
entity statements and image assets. Every read goes against the
configured base branch (the repository default when none is pinned).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config import PublisherConfig
from ..domain.document import (
    ASSET_TYPES,
    ENTITY_REGISTRY_FILENAME,
    IMAGE_EXTENSIONS,
    TargetKind,
    file_stem,
    normalize_filename,
    validate_filename,
)
from ..exit_codes import HostError, NotFoundError, ValidationError
from ..infra.github_client import GitHubClient, RemoteEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryDocument:
    """A published document file."""
    name: str
    path: str
    sha: str
    uri: str
    download_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'path': self.path,
            'sha': self.sha,
            'uri': self.uri,
            'download_url': self.download_url,
        }


@dataclass(frozen=True)
class PublishedAsset:
    """A published image asset."""
    id: str
    name: str
    filename: str
    type: str
    uri: str
    sha: str
    download_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'filename': self.filename,
            'type': self.type,
            'uri': self.uri,
            'downloadUrl': self.download_url,
            'sha': self.sha,
        }


@dataclass(frozen=True)
class PublishedDocument:
    """Content of one published document and its current hash."""
    filename: str
    path: str
    sha: str
    uri: str
    content: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'path': self.path,
            'sha': self.sha,
            'uri': self.uri,
            'content': self.content,
        }


class LibraryService:
    """
    Browse published governance documents.

    Example:
        library = LibraryService(client, publisher_config)
        for doc in library.list_documents(TargetKind.SCHEMA):
            print(doc.name, doc.uri)
    """

    def __init__(self, client: GitHubClient, config: PublisherConfig):
        self.client = client
        self.config = config

    @property
    def ref(self) -> Optional[str]:
        return self.config.coordinates.base_branch

    def _list_files(self, folder: str) -> List[RemoteEntry]:
        entries = self.client.list_directory(folder, ref=self.ref)
        if entries is None:
            logger.debug(f"{folder} does not exist, listing as empty")
            return []
        return [entry for entry in entries if entry.type == 'file']

    def _decode(self, path: str, remote_file) -> Any:
        try:
            return remote_file.json()
        except (UnicodeDecodeError, ValueError) as e:
            raise HostError(f"{path} does not contain valid JSON: {e}") from e

    def list_documents(self, kind: TargetKind) -> List[LibraryDocument]:
        """List published documents of one kind. A missing folder lists as empty."""
        if kind is TargetKind.ASSET:
            raise ValidationError("Use list_published_assets() for assets")
        target = self.config.target(kind)

        documents = []
        for entry in self._list_files(target.folder):
            if not entry.name.endswith(target.extension):
                continue
            documents.append(LibraryDocument(
                name=entry.name,
                path=entry.path,
                sha=entry.sha,
                uri=self.config.uri_for(entry.path),
                download_url=entry.download_url,
            ))
        return documents

    def is_available(self, kind: TargetKind, filename: str) -> bool:
        """True when no document of this kind is published under `filename`."""
        target = self.config.target(kind)
        final_filename = normalize_filename(filename, target.extension)
        return self.client.get_file(target.path_for(final_filename), ref=self.ref) is None

    def read_document(self, kind: TargetKind, filename: str) -> PublishedDocument:
        """
        Read one published document.

        Raises:
            NotFoundError: nothing is published under that name
        """
        target = self.config.target(kind)
        final_filename = normalize_filename(filename, target.extension)
        path = target.path_for(final_filename)

        remote_file = self.client.get_file(path, ref=self.ref)
        if remote_file is None:
            raise NotFoundError(f"{target.label} not found: {final_filename}")

        return PublishedDocument(
            filename=remote_file.name,
            path=path,
            sha=remote_file.sha,
            uri=self.config.uri_for(path),
            content=self._decode(path, remote_file),
        )

    def get_entity_statement(self, entity_id: str) -> Optional[PublishedDocument]:
        """Published statement of one entity, or None if it was never published."""
        validate_filename(entity_id)
        try:
            return self.read_document(TargetKind.ENTITY, f"{entity_id}.json")
        except NotFoundError:
            return None

    def list_entities(self) -> List[Dict[str, Any]]:
        """Entities from the published registry, reduced to id, name, types and logoUri."""
        path = self.config.target(TargetKind.ENTITY).path_for(ENTITY_REGISTRY_FILENAME)
        remote_file = self.client.get_file(path, ref=self.ref)
        if remote_file is None:
            return []

        data = self._decode(path, remote_file)
        entities = data.get('entities') if isinstance(data, dict) else data
        return [
            {
                'id': entity.get('id'),
                'name': entity.get('name'),
                'types': entity.get('types') or [],
                'logoUri': entity.get('logoUri'),
            }
            for entity in (entities or [])
            if isinstance(entity, dict)
        ]

    def list_published_assets(self) -> List[PublishedAsset]:
        """Images in the entity logo, credential background and credential icon folders."""
        assets = []
        for key, asset_type in ASSET_TYPES.items():
            for entry in self._list_files(self.config.asset_folder(asset_type)):
                if not entry.name.lower().endswith(IMAGE_EXTENSIONS):
                    continue
                assets.append(PublishedAsset(
                    id=f"{key}:{entry.name}",
                    name=file_stem(entry.name),
                    filename=entry.name,
                    type=key,
                    uri=self.config.uri_for(entry.path),
                    sha=entry.sha,
                    download_url=entry.download_url,
                ))
        return assets
