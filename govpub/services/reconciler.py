"""
Local/remote reconciliation for govpub.

Compares a locally held document collection with the published one and
classifies every document as added, modified, unchanged or deleted,
with a field-level change list for modified documents.

`reconcile()` is a pure function of its inputs: it has no side effects
and is safe to call speculatively before a publish. DiffReconciler adds
the remote fetch, treating a missing remote collection as empty.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config import PublisherConfig
from ..domain.diff import DiffItem, DiffResult
from ..domain.document import ENTITY_REGISTRY_FILENAME, TargetKind
from ..exit_codes import HostError, ValidationError
from ..infra.github_client import GitHubClient

logger = logging.getLogger(__name__)

ENTITY_WATCHED_FIELDS = (
    'name',
    'description',
    'website',
    'contactEmail',
    'contactPhone',
    'contactName',
    'did',
    'status',
    'logoUri',
)


@dataclass(frozen=True)
class DiffRules:
    """
    How documents are keyed and compared.

    Attributes:
        key: Field holding the stable identifier
        watched_fields: Fields reported as "<field> changed" when they differ
        set_fields: List fields compared as sets (order and repeats ignored)
        count_fields: (label, path) pairs whose nested list lengths are compared
    """
    key: str = 'id'
    watched_fields: Tuple[str, ...] = ENTITY_WATCHED_FIELDS
    set_fields: Tuple[str, ...] = ('types',)
    count_fields: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
        ('data sources', ('dataSchema', 'sources')),
    )


ENTITY_RULES = DiffRules()


def _nested(document: Mapping[str, Any], path: Sequence[str]) -> Any:
    value: Any = document
    for part in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _as_set(value: Any) -> frozenset:
    if not value:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(json.dumps(v, sort_keys=True) for v in value)
    return frozenset([json.dumps(value, sort_keys=True)])


def describe_changes(
    remote: Mapping[str, Any],
    local: Mapping[str, Any],
    rules: DiffRules = ENTITY_RULES,
) -> List[str]:
    """Human-readable changes between the published and local version of a document."""
    changes = []

    for name in rules.watched_fields:
        if remote.get(name) != local.get(name):
            changes.append(f"{name} changed")

    for name in rules.set_fields:
        if _as_set(remote.get(name)) != _as_set(local.get(name)):
            changes.append(f"{name} changed")

    for label, path in rules.count_fields:
        remote_count = len(_nested(remote, path) or [])
        local_count = len(_nested(local, path) or [])
        if remote_count != local_count:
            changes.append(f"{label}: {remote_count} → {local_count}")

    return changes or ['content changed']


def _summarize(document: Mapping[str, Any], rules: DiffRules, changes: Optional[List[str]] = None) -> DiffItem:
    return DiffItem(
        id=str(document[rules.key]),
        name=document.get('name'),
        types=document.get('types'),
        changes=changes,
    )


def _index_local(documents: Iterable[Any], rules: DiffRules) -> Dict[str, Mapping[str, Any]]:
    index: Dict[str, Mapping[str, Any]] = {}
    for position, document in enumerate(documents):
        if not isinstance(document, Mapping) or document.get(rules.key) in (None, ''):
            raise ValidationError(f"Local document {position} has no '{rules.key}'")
        identifier = str(document[rules.key])
        if identifier in index:
            raise ValidationError(f"Duplicate local '{rules.key}': {identifier}")
        index[identifier] = document
    return index


def _index_remote(documents: Iterable[Any], rules: DiffRules) -> Dict[str, Mapping[str, Any]]:
    index: Dict[str, Mapping[str, Any]] = {}
    for document in documents:
        if not isinstance(document, Mapping) or document.get(rules.key) in (None, ''):
            logger.warning(f"Skipping remote document without '{rules.key}'")
            continue
        # First occurrence wins for duplicated remote identifiers
        index.setdefault(str(document[rules.key]), document)
    return index


def reconcile(
    local: Sequence[Any],
    remote: Sequence[Any],
    rules: DiffRules = ENTITY_RULES,
) -> DiffResult:
    """
    Classify local documents against remote ones.

    Args:
        local: Locally held documents (each must carry `rules.key`)
        remote: Published documents
        rules: Keying and comparison rules

    Returns:
        DiffResult with added, modified, unchanged and deleted items

    Raises:
        ValidationError: a local document has no identifier, or two share one
    """
    local_index = _index_local(local, rules)
    remote_index = _index_remote(remote, rules)
    result = DiffResult(total_local=len(local), total_remote=len(remote))

    for identifier, document in local_index.items():
        published = remote_index.get(identifier)
        if published is None:
            result.added.append(_summarize(document, rules))
        elif published == document:
            result.unchanged.append(_summarize(document, rules))
        else:
            changes = describe_changes(published, document, rules)
            result.modified.append(_summarize(document, rules, changes))

    for identifier, document in remote_index.items():
        if identifier not in local_index:
            result.deleted.append(_summarize(document, rules))

    return result


class DiffReconciler:
    """
    Preview what publishing a local collection would change.

    Example:
        reconciler = DiffReconciler(client, publisher_config)
        diff = reconciler.diff_entities(local_entities)
        print(diff.summary())
    """

    def __init__(self, client: GitHubClient, config: PublisherConfig):
        self.client = client
        self.config = config

    def fetch_collection(self, path: str, field: str) -> List[Any]:
        """
        Read a published collection file.

        Accepts either a bare JSON list or an object holding the list
        under `field`. A missing file is an empty collection.
        """
        remote_file = self.client.get_file(path, ref=self.config.coordinates.base_branch)
        if remote_file is None:
            logger.debug(f"{path} not published yet, treating as empty")
            return []

        try:
            data = remote_file.json()
        except (UnicodeDecodeError, ValueError) as e:
            raise HostError(f"{path} does not contain valid JSON: {e}") from e

        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return list(data.get(field) or [])
        raise HostError(f"{path} must contain a list or an object with '{field}'")

    def entity_registry_path(self) -> str:
        return self.config.target(TargetKind.ENTITY).path_for(ENTITY_REGISTRY_FILENAME)

    def diff_entities(self, local_entities: Sequence[Any], rules: DiffRules = ENTITY_RULES) -> DiffResult:
        """Compare local entities with the published entity registry."""
        if local_entities is None or isinstance(local_entities, (str, bytes, Mapping)):
            raise ValidationError("localEntities array is required")
        remote_entities = self.fetch_collection(self.entity_registry_path(), 'entities')
        return reconcile(list(local_entities), remote_entities, rules)
