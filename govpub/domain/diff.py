"""
Reconciliation result objects for govpub.

A DiffResult classifies every document of a local collection against
the remote published collection. Results are computed fresh on every
call and never cached.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class DiffItem:
    """Summary of one classified document."""
    id: str
    name: Optional[str] = None
    types: Optional[List[str]] = None
    changes: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'id': self.id,
            'name': self.name,
            'types': self.types,
        }
        if self.changes is not None:
            result['changes'] = list(self.changes)
        return result


@dataclass
class DiffResult:
    """Four disjoint classifications of a local document set against a remote one."""
    added: List[DiffItem] = field(default_factory=list)
    modified: List[DiffItem] = field(default_factory=list)
    unchanged: List[DiffItem] = field(default_factory=list)
    deleted: List[DiffItem] = field(default_factory=list)
    total_local: int = 0
    total_remote: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    def summary(self) -> Dict[str, int]:
        return {
            'addedCount': len(self.added),
            'modifiedCount': len(self.modified),
            'unchangedCount': len(self.unchanged),
            'deletedCount': len(self.deleted),
            'totalLocal': self.total_local,
            'totalRemote': self.total_remote,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'added': [item.to_dict() for item in self.added],
            'modified': [item.to_dict() for item in self.modified],
            'unchanged': [item.to_dict() for item in self.unchanged],
            'deleted': [item.to_dict() for item in self.deleted],
            'summary': self.summary(),
        }
