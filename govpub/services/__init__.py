"""
Service layer for govpub.

Contains the publishing workflow that orchestrates domain objects and
the GitHub client:
- PublishService: One publish operation per document kind
- DiffReconciler: Local/remote comparison of document collections
- LibraryService: Read-only views of published documents

Services are the primary API for commands to use.
"""

from .publish_service import PublishService
from .reconciler import DiffReconciler, DiffRules, reconcile
from .library_service import LibraryService

__all__ = [
    'PublishService',
    'DiffReconciler',
    'DiffRules',
    'reconcile',
    'LibraryService',
]
