"""
Atomic multi-file publishing for govpub.

Builds a single commit containing N files directly from git objects:
blobs first, then one tree layered over the base tree, then one commit
whose parent is the base commit. The branch is created last, pointing
at the finished commit, so a failure at any earlier step leaves no
visible branch and no partially published batch.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..domain.document import ContentBlob
from ..domain.publish import Branch, CommitSpec, TreeEntry
from ..exit_codes import ValidationError
from ..infra.github_client import GitHubClient
from .branch_service import BranchAllocator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchPublishRequest:
    """
    Documents that must land together in one commit.

    Attributes:
        base_branch: Branch the commit is built on
        documents: Encoded documents with their target paths
        branch_prefix: Target-kind prefix for the new branch name
        verb: Action word for the new branch name
        slug: Description for the new branch name
        label: Singular document label used in the default commit message
        message: Commit message overriding the default
    """
    base_branch: str
    documents: Sequence[ContentBlob]
    branch_prefix: str
    verb: str
    slug: str
    label: str = "document"
    message: Optional[str] = None
    names: Sequence[str] = ()


@dataclass
class BatchPublishResult:
    """The branch, commit and tree produced for a batch."""
    branch: Branch
    commit_sha: str
    tree_sha: str
    paths: List[str] = field(default_factory=list)


def default_batch_message(label: str, names: Sequence[str]) -> str:
    """`Add <label>: <name>` for one document, `Add N <label>s` for several."""
    if len(names) == 1:
        return f"Add {label}: {names[0]}"
    return f"Add {len(names)} {label}s"


class AtomicMultiFilePublisher:
    """Publish many documents as exactly one commit on a new branch."""

    def __init__(self, client: GitHubClient, allocator: BranchAllocator):
        self.client = client
        self.allocator = allocator

    @staticmethod
    def validate_documents(documents: Sequence[ContentBlob]) -> None:
        """Reject an empty batch, missing paths and duplicate paths."""
        if not documents:
            raise ValidationError("At least one document is required")
        seen = set()
        for blob in documents:
            if not blob.path:
                raise ValidationError("Every document needs a path")
            if blob.path in seen:
                raise ValidationError(f"Duplicate path in batch: {blob.path}")
            seen.add(blob.path)

    def build_commit(self, request: BatchPublishRequest) -> CommitSpec:
        """Resolve the base commit and upload one blob per document."""
        base_sha = self.client.get_branch_sha(request.base_branch)
        base_tree = self.client.get_commit_tree(base_sha)

        entries = []
        for blob in request.documents:
            blob_sha = self.client.create_blob(blob.data)
            entries.append(TreeEntry(path=blob.path, sha=blob_sha))
            logger.debug(f"Created blob {blob_sha[:8]} for {blob.path}")

        names = list(request.names) or [blob.filename for blob in request.documents]
        message = request.message or default_batch_message(request.label, names)
        return CommitSpec(
            base_tree=base_tree,
            parent=base_sha,
            message=message,
            entries=tuple(entries),
        )

    def publish(self, request: BatchPublishRequest) -> BatchPublishResult:
        """
        Commit every document at once and point a new branch at the commit.

        Raises:
            ValidationError: empty batch or duplicate paths (before any call)
            HostError: any GitHub failure; no branch exists if it happens
                before the final step
        """
        self.validate_documents(request.documents)
        # Compose the name up front so its timestamp reflects the request
        branch_name = self.allocator.compose_name(request.branch_prefix, request.verb, request.slug)

        spec = self.build_commit(request)
        tree_sha = self.client.create_tree(spec.base_tree, spec.entries)
        commit_sha = self.client.create_commit(spec.message, tree_sha, [spec.parent])
        logger.info(f"Created commit {commit_sha[:8]} with {len(spec.entries)} file(s)")

        branch = self.allocator.allocate_at(branch_name, commit_sha, exist_ok=True)
        return BatchPublishResult(
            branch=branch,
            commit_sha=commit_sha,
            tree_sha=tree_sha,
            paths=spec.paths,
        )
