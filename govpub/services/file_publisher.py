"""
Single-file publishing for govpub.

Writes or updates exactly one file on an allocated branch as one
commit. Existing content is always looked up on the *base* branch so
that edits made there since the caller last looked are detected.

Concurrency rule: an `expected_sha` is a hard precondition. When it is
given, the file must exist on the base branch with exactly that hash,
otherwise a ConflictError is raised before anything is written. When
it is omitted, the hash found on the base branch is used and an
existing file is updated in place.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..exit_codes import ConflictError, ValidationError
from ..infra.github_client import FileWrite, GitHubClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilePublishRequest:
    """
    One file to write on an allocated branch.

    Attributes:
        branch: Allocated branch the commit lands on
        base_branch: Branch the existing content is checked against
        path: Repository path
        content: Encoded bytes
        description: Used for the default commit message, e.g. "JSON Schema: address-v1.json"
        message: Commit message overriding the default
        expected_sha: Hash the file must currently have on the base branch
    """
    branch: str
    base_branch: str
    path: str
    content: bytes
    description: str
    message: Optional[str] = None
    expected_sha: Optional[str] = None


@dataclass(frozen=True)
class FilePublishResult:
    """Where the file was written and its new content hash."""
    path: str
    sha: str
    commit_sha: str
    previous_sha: Optional[str] = None

    @property
    def is_update(self) -> bool:
        return self.previous_sha is not None


class SingleFilePublisher:
    """Write one file to a branch with optimistic concurrency."""

    def __init__(self, client: GitHubClient):
        self.client = client

    def read_base(self, path: str, base_branch: str, expected_sha: Optional[str] = None) -> Optional[str]:
        """
        Return the current hash of `path` on the base branch, or None.

        Raises:
            ConflictError: expected_sha is given and does not match
        """
        existing = self.client.get_file(path, ref=base_branch)
        current_sha = existing.sha if existing is not None else None
        if expected_sha is None:
            return current_sha
        if current_sha is None:
            raise ConflictError(
                f"{path} was expected at {expected_sha[:8]} but does not exist on {base_branch}"
            )
        if current_sha != expected_sha:
            raise ConflictError(
                f"{path} changed on {base_branch}: expected {expected_sha[:8]}, found {current_sha[:8]}"
            )
        return current_sha

    def publish(self, request: FilePublishRequest) -> FilePublishResult:
        """
        Check the base branch, then write the file as a single commit on `request.branch`.

        Raises:
            ValidationError: path or content missing
            ConflictError: expected_sha does not match the base branch
            HostError: any other GitHub failure
        """
        self._validate(request)
        current_sha = self.read_base(request.path, request.base_branch, request.expected_sha)
        return self.write(request, current_sha)

    @staticmethod
    def _validate(request: FilePublishRequest) -> None:
        if not request.path:
            raise ValidationError("Path is required")
        if request.content is None:
            raise ValidationError("Content is required")

    def write(self, request: FilePublishRequest, current_sha: Optional[str]) -> FilePublishResult:
        """Write the file over `current_sha`, as returned by read_base()."""
        self._validate(request)

        if request.message:
            message = request.message
        elif current_sha is None:
            message = f"Add {request.description}"
        else:
            message = f"Update {request.description}"

        written = self.client.put_file(FileWrite(
            path=request.path,
            content=request.content,
            message=message,
            branch=request.branch,
            sha=current_sha,
        ))

        action = "Updated" if current_sha else "Created"
        logger.info(f"{action} {written.path} on {request.branch} ({written.commit_sha[:8]})")
        return FilePublishResult(
            path=written.path,
            sha=written.sha,
            commit_sha=written.commit_sha,
            previous_sha=current_sha,
        )
