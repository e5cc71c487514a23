"""
Branch services for govpub.

- BaseBranchResolver: which branch new work is proposed against
- BranchAllocator: creates uniquely named publish branches

Branch names follow `{prefix}/{verb}-{slug}-{unixMillis}`. The
millisecond timestamp is the only collision avoidance. Two publishes
whose slugs normalise to the same text within one millisecond compose
the same name; the second allocation fails with a ConflictError and
never writes onto the first one's branch.
"""

import logging
import time
from typing import Callable, Optional

from ..domain.document import slugify
from ..domain.publish import Branch, RepositoryCoordinates
from ..exit_codes import ValidationError
from ..infra.github_client import GitHubClient

logger = logging.getLogger(__name__)


class BaseBranchResolver:
    """Resolve the base branch: pinned override, else the repository default."""

    def __init__(self, client: GitHubClient, coordinates: RepositoryCoordinates):
        self.client = client
        self.coordinates = coordinates

    def resolve(self) -> str:
        """
        Return the branch pull requests should target.

        A pinned base branch is returned without a network call.
        Otherwise the repository metadata is fetched once.
        """
        if self.coordinates.base_branch:
            return self.coordinates.base_branch

        repo = self.client.get_repo()
        logger.debug(f"Resolved default branch {repo.default_branch} for {self.coordinates.full_name}")
        return repo.default_branch


class BranchAllocator:
    """
    Create new, uniquely named branches.

    Example:
        allocator = BranchAllocator(client)
        branch = allocator.allocate("main", "schema", "add", "address-v1")
        # schema/add-address-v1-1718035200123
    """

    def __init__(self, client: GitHubClient, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            client: GitHub client
            clock: Returns the current time in seconds (time.time by default)
        """
        self.client = client
        self.clock = clock or time.time

    def compose_name(self, prefix: str, verb: str, slug: str) -> str:
        """Build a branch name stamped with the current time in milliseconds."""
        prefix = prefix.strip('/')
        if not prefix or not verb:
            raise ValidationError("Branch prefix and verb are required")
        millis = int(self.clock() * 1000)
        return f"{prefix}/{verb}-{slugify(slug)}-{millis}"

    def allocate(self, base_branch: str, prefix: str, verb: str, slug: str) -> Branch:
        """
        Create a branch at the base branch's current commit.

        Args:
            base_branch: Branch to start from
            prefix: Target-kind prefix, e.g. `schema` or `asset/entity-logo`
            verb: Action word, e.g. `add`, `update`, `publish`
            slug: Human-readable description, e.g. a filename stem

        Returns:
            The created Branch

        Raises:
            ConflictError: a branch with the composed name already exists
        """
        name = self.compose_name(prefix, verb, slug)
        base_sha = self.client.get_branch_sha(base_branch)
        return self.allocate_at(name, base_sha)

    def allocate_at(self, name: str, sha: str, exist_ok: bool = False) -> Branch:
        """
        Create a branch with an already composed name at `sha`.

        Raises ConflictError when the name is taken. With `exist_ok`, a
        branch already pointing at `sha` is returned instead.
        """
        branch = self.client.create_ref(name, sha, exist_ok=exist_ok)
        logger.info(f"Created branch {branch.name} at {sha[:8]}")
        return branch
