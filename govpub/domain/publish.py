"""
Publishing domain objects for govpub.

Repository coordinates, branches, commit specs, pull requests and the
result returned to callers of a publish operation. Everything here is
either immutable configuration or short-lived per-call data.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class RepositoryCoordinates:
    """Where documents are published: owner, repository, optional pinned base branch."""
    owner: str
    name: str
    base_branch: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class Actor:
    """The user on whose behalf a publish runs."""
    login: str
    id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'Actor':
        """Create from a GitHub `GET /user` response."""
        user_id = data.get('id')
        return cls(
            login=data.get('login', ''),
            id=str(user_id) if user_id is not None else None,
            name=data.get('name'),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {'login': self.login}
        if self.id is not None:
            result['id'] = self.id
        if self.name:
            result['name'] = self.name
        return result


@dataclass(frozen=True)
class Branch:
    """A ref created for one publish attempt and the commit it points to."""
    name: str
    sha: str

    @property
    def ref(self) -> str:
        return f"refs/heads/{self.name}"


@dataclass(frozen=True)
class TreeEntry:
    """One path overlaid onto a base tree."""
    path: str
    sha: str
    mode: str = "100644"
    type: str = "blob"

    def to_dict(self) -> Dict[str, str]:
        return {
            'path': self.path,
            'mode': self.mode,
            'type': self.type,
            'sha': self.sha,
        }


@dataclass(frozen=True)
class CommitSpec:
    """
    Everything needed to build one commit as a delta over a base tree.

    Only the listed entries are replaced; every other path of the
    base tree is carried over unchanged.
    """
    base_tree: str
    parent: str
    message: str
    entries: Tuple[TreeEntry, ...] = ()

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self.entries]


@dataclass(frozen=True)
class PullRequest:
    """A pull request opened from a publish branch."""
    number: int
    url: str
    title: str
    head: str = ""
    base: str = ""

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'PullRequest':
        """Create from a GitHub `POST /pulls` response."""
        return cls(
            number=data.get('number', 0),
            url=data.get('html_url', ''),
            title=data.get('title', ''),
            head=(data.get('head') or {}).get('ref', ''),
            base=(data.get('base') or {}).get('ref', ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'number': self.number,
            'url': self.url,
            'title': self.title,
        }


@dataclass
class PublishResult:
    """
    Outcome of one publish operation.

    Attributes:
        pull_request: The pull request opened for the change
        branch: Name of the branch allocated for the change
        files: Repository paths written, in request order
        uris: Public URLs of the written paths
        is_update: True when at least one path already existed on the base branch
    """
    pull_request: PullRequest
    branch: str
    files: List[str] = field(default_factory=list)
    uris: List[str] = field(default_factory=list)
    is_update: bool = False
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            'success': self.success,
            'pr': self.pull_request.to_dict(),
            'branch': self.branch,
            'is_update': self.is_update,
        }
        if len(self.files) == 1:
            result['file'] = self.files[0]
            if self.uris:
                result['uri'] = self.uris[0]
        else:
            result['files'] = list(self.files)
            result['uris'] = list(self.uris)
        return result
