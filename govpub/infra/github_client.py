"""
GitHub API client infrastructure for govpub.

Provides a clean abstraction over the GitHub REST operations the
publishing engine needs:
- repository metadata and branch heads
- file contents (existence checks and optimistic-concurrency reads)
- refs, single-file commits, blobs, trees, commits
- pull requests

The client is bound to one repository. It never retries; any host
failure is raised as a govpub error for the caller to handle.
"""

import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests

from ..domain.publish import Actor, Branch, PullRequest, RepositoryCoordinates, TreeEntry
from ..exit_codes import ConflictError, HostError, NetworkError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

# Warn when fewer than this many requests remain in the window
RATE_LIMIT_WARNING_THRESHOLD = 100


@dataclass(frozen=True)
class RateLimitStatus:
    """Quota reported in the X-RateLimit-* headers of the last response."""
    remaining: int
    limit: int
    reset_time: int  # epoch seconds
    used: int = 0

    @classmethod
    def from_headers(cls, headers) -> Optional['RateLimitStatus']:
        """Parse rate limit headers; None when the response carries none."""
        if 'X-RateLimit-Remaining' not in headers or 'X-RateLimit-Limit' not in headers:
            return None
        try:
            return cls(
                remaining=int(headers['X-RateLimit-Remaining']),
                limit=int(headers['X-RateLimit-Limit']),
                reset_time=int(headers.get('X-RateLimit-Reset', 0)),
                used=int(headers.get('X-RateLimit-Used', 0)),
            )
        except ValueError:
            logger.debug(f"Ignoring malformed rate limit headers: {dict(headers)}")
            return None

    @property
    def minutes_until_reset(self) -> int:
        return max(0, (self.reset_time - int(time.time())) // 60)

    @property
    def is_low(self) -> bool:
        return self.remaining < RATE_LIMIT_WARNING_THRESHOLD


@dataclass
class GitHubRepo:
    """GitHub repository metadata."""
    owner: str
    name: str
    full_name: str
    default_branch: str
    is_private: bool = False

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'GitHubRepo':
        """Create from GitHub API response."""
        owner = data.get('owner', {})

        return cls(
            owner=owner.get('login', '') if isinstance(owner, dict) else str(owner),
            name=data.get('name', ''),
            full_name=data.get('full_name', ''),
            default_branch=data.get('default_branch', 'main'),
            is_private=data.get('private', False),
        )


@dataclass(frozen=True)
class RemoteFile:
    """
    A file as currently stored on a branch.

    The contents API omits the body of files over 1 MB (`encoding` is
    "none"); such files still carry their hash, so they can be updated,
    but their content cannot be read.
    """
    path: str
    sha: str
    content: bytes = b""
    download_url: Optional[str] = None
    content_omitted: bool = False

    @property
    def name(self) -> str:
        return self.path.rsplit('/', 1)[-1]

    def json(self) -> Any:
        """Decode the file content as JSON."""
        if self.content_omitted:
            raise HostError(
                f"{self.path} is too large for the GitHub contents API (over 1 MB); "
                f"its content was not returned"
            )
        return json.loads(self.content.decode('utf-8'))

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'RemoteFile':
        encoding = data.get('encoding', 'base64')
        encoded = data.get('content') or ''
        return cls(
            path=data.get('path', ''),
            sha=data.get('sha', ''),
            content=base64.b64decode(encoded) if encoding == 'base64' else b'',
            download_url=data.get('download_url'),
            content_omitted=encoding == 'none' or (encoding != 'base64' and not encoded),
        )


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of a directory listing."""
    name: str
    path: str
    sha: str
    type: str  # file, dir, symlink, submodule
    download_url: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'RemoteEntry':
        return cls(
            name=data.get('name', ''),
            path=data.get('path', ''),
            sha=data.get('sha', ''),
            type=data.get('type', 'file'),
            download_url=data.get('download_url'),
        )


@dataclass(frozen=True)
class FileWrite:
    """
    Request to create or update one file as a single commit.

    `sha` is the blob hash of the file being replaced. Leave it as
    None to create a new file.
    """
    path: str
    content: bytes
    message: str
    branch: str
    sha: Optional[str] = None


@dataclass(frozen=True)
class FileWriteResult:
    """Blob hash of the written file and the commit that wrote it."""
    path: str
    sha: str
    commit_sha: str


class GitHubClient:
    """
    GitHub REST client for one repository.

    Example:
        client = GitHubClient(RepositoryCoordinates("owner", "repo"), token=token)
        head = client.get_branch_sha("main")
        existing = client.get_file("credentials/schemas/address-v1.json", ref="main")
        if existing is None:
            print("not published yet")
    """

    def __init__(
        self,
        coordinates: RepositoryCoordinates,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize GitHubClient.

        Args:
            coordinates: Repository the client operates on
            token: GitHub token; requests are anonymous without one
            api_url: API root (GitHub Enterprise installs differ)
            timeout: Per-request timeout in seconds
            session: Pre-built session, mainly for tests
        """
        self.coordinates = coordinates
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/vnd.github+json',
            'User-Agent': 'govpub',
        })
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'
        self._rate_limit_status: Optional[RateLimitStatus] = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _repo_url(self, endpoint: str = "") -> str:
        base = f"{self.api_url}/repos/{self.coordinates.owner}/{self.coordinates.name}"
        return f"{base}/{endpoint}" if endpoint else base

    def _update_rate_limit_from_headers(self, headers) -> None:
        status = RateLimitStatus.from_headers(headers)
        if status is None:
            return
        self._rate_limit_status = status
        if status.is_low:
            logger.warning(
                f"GitHub API rate limit low: {status.remaining}/{status.limit} remaining, "
                f"resets in {status.minutes_until_reset} minutes"
            )

    @property
    def rate_limit_status(self) -> Optional[RateLimitStatus]:
        """Rate limit reported by the most recent response, if any."""
        return self._rate_limit_status

    def _send(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"Could not reach GitHub at {self.api_url}: {e}") from e
        except requests.RequestException as e:
            raise HostError(f"GitHub API request failed: {e}") from e

        self._update_rate_limit_from_headers(response.headers)
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason or ''
        if isinstance(data, dict):
            return data.get('message', '')
        return ''

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise HostError(f"GitHub API returned invalid JSON: {e}", response.status_code) from e

    def _raise_for_status(self, response: requests.Response, action: str) -> None:
        """Translate an unsuccessful response into the govpub error taxonomy."""
        status = response.status_code
        if 200 <= status < 300:
            return

        message = self._error_message(response)
        detail = f"{action} failed ({status}): {message}" if message else f"{action} failed ({status})"
        if status == 404:
            raise NotFoundError(detail)
        if status == 409:
            raise ConflictError(detail)
        raise HostError(detail, status)

    def _call(
        self,
        method: str,
        url: str,
        action: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        response = self._send(method, url, payload=payload, params=params)
        self._raise_for_status(response, action)
        return self._json(response)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_repo(self) -> GitHubRepo:
        """Get repository metadata."""
        data = self._call('GET', self._repo_url(), f"Fetching {self.coordinates.full_name}")
        return GitHubRepo.from_api_response(data)

    def get_branch_sha(self, branch: str) -> str:
        """Commit hash a branch currently points at."""
        data = self._call(
            'GET',
            self._repo_url(f"git/ref/heads/{quote(branch, safe='/')}"),
            f"Reading branch {branch}",
        )
        return data['object']['sha']

    def get_commit_tree(self, commit_sha: str) -> str:
        """Root tree hash of a commit."""
        data = self._call('GET', self._repo_url(f"git/commits/{commit_sha}"), f"Reading commit {commit_sha}")
        return data['tree']['sha']

    def _get_contents(self, path: str, ref: Optional[str]) -> Optional[Any]:
        params = None
        if ref is not None:
            params = {'ref': ref}

        response = self._send('GET', self._repo_url(f"contents/{quote(path, safe='/')}"), params=params)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"Reading {path}")
        return self._json(response)

    def get_file(self, path: str, ref: Optional[str] = None) -> Optional[RemoteFile]:
        """
        Current content and hash of a file.

        Args:
            path: Repository path
            ref: Branch to read from (repository default when None)

        Returns:
            RemoteFile, or None when the file does not exist
        """
        data = self._get_contents(path, ref)
        if data is None:
            return None
        if isinstance(data, list):
            raise HostError(f"{path} is a directory, not a file")
        return RemoteFile.from_api_response(data)

    def list_directory(self, path: str, ref: Optional[str] = None) -> Optional[List[RemoteEntry]]:
        """
        Entries of a directory.

        Returns:
            List of RemoteEntry, or None when the directory does not exist
        """
        data = self._get_contents(path, ref)
        if data is None:
            return None
        if not isinstance(data, list):
            raise HostError(f"{path} is a file, not a directory")
        return [RemoteEntry.from_api_response(item) for item in data]

    def get_authenticated_user(self) -> Actor:
        """Identity behind the configured token."""
        data = self._call('GET', f"{self.api_url}/user", "Reading authenticated user")
        return Actor.from_api_response(data)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create_ref(self, branch: str, sha: str, exist_ok: bool = False) -> Branch:
        """
        Create `refs/heads/<branch>` at `sha`.

        An existing ref is a ConflictError. With `exist_ok`, a ref that
        already points at `sha` is accepted instead, so a retried step
        that built the same commit does not fail on its own earlier run.
        """
        response = self._send(
            'POST',
            self._repo_url("git/refs"),
            payload={'ref': f"refs/heads/{branch}", 'sha': sha},
        )
        if response.status_code == 422:
            message = self._error_message(response) or "Reference already exists"
            if exist_ok:
                try:
                    current = self.get_branch_sha(branch)
                except NotFoundError:
                    current = None
                if current == sha:
                    logger.info(f"Branch {branch} already exists at {sha[:8]}")
                    return Branch(name=branch, sha=sha)
            raise ConflictError(f"Creating branch {branch} failed: {message}")

        self._raise_for_status(response, f"Creating branch {branch}")
        data = self._json(response)
        return Branch(name=branch, sha=data.get('object', {}).get('sha', sha))

    def put_file(self, write: FileWrite) -> FileWriteResult:
        """Create or update one file as a single commit on `write.branch`."""
        payload = {
            'message': write.message,
            'content': base64.b64encode(write.content).decode('ascii'),
            'branch': write.branch,
        }
        if write.sha is not None:
            payload['sha'] = write.sha

        response = self._send('PUT', self._repo_url(f"contents/{quote(write.path, safe='/')}"), payload=payload)
        if response.status_code == 422:
            # GitHub answers 422 when a sha is required but missing or stale
            raise ConflictError(f"Writing {write.path} failed: {self._error_message(response)}")
        self._raise_for_status(response, f"Writing {write.path}")

        data = self._json(response)
        return FileWriteResult(
            path=write.path,
            sha=data['content']['sha'],
            commit_sha=data['commit']['sha'],
        )

    def create_blob(self, content: bytes) -> str:
        """Store bytes as a blob and return its hash."""
        data = self._call(
            'POST',
            self._repo_url("git/blobs"),
            "Creating blob",
            payload={
                'content': base64.b64encode(content).decode('ascii'),
                'encoding': 'base64',
            },
        )
        return data['sha']

    def create_tree(self, base_tree: str, entries: Sequence[TreeEntry]) -> str:
        """Create a tree that overlays `entries` on `base_tree`."""
        data = self._call(
            'POST',
            self._repo_url("git/trees"),
            "Creating tree",
            payload={
                'base_tree': base_tree,
                'tree': [entry.to_dict() for entry in entries],
            },
        )
        return data['sha']

    def create_commit(self, message: str, tree: str, parents: Sequence[str]) -> str:
        """Create a commit object and return its hash."""
        data = self._call(
            'POST',
            self._repo_url("git/commits"),
            "Creating commit",
            payload={
                'message': message,
                'tree': tree,
                'parents': list(parents),
            },
        )
        return data['sha']

    def create_pull_request(self, head: str, base: str, title: str, body: str) -> PullRequest:
        """Open a pull request from `head` into `base`."""
        data = self._call(
            'POST',
            self._repo_url("pulls"),
            f"Opening pull request for {head}",
            payload={
                'title': title,
                'body': body,
                'head': head,
                'base': base,
            },
        )
        pull_request = PullRequest.from_api_response(data)
        if not pull_request.head:
            pull_request = PullRequest(
                number=pull_request.number,
                url=pull_request.url,
                title=pull_request.title,
                head=head,
                base=base,
            )
        return pull_request
