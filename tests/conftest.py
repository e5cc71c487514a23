"""
Shared fixtures for govpub tests.

FakeGitHub is an in-memory stand-in for GitHubClient. It keeps real
git-style objects (blobs, flat path->blob trees, commits with parents,
refs) so tests can check commit-graph properties end to end: one commit
per batch, trees layered over their base, untouched paths preserved.
"""

import hashlib
import json
from typing import Any, Dict, List, Optional, Sequence

import pytest

from govpub.config import build_publisher_config, get_default_config, merge_configs
from govpub.domain.publish import Actor, Branch, PullRequest, RepositoryCoordinates, TreeEntry
from govpub.exit_codes import ConflictError, HostError, NotFoundError
from govpub.infra.github_client import (
    FileWrite,
    FileWriteResult,
    GitHubRepo,
    RemoteEntry,
    RemoteFile,
)

FIXED_TIME = 1718035200.5
FIXED_MILLIS = 1718035200500


def git_hash(kind: str, data: bytes) -> str:
    """Content hash computed the way git does."""
    header = f"{kind} {len(data)}\0".encode()
    return hashlib.sha1(header + data).hexdigest()


class FakeGitHub:
    """In-memory repository with the GitHubClient interface."""

    def __init__(
        self,
        files: Optional[Dict[str, Any]] = None,
        default_branch: str = 'main',
        owner: str = 'acme',
        name: str = 'governance',
    ):
        self.coordinates = RepositoryCoordinates(owner, name)
        self.default_branch = default_branch
        self.blobs: Dict[str, bytes] = {}
        self.trees: Dict[str, Dict[str, str]] = {}
        self.commits: Dict[str, Dict[str, Any]] = {}
        self.refs: Dict[str, str] = {}
        self.pulls: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.fail_on: Dict[str, Exception] = {}
        self.user = Actor(login='octocat', id='583231', name='The Octocat')

        tree = self._store_tree({
            path: self._store_blob(self._as_bytes(content))
            for path, content in (files or {}).items()
        })
        self.refs[default_branch] = self._store_commit('Initial commit', tree, [])
        self.calls.clear()

    # -- object store -------------------------------------------------
    @staticmethod
    def _as_bytes(content: Any) -> bytes:
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode('utf-8')
        return json.dumps(content, indent=2).encode('utf-8')

    def _store_blob(self, data: bytes) -> str:
        sha = git_hash('blob', data)
        self.blobs[sha] = data
        return sha

    def _store_tree(self, entries: Dict[str, str]) -> str:
        sha = git_hash('tree', json.dumps(sorted(entries.items())).encode())
        self.trees[sha] = dict(entries)
        return sha

    def _store_commit(self, message: str, tree: str, parents: Sequence[str]) -> str:
        body = json.dumps({'tree': tree, 'parents': list(parents), 'message': message}).encode()
        sha = git_hash('commit', body)
        self.commits[sha] = {'tree': tree, 'parents': list(parents), 'message': message}
        return sha

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    # -- test helpers -------------------------------------------------
    def add_branch(self, name: str, files: Optional[Dict[str, Any]] = None) -> str:
        """Create a branch off the default branch, optionally with extra files."""
        head = self.refs[self.default_branch]
        tree = dict(self.trees[self.commits[head]['tree']])
        for path, content in (files or {}).items():
            tree[path] = self._store_blob(self._as_bytes(content))
        sha = self._store_commit(f'Seed {name}', self._store_tree(tree), [head])
        self.refs[name] = sha
        return sha

    def files_on(self, branch: str) -> Dict[str, bytes]:
        tree = self.trees[self.commits[self.refs[branch]]['tree']]
        return {path: self.blobs[sha] for path, sha in tree.items()}

    def blob_sha(self, branch: str, path: str) -> str:
        return self.trees[self.commits[self.refs[branch]]['tree']][path]

    def head(self, branch: str) -> Dict[str, Any]:
        return self.commits[self.refs[branch]]

    # -- GitHubClient interface ---------------------------------------
    def get_repo(self) -> GitHubRepo:
        self._record('get_repo')
        return GitHubRepo(
            owner=self.coordinates.owner,
            name=self.coordinates.name,
            full_name=self.coordinates.full_name,
            default_branch=self.default_branch,
        )

    def get_branch_sha(self, branch: str) -> str:
        self._record('get_branch_sha')
        if branch not in self.refs:
            raise NotFoundError(f"Reading branch {branch} failed (404): Not Found")
        return self.refs[branch]

    def get_commit_tree(self, commit_sha: str) -> str:
        self._record('get_commit_tree')
        return self.commits[commit_sha]['tree']

    def _tree_for(self, ref: Optional[str]) -> Optional[Dict[str, str]]:
        commit = self.refs.get(ref or self.default_branch)
        if commit is None:
            return None
        return self.trees[self.commits[commit]['tree']]

    def get_file(self, path: str, ref: Optional[str] = None) -> Optional[RemoteFile]:
        self._record('get_file')
        tree = self._tree_for(ref)
        if tree is None or path not in tree:
            return None
        sha = tree[path]
        return RemoteFile(path=path, sha=sha, content=self.blobs[sha],
                          download_url=f"https://raw.example/{path}")

    def list_directory(self, path: str, ref: Optional[str] = None) -> Optional[List[RemoteEntry]]:
        self._record('list_directory')
        tree = self._tree_for(ref) or {}
        prefix = path.rstrip('/') + '/'
        entries = {}
        for file_path, sha in tree.items():
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            if '/' in rest:
                name = rest.split('/', 1)[0]
                entries.setdefault(name, RemoteEntry(name=name, path=prefix + name, sha='', type='dir'))
            else:
                entries[rest] = RemoteEntry(name=rest, path=file_path, sha=sha, type='file',
                                            download_url=f"https://raw.example/{file_path}")
        if not entries:
            return None
        return sorted(entries.values(), key=lambda e: e.name)

    def get_authenticated_user(self) -> Actor:
        self._record('get_authenticated_user')
        return self.user

    def create_ref(self, branch: str, sha: str, exist_ok: bool = False) -> Branch:
        self._record('create_ref')
        if branch in self.refs:
            if exist_ok and self.refs[branch] == sha:
                return Branch(name=branch, sha=sha)
            raise ConflictError(f"Creating branch {branch} failed: Reference already exists")
        if sha not in self.commits:
            raise HostError(f"Creating branch {branch} failed (422): Object does not exist", 422)
        self.refs[branch] = sha
        return Branch(name=branch, sha=sha)

    def put_file(self, write: FileWrite) -> FileWriteResult:
        self._record('put_file')
        if write.branch not in self.refs:
            raise NotFoundError(f"Writing {write.path} failed (404): Branch not found")
        head = self.refs[write.branch]
        tree = dict(self.trees[self.commits[head]['tree']])
        current = tree.get(write.path)
        if current is not None and write.sha != current:
            raise ConflictError(f"Writing {write.path} failed: sha does not match")
        if current is None and write.sha is not None:
            raise ConflictError(f"Writing {write.path} failed: file does not exist")

        blob = self._store_blob(write.content)
        tree[write.path] = blob
        commit = self._store_commit(write.message, self._store_tree(tree), [head])
        self.refs[write.branch] = commit
        return FileWriteResult(path=write.path, sha=blob, commit_sha=commit)

    def create_blob(self, content: bytes) -> str:
        self._record('create_blob')
        return self._store_blob(content)

    def create_tree(self, base_tree: str, entries: Sequence[TreeEntry]) -> str:
        self._record('create_tree')
        tree = dict(self.trees[base_tree])
        for entry in entries:
            if entry.sha not in self.blobs:
                raise HostError(f"Creating tree failed (422): unknown blob {entry.sha}", 422)
            tree[entry.path] = entry.sha
        return self._store_tree(tree)

    def create_commit(self, message: str, tree: str, parents: Sequence[str]) -> str:
        self._record('create_commit')
        return self._store_commit(message, tree, parents)

    def create_pull_request(self, head: str, base: str, title: str, body: str) -> PullRequest:
        self._record('create_pull_request')
        if head not in self.refs or base not in self.refs:
            raise HostError("Opening pull request failed (422): Validation Failed", 422)
        number = len(self.pulls) + 1
        pull_request = PullRequest(
            number=number,
            url=f"https://github.com/{self.coordinates.full_name}/pull/{number}",
            title=title,
            head=head,
            base=base,
        )
        self.pulls.append({'pr': pull_request, 'body': body})
        return pull_request


def make_publisher_config(**repository):
    overrides = {'repository': {'owner': 'acme', 'name': 'governance', **repository}}
    return build_publisher_config(merge_configs(get_default_config(), overrides))


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def publisher_config():
    return make_publisher_config()


@pytest.fixture
def clock():
    return lambda: FIXED_TIME


@pytest.fixture
def actor():
    return Actor(login='octocat', id='583231', name='The Octocat')
