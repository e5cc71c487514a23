"""
Tests for the GitHub REST client.

Tests cover:
- Response dataclasses from_api_response()
- File reads: 404 as None, base64 decoding, explicit ref parameter
- Writes: optional sha, conflict statuses, opt-in idempotent ref creation
- Error taxonomy: NotFound / Conflict / Host errors, network failures
- Rate limit header tracking
"""

import base64
from unittest.mock import Mock, patch

import pytest
import requests

from govpub.domain.publish import RepositoryCoordinates, TreeEntry
from govpub.exit_codes import API_ERROR, NETWORK_ERROR, ConflictError, HostError, NetworkError, NotFoundError
from govpub.infra.github_client import FileWrite, GitHubClient, GitHubRepo, RemoteFile

API = 'https://api.github.com/repos/acme/governance'


def _response(status=200, data=None, headers=None):
    response = Mock()
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = data if data is not None else {}
    response.text = ''
    response.reason = ''
    return response


@pytest.fixture
def client():
    return GitHubClient(RepositoryCoordinates('acme', 'governance'), token='ghp_test')


# ──────────────────────────────────────────────
# Dataclasses
# ──────────────────────────────────────────────

class TestFromApiResponse:
    """Tests for response parsing."""

    def test_repo(self):
        repo = GitHubRepo.from_api_response({
            'owner': {'login': 'acme'},
            'name': 'governance',
            'full_name': 'acme/governance',
            'default_branch': 'trunk',
            'private': True,
        })
        assert repo.owner == 'acme'
        assert repo.default_branch == 'trunk'
        assert repo.is_private is True

    def test_remote_file_decodes_content(self):
        remote = RemoteFile.from_api_response({
            'path': 'credentials/vct/home.json',
            'sha': 'abc123',
            'encoding': 'base64',
            'content': base64.b64encode(b'{"a": 1}').decode() + '\n',
        })
        assert remote.name == 'home.json'
        assert remote.content == b'{"a": 1}'
        assert remote.json() == {'a': 1}

    def test_remote_file_over_one_megabyte(self):
        remote = RemoteFile.from_api_response({
            'path': 'credentials/entities/entities.json',
            'sha': 'big123',
            'encoding': 'none',
            'content': '',
        })
        assert remote.sha == 'big123'
        assert remote.content_omitted
        with pytest.raises(HostError, match='too large'):
            remote.json()


# ──────────────────────────────────────────────
# Session setup and transport
# ──────────────────────────────────────────────

class TestTransport:
    """Tests for headers, errors and rate limits."""

    def test_auth_header(self, client):
        assert client.session.headers['Authorization'] == 'Bearer ghp_test'
        assert client.session.headers['Accept'] == 'application/vnd.github+json'

    def test_anonymous_client(self):
        anonymous = GitHubClient(RepositoryCoordinates('acme', 'governance'))
        assert 'Authorization' not in anonymous.session.headers

    def test_network_failure_is_host_error(self, client):
        with patch.object(client.session, 'request', side_effect=requests.ConnectionError('refused')):
            with pytest.raises(NetworkError) as exc_info:
                client.get_repo()
        assert isinstance(exc_info.value, HostError)
        assert exc_info.value.exit_code == NETWORK_ERROR

    def test_timeout_is_network_error(self, client):
        with patch.object(client.session, 'request', side_effect=requests.Timeout('read timed out')):
            with pytest.raises(NetworkError):
                client.get_repo()

    def test_other_request_failure_is_api_error(self, client):
        with patch.object(client.session, 'request', side_effect=requests.TooManyRedirects('loop')):
            with pytest.raises(HostError) as exc_info:
                client.get_repo()
        assert not isinstance(exc_info.value, NetworkError)
        assert exc_info.value.exit_code == API_ERROR

    def test_server_error_carries_status(self, client):
        with patch.object(client.session, 'request', return_value=_response(502, {'message': 'Bad gateway'})):
            with pytest.raises(HostError) as exc_info:
                client.get_repo()
        assert exc_info.value.status == 502
        assert 'Bad gateway' in str(exc_info.value)

    def test_missing_branch_is_not_found(self, client):
        with patch.object(client.session, 'request', return_value=_response(404, {'message': 'Not Found'})):
            with pytest.raises(NotFoundError):
                client.get_branch_sha('nope')

    def test_rate_limit_headers_tracked(self, client, caplog):
        headers = {
            'X-RateLimit-Remaining': '42',
            'X-RateLimit-Limit': '5000',
            'X-RateLimit-Reset': '0',
            'X-RateLimit-Used': '4958',
        }
        with patch.object(client.session, 'request', return_value=_response(200, {'default_branch': 'main'}, headers)):
            with caplog.at_level('WARNING', logger='govpub.infra.github_client'):
                client.get_repo()

        assert client.rate_limit_status.remaining == 42
        assert client.rate_limit_status.is_low
        assert 'rate limit low' in caplog.text

    def test_no_retry_on_failure(self, client):
        with patch.object(client.session, 'request', return_value=_response(500)) as mock_request:
            with pytest.raises(HostError):
                client.create_blob(b'x')
        assert mock_request.call_count == 1


# ──────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────

class TestReads:
    """Tests for branch and file reads."""

    def test_get_branch_sha(self, client):
        with patch.object(client.session, 'request',
                          return_value=_response(200, {'object': {'sha': 'c0ffee'}})) as mock_request:
            assert client.get_branch_sha('main') == 'c0ffee'
        args, _ = mock_request.call_args
        assert args == ('GET', f'{API}/git/ref/heads/main')

    def test_get_commit_tree(self, client):
        with patch.object(client.session, 'request', return_value=_response(200, {'tree': {'sha': 't1'}})):
            assert client.get_commit_tree('c0ffee') == 't1'

    def test_get_file_missing_is_none(self, client):
        with patch.object(client.session, 'request', return_value=_response(404, {'message': 'Not Found'})):
            assert client.get_file('credentials/vct/home.json', ref='main') is None

    def test_get_file_passes_ref(self, client):
        data = {'path': 'a.json', 'sha': 's1', 'content': base64.b64encode(b'{}').decode()}
        with patch.object(client.session, 'request', return_value=_response(200, data)) as mock_request:
            remote = client.get_file('a.json', ref='develop')
        assert remote.sha == 's1'
        assert mock_request.call_args.kwargs['params'] == {'ref': 'develop'}

    def test_get_file_without_ref(self, client):
        data = {'path': 'a.json', 'sha': 's1', 'content': ''}
        with patch.object(client.session, 'request', return_value=_response(200, data)) as mock_request:
            client.get_file('a.json')
        assert mock_request.call_args.kwargs['params'] is None

    def test_get_file_on_directory(self, client):
        with patch.object(client.session, 'request', return_value=_response(200, [])):
            with pytest.raises(HostError):
                client.get_file('credentials')

    def test_list_directory(self, client):
        data = [
            {'name': 'a.json', 'path': 'd/a.json', 'sha': 's1', 'type': 'file'},
            {'name': 'logos', 'path': 'd/logos', 'sha': 's2', 'type': 'dir'},
        ]
        with patch.object(client.session, 'request', return_value=_response(200, data)):
            entries = client.list_directory('d')
        assert [e.type for e in entries] == ['file', 'dir']

    def test_list_missing_directory(self, client):
        with patch.object(client.session, 'request', return_value=_response(404)):
            assert client.list_directory('missing') is None

    def test_authenticated_user(self, client):
        with patch.object(client.session, 'request',
                          return_value=_response(200, {'login': 'octocat', 'id': 1, 'name': 'Mona'})) as mock_request:
            actor = client.get_authenticated_user()
        assert actor.login == 'octocat'
        assert actor.id == '1'
        assert mock_request.call_args.args[1] == 'https://api.github.com/user'


# ──────────────────────────────────────────────
# Writes
# ──────────────────────────────────────────────

class TestWrites:
    """Tests for refs, contents and git objects."""

    def test_create_ref(self, client):
        with patch.object(client.session, 'request',
                          return_value=_response(201, {'object': {'sha': 'c1'}})) as mock_request:
            branch = client.create_ref('schema/add-a-1', 'c1')
        assert branch.name == 'schema/add-a-1'
        assert mock_request.call_args.kwargs['json'] == {'ref': 'refs/heads/schema/add-a-1', 'sha': 'c1'}

    def test_create_ref_existing_conflicts(self, client):
        with patch.object(client.session, 'request',
                          return_value=_response(422, {'message': 'Reference already exists'})) as mock_request:
            with pytest.raises(ConflictError, match='Reference already exists'):
                client.create_ref('schema/add-a-1', 'c1')
        assert mock_request.call_count == 1

    def test_create_ref_exist_ok_same_sha_succeeds(self, client):
        responses = [
            _response(422, {'message': 'Reference already exists'}),
            _response(200, {'object': {'sha': 'c1'}}),
        ]
        with patch.object(client.session, 'request', side_effect=responses):
            branch = client.create_ref('schema/add-a-1', 'c1', exist_ok=True)
        assert branch.sha == 'c1'
    def test_create_ref_existing_other_sha_conflicts(self, client):
        responses = [
            _response(422, {'message': 'Reference already exists'}),
            _response(200, {'object': {'sha': 'other'}}),
        ]
        with patch.object(client.session, 'request', side_effect=responses):
            with pytest.raises(ConflictError):
                client.create_ref('schema/add-a-1', 'c1', exist_ok=True)

    def test_put_file_new_omits_sha(self, client):
        data = {'content': {'sha': 'b1'}, 'commit': {'sha': 'c2'}}
        with patch.object(client.session, 'request', return_value=_response(201, data)) as mock_request:
            result = client.put_file(FileWrite(path='a.json', content=b'{}', message='Add', branch='b'))
        payload = mock_request.call_args.kwargs['json']
        assert 'sha' not in payload
        assert payload['content'] == base64.b64encode(b'{}').decode()
        assert payload['branch'] == 'b'
        assert result.sha == 'b1'
        assert result.commit_sha == 'c2'

    def test_put_file_update_includes_sha(self, client):
        data = {'content': {'sha': 'b2'}, 'commit': {'sha': 'c3'}}
        with patch.object(client.session, 'request', return_value=_response(200, data)) as mock_request:
            client.put_file(FileWrite(path='a.json', content=b'{}', message='Update', branch='b', sha='b1'))
        assert mock_request.call_args.kwargs['json']['sha'] == 'b1'

    @pytest.mark.parametrize('status', [409, 422])
    def test_put_file_conflict(self, client, status):
        with patch.object(client.session, 'request', return_value=_response(status, {'message': 'sha mismatch'})):
            with pytest.raises(ConflictError):
                client.put_file(FileWrite(path='a.json', content=b'{}', message='m', branch='b', sha='old'))

    def test_create_blob_is_base64(self, client):
        with patch.object(client.session, 'request', return_value=_response(201, {'sha': 'b1'})) as mock_request:
            assert client.create_blob(b'\x89PNG') == 'b1'
        assert mock_request.call_args.kwargs['json'] == {
            'content': base64.b64encode(b'\x89PNG').decode(),
            'encoding': 'base64',
        }

    def test_create_tree_overlays_base(self, client):
        with patch.object(client.session, 'request', return_value=_response(201, {'sha': 't2'})) as mock_request:
            client.create_tree('t1', [TreeEntry(path='v/a.json', sha='b1')])
        payload = mock_request.call_args.kwargs['json']
        assert payload['base_tree'] == 't1'
        assert payload['tree'] == [{'path': 'v/a.json', 'mode': '100644', 'type': 'blob', 'sha': 'b1'}]

    def test_create_commit(self, client):
        with patch.object(client.session, 'request', return_value=_response(201, {'sha': 'c9'})) as mock_request:
            assert client.create_commit('Add 3 vocabulary types', 't2', ['c1']) == 'c9'
        assert mock_request.call_args.kwargs['json']['parents'] == ['c1']

    def test_create_pull_request(self, client):
        data = {
            'number': 12,
            'html_url': 'https://github.com/acme/governance/pull/12',
            'title': 'Add JSON Schema: a.json',
        }
        with patch.object(client.session, 'request', return_value=_response(201, data)):
            pr = client.create_pull_request('schema/add-a-1', 'main', 'Add JSON Schema: a.json', 'body')
        assert pr.number == 12
        assert pr.url.endswith('/pull/12')
        assert pr.head == 'schema/add-a-1'
        assert pr.base == 'main'
