"""
Tests for browsing published documents.
"""

import pytest

from govpub.domain.document import TargetKind
from govpub.exit_codes import HostError, NotFoundError, ValidationError
from govpub.services.library_service import LibraryService

from conftest import FakeGitHub, make_publisher_config

BASE_URL = 'https://openpropertyassociation.ca'


@pytest.fixture
def github():
    return FakeGitHub(files={
        'credentials/schemas/address-v1.json': {'title': 'Address'},
        'credentials/schemas/README.md': '# Schemas',
        'credentials/schemas/drafts/x.json': {},
        'credentials/vct/home.json': {'name': 'Home'},
        'credentials/vct/icons/house.svg': '<svg/>',
        'credentials/vct/backgrounds/sky.PNG': b'\x89PNG',
        'credentials/vct/backgrounds/notes.txt': 'not an image',
        'credentials/entities/entities.json': {'entities': [
            {'id': 'acme', 'name': 'Acme', 'types': ['furnisher'], 'logoUri': 'acme.png', 'website': 'x'},
            {'id': 'beta', 'name': 'Beta'},
        ]},
        'credentials/entities/acme.json': {'id': 'acme', 'name': 'Acme'},
        'credentials/entities/logos/acme.png': b'\x89PNG',
    })


@pytest.fixture
def library(github):
    return LibraryService(github, make_publisher_config())


class TestListDocuments:
    """Tests for list_documents()."""

    def test_filters_by_extension(self, library):
        documents = library.list_documents(TargetKind.SCHEMA)
        assert [d.name for d in documents] == ['address-v1.json']
        assert documents[0].uri == f'{BASE_URL}/credentials/schemas/address-v1.json'

    def test_missing_folder_is_empty(self, library):
        assert library.list_documents(TargetKind.HARMONIZATION) == []

    def test_assets_not_listed_here(self, library):
        with pytest.raises(ValidationError):
            library.list_documents(TargetKind.ASSET)


class TestReads:
    """Tests for availability checks and single reads."""

    def test_is_available(self, library):
        assert library.is_available(TargetKind.VCT, 'home') is False
        assert library.is_available(TargetKind.VCT, 'office.json') is True

    def test_read_document(self, library, github):
        document = library.read_document(TargetKind.VCT, 'home.json')
        assert document.content == {'name': 'Home'}
        assert document.sha == github.blob_sha('main', 'credentials/vct/home.json')

    def test_read_missing_document(self, library):
        with pytest.raises(NotFoundError):
            library.read_document(TargetKind.VCT, 'office')

    def test_read_invalid_json(self):
        github = FakeGitHub(files={'credentials/vct/broken.json': '{nope'})
        with pytest.raises(HostError):
            LibraryService(github, make_publisher_config()).read_document(TargetKind.VCT, 'broken')

    def test_entity_statement(self, library):
        document = library.get_entity_statement('acme')
        assert document.content['name'] == 'Acme'
        assert document.uri == f'{BASE_URL}/credentials/entities/acme.json'

    def test_missing_entity_statement(self, library):
        assert library.get_entity_statement('gamma') is None

    def test_reads_pinned_branch(self):
        github = FakeGitHub()
        github.add_branch('develop', {'credentials/vct/home.json': {'name': 'Dev'}})
        library = LibraryService(github, make_publisher_config(base_branch='develop'))
        assert library.read_document(TargetKind.VCT, 'home').content == {'name': 'Dev'}


class TestEntitiesAndAssets:
    """Tests for list_entities() and list_published_assets()."""

    def test_list_entities(self, library):
        assert library.list_entities() == [
            {'id': 'acme', 'name': 'Acme', 'types': ['furnisher'], 'logoUri': 'acme.png'},
            {'id': 'beta', 'name': 'Beta', 'types': [], 'logoUri': None},
        ]

    def test_list_entities_without_registry(self):
        assert LibraryService(FakeGitHub(), make_publisher_config()).list_entities() == []

    def test_published_assets(self, library):
        assets = {asset.id: asset for asset in library.list_published_assets()}
        assert set(assets) == {
            'entity-logo:acme.png',
            'credential-background:sky.PNG',
            'credential-icon:house.svg',
        }
        assert assets['credential-icon:house.svg'].name == 'house'
        assert assets['entity-logo:acme.png'].uri == f'{BASE_URL}/credentials/entities/logos/acme.png'
        assert assets['entity-logo:acme.png'].to_dict()['downloadUrl'].endswith('acme.png')
