"""
govpub - Publish governance documents to GitHub as pull requests.

Quick Start:
    from govpub import GitHubClient, PublishService, Actor
    from govpub.config import load_config, build_publisher_config, resolve_token

    config = load_config()
    publisher = build_publisher_config(config)
    client = GitHubClient(publisher.coordinates, token=resolve_token(config))

    service = PublishService(client, publisher)
    result = service.publish_schema("address-v1", schema, actor=Actor(login="octocat"))
    print(result.pull_request.url)

Services:
    PublishService - One publish operation per document kind
    DiffReconciler - Compare local documents with published ones
    LibraryService - Browse published documents
"""

__version__ = "0.1.0"

from .domain import Actor, DiffResult, PublishResult, TargetKind
from .exit_codes import ConflictError, HostError, NetworkError, NotFoundError, PublishError, ValidationError
from .infra import GitHubClient
from .services import DiffReconciler, LibraryService, PublishService

__all__ = [
    '__version__',
    'Actor',
    'DiffResult',
    'PublishResult',
    'TargetKind',
    'ConflictError',
    'HostError',
    'NetworkError',
    'NotFoundError',
    'PublishError',
    'ValidationError',
    'GitHubClient',
    'DiffReconciler',
    'LibraryService',
    'PublishService',
]
