"""
Infrastructure layer for govpub.

Contains abstractions for external systems:
- GitHubClient: GitHub REST API access for one repository

These provide clean interfaces that can be mocked for testing.
"""

from .github_client import (
    FileWrite,
    FileWriteResult,
    GitHubClient,
    GitHubRepo,
    RateLimitStatus,
    RemoteEntry,
    RemoteFile,
)

__all__ = [
    'FileWrite',
    'FileWriteResult',
    'GitHubClient',
    'GitHubRepo',
    'RateLimitStatus',
    'RemoteEntry',
    'RemoteFile',
]
