"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional

import click

from .config import (
    PublisherConfig,
    build_publisher_config,
    load_config,
    resolve_token,
    setup_logging,
)
from .domain.publish import Actor
from .exit_codes import INTERRUPTED, CommandError, ValidationError
from .infra.github_client import GitHubClient
from .output import emit_error


@dataclass
class CommandContext:
    """Everything a command needs, built once per invocation."""
    config: Dict[str, Any]
    publisher: PublisherConfig
    client: GitHubClient


def make_client(publisher: PublisherConfig, config: Dict[str, Any]) -> GitHubClient:
    """Create the GitHub client for the configured repository."""
    return GitHubClient(
        publisher.coordinates,
        token=resolve_token(config),
        api_url=publisher.api_url,
        timeout=publisher.timeout,
    )


def open_context(verbose: bool = False) -> CommandContext:
    """Load configuration, set up logging and connect to GitHub."""
    config = load_config()
    setup_logging(config, verbose=verbose)
    publisher = build_publisher_config(config)
    return CommandContext(config=config, publisher=publisher, client=make_client(publisher, config))


def resolve_actor(client: GitHubClient, login: Optional[str]) -> Actor:
    """Use the --as login when given, otherwise the token's own user."""
    if login:
        return Actor(login=login)
    return client.get_authenticated_user()


def load_json_file(path: str) -> Any:
    """Read a JSON document from a file path."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except ValueError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}") from e


def load_bytes_file(path: str) -> bytes:
    return Path(path).read_bytes()


def handle_errors(func):
    """
    Decorator that maps govpub errors to exit codes.

    The error is written to stderr as JSON and the process exits with
    the code carried by the exception.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            emit_error("Interrupted by user", type="KeyboardInterrupt")
            sys.exit(INTERRUPTED)
        except click.ClickException:
            raise
        except CommandError as e:
            emit_error(str(e), type=type(e).__name__)
            sys.exit(e.exit_code)

    return wrapper


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                            help='Enable debug logging'),
    'pretty': click.option('--pretty', is_flag=True,
                           help='Display with rich formatting'),
    'title': click.option('--title',
                          help='Pull request title and commit message'),
    'description': click.option('--description',
                                help='Pull request body'),
    'actor': click.option('--as', 'actor_login',
                          help='GitHub login credited in the pull request (default: token owner)'),
    'expected_sha': click.option('--expected-sha',
                                 help='Fail unless the published file currently has this blob hash'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'pretty')
        def my_command(verbose, pretty):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            func = common_options[name](func)
        return func
    return decorator
