#!/usr/bin/env python3

import os
import json
import subprocess
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import logging
import sys

import yaml

from .domain.document import ASSET_TYPES, AssetType, PublishTarget, TargetKind, build_targets
from .domain.publish import RepositoryCoordinates
from .exit_codes import ConfigError, ValidationError

logger = logging.getLogger("govpub")

ENV_PREFIX = "GOVPUB_"

# Deployment variables shared with the web publishing service
LEGACY_ENV_VARS = {
    'GITHUB_REPO_OWNER': ('repository', 'owner'),
    'GITHUB_REPO_NAME': ('repository', 'name'),
    'GITHUB_BASE_BRANCH': ('repository', 'base_branch'),
    'SCHEMA_FOLDER_PATH': ('folders', 'schema'),
    'CONTEXT_FOLDER_PATH': ('folders', 'context'),
    'VCT_FOLDER_PATH': ('folders', 'vct'),
    'ENTITY_FOLDER_PATH': ('folders', 'entity'),
    'VOCAB_FOLDER_PATH': ('folders', 'vocab'),
    'HARMONIZATION_FOLDER_PATH': ('folders', 'harmonization'),
    'BASE_URL': ('publishing', 'base_url'),
}


def setup_logging(config: Optional[Dict[str, Any]] = None, verbose: bool = False) -> None:
    """Configure the govpub logger from the `logging` config section."""
    settings = (config or {}).get('logging', {})
    level_name = 'DEBUG' if verbose else str(settings.get('level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(settings.get('format', '%(levelname)s: %(message)s')))

    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. GOVPUB_CONFIG environment variable
    2. ~/.govpub/ directory
    """
    if 'GOVPUB_CONFIG' in os.environ:
        path = Path(os.environ['GOVPUB_CONFIG'])
        if path.exists():
            return path

    config_dir = Path.home() / '.govpub'
    for filename in ['config.json', 'config.toml', 'config.yaml', 'config.yml']:
        path = config_dir / filename
        if path.exists():
            return path

    return config_dir / 'config.json'


def load_config():
    """Load configuration: defaults, then config file, then environment."""
    config_path = get_config_path()

    config = get_default_config()

    if config_path.exists():
        try:
            suffix = config_path.suffix.lower()
            if suffix == '.toml':
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif suffix in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config from {config_path}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        config = merge_configs(config, file_config)
        logger.debug(f"Loaded config from {config_path}")

    config = apply_legacy_env(config)
    config = apply_env_overrides(config)

    return config


def get_default_config():
    """Get default configuration."""
    return {
        "repository": {
            "owner": "Canadian-Open-Property-Association",
            "name": "governance",
            "base_branch": "",
        },
        "folders": {
            "schema": "credentials/schemas",
            "context": "credentials/contexts",
            "vct": "credentials/vct",
            "entity": "credentials/entities",
            "vocab": "credentials/contexts",
            "harmonization": "credentials/harmonization",
        },
        "publishing": {
            "base_url": "https://openpropertyassociation.ca",
            "app_name": "Cornerstone Network Apps",
            "app_url": "https://apps.openpropertyassociation.ca",
        },
        "github": {
            "token": "",
            "api_url": "https://api.github.com",
            "timeout_seconds": 30,
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s",
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_legacy_env(config):
    """Apply deployment environment variables (GITHUB_REPO_OWNER etc.)."""
    for env_key, (section, key) in LEGACY_ENV_VARS.items():
        value = os.environ.get(env_key)
        if value:
            config.setdefault(section, {})[key] = value
    return config


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: GOVPUB_SECTION_KEY
    For example: GOVPUB_REPOSITORY_BASE_BRANCH=main
    """
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue

        key_parts = env_key[len(ENV_PREFIX):].lower().split('_')

        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i:i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if matched_key is None:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                break

    return config


def resolve_token(config: Dict[str, Any]) -> Optional[str]:
    """
    Find a GitHub token.

    Checks the `github.token` setting (which GOVPUB_GITHUB_TOKEN
    overrides), then GITHUB_TOKEN, then `gh auth token`.
    """
    token = config.get('github', {}).get('token')
    if token:
        return str(token)
    if os.environ.get('GITHUB_TOKEN'):
        return os.environ['GITHUB_TOKEN']

    try:
        result = subprocess.run(
            ['gh', 'auth', 'token'],
            capture_output=True,
            text=True,
            timeout=10
        )
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return None
    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Using token from gh CLI")
        return result.stdout.strip()
    return None


@dataclass(frozen=True)
class PublisherConfig:
    """
    Process-wide publishing configuration.

    Built once at startup by build_publisher_config() and passed
    explicitly into every service.
    """
    coordinates: RepositoryCoordinates
    targets: Mapping[TargetKind, PublishTarget]
    base_url: str
    api_url: str = "https://api.github.com"
    timeout: float = 30
    app_name: str = ""
    app_url: str = ""
    folders: Mapping[TargetKind, str] = field(default_factory=dict)

    def target(self, kind: TargetKind) -> PublishTarget:
        return self.targets[kind]

    def asset_type(self, key: str) -> AssetType:
        """Look up an asset type, rejecting unknown keys."""
        asset_type = ASSET_TYPES.get(key)
        if asset_type is None:
            raise ValidationError(f"Invalid assetType: {key}")
        return asset_type

    def asset_folder(self, asset_type: AssetType) -> str:
        return f"{self.targets[asset_type.owner].folder}/{asset_type.subfolder}"

    def uri_for(self, path: str) -> str:
        """Public URL of a repository path."""
        return f"{self.base_url}/{path}"

    def base_urls(self) -> Dict[str, str]:
        """Public base URL for every document folder, keyed by kind."""
        urls = {}
        for kind, target in self.targets.items():
            if kind is TargetKind.ASSET:
                continue
            urls[kind.value] = f"{self.base_url}/{target.folder}/"
        return urls


def build_publisher_config(config: Dict[str, Any]) -> PublisherConfig:
    """Validate a loaded config dict and freeze it into a PublisherConfig."""
    repo = config.get('repository', {})
    owner = str(repo.get('owner') or '').strip()
    name = str(repo.get('name') or '').strip()
    if not owner or not name:
        raise ConfigError("repository.owner and repository.name must be configured")
    base_branch = str(repo.get('base_branch') or '').strip() or None

    folder_settings = config.get('folders', {})
    folders = {}
    for kind in TargetKind:
        if kind is TargetKind.ASSET:
            continue
        folders[kind] = str(folder_settings.get(kind.value) or '').strip('/')
        if not folders[kind]:
            raise ConfigError(f"folders.{kind.value} must not be empty")

    publishing = config.get('publishing', {})
    github = config.get('github', {})
    try:
        timeout = float(github.get('timeout_seconds', 30))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"github.timeout_seconds must be a number: {e}") from e

    return PublisherConfig(
        coordinates=RepositoryCoordinates(owner=owner, name=name, base_branch=base_branch),
        targets=MappingProxyType(build_targets(folders)),
        base_url=str(publishing.get('base_url', '')).rstrip('/'),
        api_url=str(github.get('api_url') or 'https://api.github.com').rstrip('/'),
        timeout=timeout,
        app_name=str(publishing.get('app_name') or ''),
        app_url=str(publishing.get('app_url') or ''),
        folders=MappingProxyType(folders),
    )
