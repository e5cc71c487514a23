import json

import click

from ..cli_utils import handle_errors
from ..config import build_publisher_config, get_config_path, load_config


@click.group("config")
def config_cmd():
    """Configuration commands."""
    pass


@config_cmd.command("show")
@click.option("--pretty", is_flag=True, help="Display as formatted JSON instead of single-line JSONL")
@click.option("--path", is_flag=True, help="Show the config file path being used")
@handle_errors
def show_config(pretty, path):
    """Show the current configuration with all merges applied.

    By default, outputs single-line JSON (JSONL format).
    Use --pretty for human-readable formatted output.
    Use --path to see which config file is being used.
    The GitHub token is masked.
    """
    if path:
        print(json.dumps({"config_path": str(get_config_path())}))
        return

    config = load_config()
    github = config.get('github', {})
    if github.get('token'):
        config['github'] = {**github, 'token': '***'}

    if pretty:
        print(json.dumps(config, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(config, ensure_ascii=False))


@config_cmd.command("urls")
@handle_errors
def show_urls():
    """Show the public base URL for every document kind."""
    publisher = build_publisher_config(load_config())
    print(json.dumps({
        'repository': publisher.coordinates.full_name,
        'baseBranch': publisher.coordinates.base_branch,
        'baseUrls': publisher.base_urls(),
    }, ensure_ascii=False))
