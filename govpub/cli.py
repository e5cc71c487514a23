#!/usr/bin/env python3

import click

from govpub.commands.config import config_cmd
from govpub.commands.diff import diff_cmd
from govpub.commands.library import library_cmd
from govpub.commands.publish import publish_cmd


@click.group()
@click.version_option()
def cli():
    """govpub - Publish governance documents to GitHub as pull requests.

    Schemas, contexts, VCT branding files, entity statements, vocabulary
    types, harmonization mappings and image assets are proposed as
    reviewable branches against the governance repository.
    """
    pass


cli.add_command(publish_cmd)
cli.add_command(diff_cmd)
cli.add_command(library_cmd)
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
