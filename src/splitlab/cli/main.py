"""Main CLI command group."""

import click

from splitlab.cli.db import db_cli
from splitlab.cli.experiments import experiments_cli

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(context_settings=CONTEXT_SETTINGS)
def cli():
    """splitlab command line interface."""
    pass


cli.add_command(db_cli)
cli.add_command(experiments_cli)


def main():
    """CLI entrypoint."""
    cli()


if __name__ == "__main__":
    main()
