"""Stitch command-line entry point."""

from __future__ import annotations

import click

from stitch import __version__
from stitch.cli.commands.poll import poll
from stitch.cli.commands.serve import serve
from stitch.cli.commands.status import status


@click.group()
@click.version_option(__version__, prog_name="stitch")
def main() -> None:
    """Stitch - deploy vendor services onto customer cloud accounts."""


main.add_command(serve)
main.add_command(status)
main.add_command(poll)


if __name__ == "__main__":
    main()
