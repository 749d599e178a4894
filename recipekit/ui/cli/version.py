"""
CLI commands for recipe version strings.
"""

from __future__ import annotations

import sys

import click


@click.group()
def version() -> None:
    """Version — parse and compare recipe versions."""


@version.command()
@click.argument("stored")
@click.argument("candidate")
def compare(stored: str, candidate: str) -> None:
    """Report whether CANDIDATE would update a recipe stored at STORED.

    Exits 0 when CANDIDATE is strictly newer, 1 when it is not, and
    2 when STORED is not a valid version.

    Examples:

        recipekit version compare 1.2 1.10
    """
    from recipekit.core.services.recipes.domain.errors import InvalidVersion
    from recipekit.core.services.recipes.domain.version import format_version, is_greater, parse_version

    try:
        parsed = parse_version(stored)
    except InvalidVersion as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)

    if is_greater(parsed, candidate):
        click.echo(f"{candidate} is newer than {format_version(parsed)}")
        return
    click.echo(f"{candidate!r} is not newer than {format_version(parsed)}")
    sys.exit(1)
