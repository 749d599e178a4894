"""
recipekit — CLI entrypoint.

Usage:
    python -m recipekit.main --help
    python -m recipekit.main apply recipe.yaml
    python -m recipekit.main ledger list
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from recipekit import __version__
from recipekit.core.observability.logging_config import (
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="recipekit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output (includes step output).")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """recipekit — apply declarative software recipes to this host."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
        quiet_third_party=not debug,
    )


@cli.command()
@click.argument("recipe_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--settings",
    "-s",
    "settings_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Engine settings YAML (ledger path, work root).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(
    ctx: click.Context,
    recipe_file: Path,
    settings_path: Path | None,
    as_json: bool,
) -> None:
    """Apply a recipe to this host.

    Installs the recipe if it was never applied, re-runs its update
    steps when a newer version arrives, and does nothing otherwise.

    Examples:

        recipekit apply nginx.yaml

        recipekit apply agent.yaml --settings /etc/recipekit.yaml --json
    """
    from recipekit.core.use_cases.apply import apply_recipe_file

    result = apply_recipe_file(recipe_file, settings_path=settings_path)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            sys.exit(1)
        return

    if not result.ok:
        click.secho(f"❌ {result.error_type}: {result.error}", fg="red", err=True)
        sys.exit(1)

    outcome = result.outcome
    assert outcome is not None

    if outcome.changed:
        click.secho(
            f"✅ {outcome.recipe} {outcome.version} {outcome.action} "
            f"({outcome.steps_executed} steps)",
            fg="green",
        )
        if ctx.obj.get("verbose"):
            click.echo(f"   Run: {outcome.run_id}")
    elif not ctx.obj.get("quiet"):
        click.secho(f"⊘ {outcome.recipe}: {outcome.reason}", fg="yellow")


# ── Register command groups ─────────────────────────────────────

from recipekit.ui.cli.ledger import ledger  # noqa: E402
from recipekit.ui.cli.version import version  # noqa: E402

cli.add_command(ledger)
cli.add_command(version)


if __name__ == "__main__":
    cli()
