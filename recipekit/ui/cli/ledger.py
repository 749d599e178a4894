"""
CLI commands for the recipe ledger.

Thin wrappers over ``recipekit.core.persistence.ledger_file``.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import click

from recipekit.core.models.ledger import RecipeLedgerEntry


def _open_ledger(settings_path: Path | None):
    from recipekit.core.config.loader import load_settings
    from recipekit.core.persistence.ledger_file import RecipeLedger

    return RecipeLedger(load_settings(settings_path).ledger_path)


def _entry_dict(entry: RecipeLedgerEntry) -> dict:
    from recipekit.core.services.recipes.domain.version import format_version

    return {
        "name": entry.name,
        "version": format_version(entry.version),
        "install_time_unix_nanos": entry.install_time_unix_nanos,
        "success": entry.success,
    }


def _fmt_time(nanos: int) -> str:
    if not nanos:
        return "-"
    ts = datetime.fromtimestamp(nanos / 1e9, tz=timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


_settings_option = click.option(
    "--settings",
    "-s",
    "settings_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Engine settings YAML (ledger path).",
)


@click.group()
def ledger() -> None:
    """Ledger — inspect which recipes are applied on this host."""


@ledger.command("list")
@_settings_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_entries(settings_path: Path | None, as_json: bool) -> None:
    """List every recorded recipe."""
    from recipekit.core.services.recipes.domain.errors import RecipeError

    try:
        entries = _open_ledger(settings_path).entries()
    except RecipeError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([_entry_dict(e) for e in entries], indent=2))
        return

    if not entries:
        click.echo("No recipes recorded.")
        return

    for entry in entries:
        d = _entry_dict(entry)
        click.echo(f"   • {d['name']:<30} {d['version']:<12} {_fmt_time(entry.install_time_unix_nanos)}")


@ledger.command("show")
@click.argument("name")
@_settings_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def show(name: str, settings_path: Path | None, as_json: bool) -> None:
    """Show the ledger entry for recipe NAME."""
    from recipekit.core.services.recipes.domain.errors import RecipeError

    try:
        entry, found = _open_ledger(settings_path).lookup(name)
    except RecipeError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if not found:
        if as_json:
            click.echo(json.dumps({"error": f"recipe {name!r} not recorded"}, indent=2))
        else:
            click.secho(f"❌ Recipe {name!r} is not recorded", fg="red", err=True)
        sys.exit(1)

    d = _entry_dict(entry)
    if as_json:
        click.echo(json.dumps(d, indent=2))
        return

    click.secho(f"\n📋 {d['name']}", fg="cyan", bold=True)
    click.echo(f"   Version:   {d['version']}")
    click.echo(f"   Installed: {_fmt_time(entry.install_time_unix_nanos)}")
    click.echo(f"   Success:   {d['success']}")
