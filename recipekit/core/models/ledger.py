"""
Ledger models — what the engine remembers between runs.

One entry per recipe name, replaced on every successful application.
Serialized to the recipe database JSON file by
``recipekit.core.persistence.ledger_file``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RecipeLedgerEntry(BaseModel):
    """The last successful application of one recipe."""

    name: str
    version: tuple[int, ...] = (0,)
    install_time_unix_nanos: int = 0
    success: bool = True


class RecipeLedgerState(BaseModel):
    """Root document of the recipe database file."""

    schema_version: int = 1
    recipes: dict[str, RecipeLedgerEntry] = Field(default_factory=dict)
