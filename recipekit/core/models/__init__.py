"""
Domain models — Pydantic types for the recipe engine.

All models are re-exported here for convenient access:

    from recipekit.core.models import Recipe, Artifact, FileCopy, RecipeLedgerEntry
"""

from recipekit.core.models.ledger import RecipeLedgerEntry, RecipeLedgerState
from recipekit.core.models.recipe import (
    ArchiveExtraction,
    Artifact,
    FileCopy,
    FileExec,
    PackageFileInstallation,
    Recipe,
    ScriptRun,
    Step,
)

__all__ = [
    # recipe.py
    "ArchiveExtraction",
    "Artifact",
    "FileCopy",
    "FileExec",
    "PackageFileInstallation",
    "Recipe",
    "ScriptRun",
    "Step",
    # ledger.py
    "RecipeLedgerEntry",
    "RecipeLedgerState",
]
