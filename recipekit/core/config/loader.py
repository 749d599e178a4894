"""
Configuration loader — reads recipe and settings YAML into models.

Recipes are authored as YAML, either flat or wrapped under a
``recipe:`` key. Engine settings come from an optional YAML file
and are overridden by environment variables:

    defaults  <  settings file  <  RECIPEKIT_* env vars
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from recipekit.core.models.recipe import Recipe
from recipekit.core.services.recipes.domain.errors import RecipeConfigError

logger = logging.getLogger(__name__)

ENV_LEDGER_PATH = "RECIPEKIT_LEDGER_PATH"
ENV_WORK_ROOT = "RECIPEKIT_WORK_ROOT"
ENV_KEEP_RUN_DIRS = "RECIPEKIT_KEEP_RUN_DIRS"

_TRUTHY = {"1", "true", "yes", "on"}


class EngineSettings(BaseModel):
    """Where the engine keeps its state and scratch space."""

    ledger_path: Path | None = Field(
        default=None,
        description="Recipe ledger file; None means the platform default",
    )
    work_root: Path | None = Field(
        default=None,
        description="Parent of per-run directories; None means the system temp dir",
    )
    keep_run_dirs: bool = Field(
        default=False,
        description="Leave run directories in place after apply, for debugging",
    )


def _read_yaml_mapping(path: Path, what: str) -> dict:
    if not path.is_file():
        raise RecipeConfigError(f"{what} file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RecipeConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise RecipeConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RecipeConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_recipe(path: Path) -> Recipe:
    """Load and validate one recipe document.

    Raises:
        RecipeConfigError: the file is missing, is not YAML, or does
            not describe a valid recipe.
    """
    path = Path(path)
    logger.debug("Loading recipe from %s", path)
    data = _read_yaml_mapping(path, "Recipe")

    # The YAML may wrap everything under a "recipe" key or be flat
    recipe_data = data["recipe"] if "recipe" in data else data

    try:
        recipe = Recipe.model_validate(recipe_data)
    except ValidationError as e:
        raise RecipeConfigError(f"Invalid recipe in {path}: {e}") from e

    logger.info(
        "Loaded recipe '%s' %s with %d artifacts",
        recipe.name, recipe.version or "(unversioned)", len(recipe.artifacts),
    )
    return recipe


def load_settings(path: Path | None = None) -> EngineSettings:
    """Resolve engine settings from an optional file plus the environment.

    Raises:
        RecipeConfigError: the settings file is missing or invalid.
    """
    data: dict = {}
    if path is not None:
        data = _read_yaml_mapping(Path(path), "Settings")

    if os.environ.get(ENV_LEDGER_PATH):
        data["ledger_path"] = os.environ[ENV_LEDGER_PATH]
    if os.environ.get(ENV_WORK_ROOT):
        data["work_root"] = os.environ[ENV_WORK_ROOT]
    if os.environ.get(ENV_KEEP_RUN_DIRS):
        data["keep_run_dirs"] = os.environ[ENV_KEEP_RUN_DIRS].strip().lower() in _TRUTHY

    try:
        return EngineSettings.model_validate(data)
    except ValidationError as e:
        raise RecipeConfigError(f"Invalid engine settings: {e}") from e
