"""
Apply use case — load a recipe file and apply it to this host.

Wires the production pieces together: settings → ledger, GCS and
urllib backends → fetcher, package tools → step executor → runner.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

from recipekit.adapters.gcs import GCSBlobStore
from recipekit.adapters.http import UrllibHttpClient
from recipekit.core.config.loader import EngineSettings, load_recipe, load_settings
from recipekit.core.persistence.ledger_file import RecipeLedger
from recipekit.core.services.recipes.domain.errors import RecipeError
from recipekit.core.services.recipes.execution.fetcher import ArtifactFetcher
from recipekit.core.services.recipes.execution.step_executors import StepExecutor
from recipekit.core.services.recipes.orchestration.runner import ApplyOutcome, RecipeRunner

logger = logging.getLogger(__name__)

DEFAULT_WORK_DIR_NAME = "recipekit"


@dataclass
class ApplyResult:
    """Result of applying a recipe file."""

    outcome: ApplyOutcome | None = None
    recipe_path: Path | None = None
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error, "error_type": self.error_type}
        result: dict = {"recipe_path": str(self.recipe_path)}
        if self.outcome:
            result.update(self.outcome.to_dict())
        return result


def default_work_root() -> Path:
    return Path(tempfile.gettempdir()) / DEFAULT_WORK_DIR_NAME


def build_runner(
    settings: EngineSettings,
    *,
    fetcher: ArtifactFetcher | None = None,
    executor: StepExecutor | None = None,
) -> RecipeRunner:
    """Construct a runner from settings, with production backends by default."""
    ledger = RecipeLedger(settings.ledger_path)
    if fetcher is None:
        fetcher = ArtifactFetcher(GCSBlobStore(), UrllibHttpClient())
    return RecipeRunner(
        ledger=ledger,
        fetcher=fetcher,
        executor=executor or StepExecutor(),
        work_root=settings.work_root or default_work_root(),
        keep_run_dirs=settings.keep_run_dirs,
    )


def apply_recipe_file(
    recipe_path: Path,
    settings_path: Path | None = None,
    runner: RecipeRunner | None = None,
) -> ApplyResult:
    """Load ``recipe_path`` and apply it.

    Errors are captured on the result rather than raised, so callers
    can render them however they like.
    """
    try:
        recipe = load_recipe(recipe_path)
        if runner is None:
            runner = build_runner(load_settings(settings_path))
        outcome = runner.apply(recipe)
    except RecipeError as e:
        logger.error("Applying %s failed: %s", recipe_path, e)
        return ApplyResult(recipe_path=recipe_path, error=str(e), error_type=type(e).__name__)

    return ApplyResult(outcome=outcome, recipe_path=recipe_path)
