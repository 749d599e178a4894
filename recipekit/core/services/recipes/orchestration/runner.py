"""
L5 Orchestration — Recipe runner.

Applies one recipe to the host:

    Start → Decide → Fetching → Executing → Recorded
                 ↘        ↘           ↘
                   ───────── Failed ─────

Decide consults the ledger: unseen recipes run ``install_steps``,
``INSTALLED`` recipes that are already recorded are skipped, and
``UPDATED`` recipes run ``update_steps`` only for a strictly newer
version. Steps run strictly in order and the first failure stops
the run.

There is NO rollback. Side effects of steps that completed before a
failure stay in place, and nothing is recorded, so the next apply
re-runs the whole recipe from the start. Steps are expected to be
cheap to repeat at whole-recipe granularity.
"""

from __future__ import annotations

import logging
import shutil
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml

from recipekit.core.models.ledger import RecipeLedgerEntry
from recipekit.core.models.recipe import Recipe, Step
from recipekit.core.services.recipes.domain.errors import (
    ArtifactNotFound,
    FetchFailed,
    RecipeError,
    StepFailed,
)
from recipekit.core.services.recipes.domain.version import (
    format_version,
    is_greater,
    parse_version,
)
from recipekit.core.services.recipes.execution.fetcher import ArtifactFetcher
from recipekit.core.services.recipes.execution.step_executors import StepExecutor

logger = logging.getLogger(__name__)

STAGE_DECIDE = "Decide"
STAGE_FETCHING = "Fetching"
STAGE_EXECUTING = "Executing"
STAGE_RECORDED = "Recorded"


@dataclass
class RunContext:
    """Everything one application of a recipe works with."""

    run_id: str
    base_directory: Path
    artifact_paths: dict[str, Path] = field(default_factory=dict)
    environment: list[str] = field(default_factory=list)

    @property
    def artifacts_dir(self) -> Path:
        return self.base_directory / "artifacts"

    def step_dir(self, index: int, step: Step) -> Path:
        return self.base_directory / f"step{index:02d}_{step.label}"


@dataclass
class ApplyOutcome:
    """What a successful ``apply`` did."""

    recipe: str
    version: str = ""
    action: Literal["installed", "updated", "skipped"] = "skipped"
    run_id: str = ""
    run_dir: str = ""
    steps_executed: int = 0
    reason: str = ""

    @property
    def changed(self) -> bool:
        return self.action != "skipped"

    def to_dict(self) -> dict:
        return {
            "recipe": self.recipe,
            "version": self.version,
            "action": self.action,
            "run_id": self.run_id,
            "run_dir": self.run_dir,
            "steps_executed": self.steps_executed,
            "reason": self.reason,
        }


class RecipeRunner:
    """Apply recipes idempotently against a ledger.

    The ledger, fetcher and step executor are all injected. The
    ledger is duck-typed: anything with ``lookup``, ``record`` and a
    ``lock(name)`` context manager works.
    """

    def __init__(
        self,
        *,
        ledger,
        fetcher: ArtifactFetcher,
        executor: StepExecutor,
        work_root: Path,
        keep_run_dirs: bool = False,
        clock: Callable[[], int] = time.time_ns,
    ):
        self._ledger = ledger
        self._fetcher = fetcher
        self._executor = executor
        self._work_root = Path(work_root)
        self._keep_run_dirs = keep_run_dirs
        self._clock = clock
        self._last_run_ns = 0
        self._run_id_lock = threading.Lock()

    def apply(self, recipe: Recipe) -> ApplyOutcome:
        """Bring the host to ``recipe``'s desired state.

        Returns:
            ApplyOutcome describing what was done (possibly nothing).

        Raises:
            RecipeError: the first failure, annotated with the stage and
                where applicable the artifact id or step index. The
                ledger is left untouched.
        """
        with self._ledger.lock(recipe.name):
            try:
                steps, action, reason = self._decide(recipe)
            except RecipeError as e:
                raise e.annotate(recipe=recipe.name, stage=STAGE_DECIDE)

            if steps is None:
                logger.info("Skipping recipe %s: %s", recipe.name, reason)
                return ApplyOutcome(
                    recipe=recipe.name, version=recipe.version, action="skipped", reason=reason,
                )

            ctx = self._create_run_context(recipe)
            try:
                self._fetch(recipe, ctx)
                self._execute(recipe, steps, ctx)
                try:
                    self._ledger.record(recipe.name, recipe.version, success=True)
                except RecipeError as e:
                    raise e.annotate(recipe=recipe.name, stage=STAGE_RECORDED)
            finally:
                self._cleanup(ctx)

        logger.info(
            "All steps completed successfully, marked recipe %s as %s",
            recipe.name, action,
        )
        return ApplyOutcome(
            recipe=recipe.name,
            version=recipe.version,
            action=action,
            run_id=ctx.run_id,
            run_dir=str(ctx.base_directory),
            steps_executed=len(steps),
            reason=reason,
        )

    # ── Decide ─────────────────────────────────────────────────

    def _decide(
        self, recipe: Recipe,
    ) -> tuple[Sequence[Step] | None, Literal["installed", "updated", "skipped"], str]:
        """Pick the step list to run, or ``None`` when there is nothing to do."""
        # fail on a bad version before any side effect, not at record time
        parse_version(recipe.version)

        entry, found = self._ledger.lookup(recipe.name)
        if not found:
            logger.info("Installing recipe %s %s", recipe.name, recipe.version)
            steps, action, reason = recipe.install_steps, "installed", "not previously applied"
        elif recipe.desired_state == "INSTALLED":
            return None, "skipped", f"already installed at {_stored(entry)}"
        elif not is_greater(entry.version, recipe.version):
            return None, "skipped", (
                f"installed version {_stored(entry)} is not older than {recipe.version!r}"
            )
        else:
            logger.info(
                "Updating recipe %s from %s to %s",
                recipe.name, _stored(entry), recipe.version,
            )
            steps, action, reason = recipe.update_steps, "updated", (
                f"upgraded from {_stored(entry)}"
            )

        _check_references(recipe, steps)
        return steps, action, reason

    # ── Fetching ───────────────────────────────────────────────

    def _next_run_id(self) -> str:
        with self._run_id_lock:
            now = max(self._clock(), self._last_run_ns + 1)
            self._last_run_ns = now
        return f"run_{now}"

    def _create_run_context(self, recipe: Recipe) -> RunContext:
        run_id = self._next_run_id()
        base = self._work_root / recipe.dir_name / run_id
        try:
            base.mkdir(parents=True, exist_ok=False)
            snapshot = yaml.safe_dump(recipe.model_dump(mode="json"), sort_keys=False)
            (base / "recipe.yaml").write_text(snapshot, encoding="utf-8")
        except OSError as e:
            raise FetchFailed(f"cannot create run directory {base}: {e}").annotate(
                recipe=recipe.name, stage=STAGE_FETCHING,
            ) from e
        logger.debug("Created run directory %s for recipe %s", base, recipe.name)
        return RunContext(run_id=run_id, base_directory=base)

    def _fetch(self, recipe: Recipe, ctx: RunContext) -> None:
        try:
            ctx.artifact_paths = self._fetcher.fetch_all(recipe.artifacts, ctx.artifacts_dir)
        except RecipeError as e:
            raise e.annotate(recipe=recipe.name, stage=STAGE_FETCHING)

        ctx.environment = [
            f"RECIPE_NAME={recipe.name}",
            f"RECIPE_VERSION={recipe.version}",
            f"RUNID={ctx.run_id}",
        ]
        ctx.environment.extend(f"{aid}={path}" for aid, path in ctx.artifact_paths.items())

    # ── Executing ──────────────────────────────────────────────

    def _execute(self, recipe: Recipe, steps: Sequence[Step], ctx: RunContext) -> None:
        for i, step in enumerate(steps):
            logger.debug("Running step %d (%s) of recipe %s", i, step.label, recipe.name)
            try:
                step_dir = ctx.step_dir(i, step)
                try:
                    step_dir.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise StepFailed(f"failed to create step dir {step_dir}: {e}") from e
                self._executor.execute(step, ctx.artifact_paths, ctx.environment, step_dir)
            except RecipeError as e:
                logger.error("Step %d (%s) of recipe %s failed: %s", i, step.label, recipe.name, e)
                raise e.annotate(
                    recipe=recipe.name, stage=STAGE_EXECUTING, step_index=i, step_kind=step.label,
                )

    def _cleanup(self, ctx: RunContext) -> None:
        if self._keep_run_dirs:
            return
        try:
            shutil.rmtree(ctx.base_directory)
        except OSError as e:
            logger.warning("Failed to remove recipe working directory %s: %s", ctx.base_directory, e)


def _stored(entry: RecipeLedgerEntry | None) -> str:
    return format_version(entry.version) if entry is not None else ""


def _check_references(recipe: Recipe, steps: Sequence[Step]) -> None:
    """Every artifact a step names must be declared by the recipe."""
    declared = recipe.artifact_ids
    for i, step in enumerate(steps):
        artifact_id = getattr(step, "artifact_id", "")
        if artifact_id and artifact_id not in declared:
            raise ArtifactNotFound(
                f"step {i} ({step.label}) references undeclared artifact {artifact_id!r}"
            ).annotate(step_index=i, step_kind=step.label)
