"""L5 Orchestration — recipe application."""

from recipekit.core.services.recipes.orchestration.runner import (  # noqa: F401
    ApplyOutcome,
    RecipeRunner,
    RunContext,
)
