"""
Recipe engine service — package re-exports.

Layers, leaf first (domain → execution → orchestration)::

    from recipekit.core.services.recipes import RecipeRunner, ArtifactFetcher
"""

# ── L1: Domain ──
from recipekit.core.services.recipes.domain.errors import RecipeError  # noqa: F401
from recipekit.core.services.recipes.domain.version import (  # noqa: F401
    format_version,
    is_greater,
    parse_version,
)

# ── L4: Execution ──
from recipekit.core.services.recipes.execution.fetcher import ArtifactFetcher  # noqa: F401
from recipekit.core.services.recipes.execution.package_tool import (  # noqa: F401
    PackageInstaller,
)
from recipekit.core.services.recipes.execution.step_executors import (  # noqa: F401
    StepExecutor,
)

# ── L5: Orchestration ──
from recipekit.core.services.recipes.orchestration.runner import (  # noqa: F401
    ApplyOutcome,
    RecipeRunner,
)
