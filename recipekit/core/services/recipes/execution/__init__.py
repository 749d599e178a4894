"""
L4 Execution — ``__init__.py`` re-exports all execution functions.

These functions WRITE to the system: artifact downloads, file
copies, archive extraction, subprocess calls.
"""

from recipekit.core.services.recipes.execution.archives import (  # noqa: F401
    ARCHIVE_TYPES,
    extract_archive,
)
from recipekit.core.services.recipes.execution.fetcher import (  # noqa: F401
    ArtifactFetcher,
)
from recipekit.core.services.recipes.execution.package_tool import (  # noqa: F401
    PackageInstaller,
)
from recipekit.core.services.recipes.execution.step_executors import (  # noqa: F401
    StepExecutor,
    default_environment,
    env_list_to_dict,
)
from recipekit.core.services.recipes.execution.subprocess_runner import (  # noqa: F401
    check_subprocess,
    run_subprocess,
)
