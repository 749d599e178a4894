"""
L1 Domain — ``__init__.py`` re-exports all pure domain functions.

These functions have NO subprocess calls, NO filesystem access,
NO network calls. Pure input→output.
"""

from recipekit.core.services.recipes.domain.errors import (  # noqa: F401
    ArchiveConflict,
    ArtifactNotFound,
    ChecksumMismatch,
    FetchFailed,
    InvalidPermissions,
    InvalidVersion,
    LedgerIOError,
    PathTraversal,
    RecipeConfigError,
    RecipeError,
    StepFailed,
    SubprocessFailed,
    UnsupportedArchiveType,
    UnsupportedPlatform,
    UnsupportedProtocol,
)
from recipekit.core.services.recipes.domain.download_helpers import (  # noqa: F401
    fmt_size,
)
from recipekit.core.services.recipes.domain.locations import (  # noqa: F401
    BlobLocation,
    HttpLocation,
    match_legacy_gcs_url,
    resolve_location,
)
from recipekit.core.services.recipes.domain.paths import (  # noqa: F401
    norm_path,
    parse_permissions,
    safe_join,
)
from recipekit.core.services.recipes.domain.version import (  # noqa: F401
    format_version,
    is_greater,
    parse_version,
)
