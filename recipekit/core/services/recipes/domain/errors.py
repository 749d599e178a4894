"""
L1 Domain — Recipe error taxonomy.

Every failure inside a recipe application is one of these types.
The runner annotates the error with where it happened (stage,
artifact, step) and re-raises it; nothing here is ever retried.
"""

from __future__ import annotations


class RecipeError(Exception):
    """Base class for all recipe engine failures."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message
        self.recipe: str | None = None
        self.stage: str | None = None
        self.artifact_id: str | None = None
        self.step_index: int | None = None
        self.step_kind: str | None = None

    def annotate(
        self,
        *,
        recipe: str | None = None,
        stage: str | None = None,
        artifact_id: str | None = None,
        step_index: int | None = None,
        step_kind: str | None = None,
    ) -> RecipeError:
        """Attach location details without changing the error type."""
        if recipe is not None:
            self.recipe = recipe
        if stage is not None:
            self.stage = stage
        if artifact_id is not None:
            self.artifact_id = artifact_id
        if step_index is not None:
            self.step_index = step_index
        if step_kind is not None:
            self.step_kind = step_kind
        return self

    @property
    def location(self) -> str:
        """Human-readable ``recipe/stage/step`` prefix, empty if unannotated."""
        parts = []
        if self.recipe:
            parts.append(f"recipe {self.recipe!r}")
        if self.stage:
            parts.append(f"stage {self.stage}")
        if self.artifact_id:
            parts.append(f"artifact {self.artifact_id!r}")
        if self.step_index is not None:
            kind = f" ({self.step_kind})" if self.step_kind else ""
            parts.append(f"step {self.step_index}{kind}")
        return ", ".join(parts)

    def __str__(self) -> str:
        loc = self.location
        return f"[{loc}] {self.message}" if loc else self.message


class RecipeConfigError(RecipeError):
    """A recipe or settings document is missing or invalid."""


class InvalidVersion(RecipeError):
    """A version string is not 1-4 dot-separated non-negative integers."""


class UnsupportedProtocol(RecipeError):
    """An artifact URI uses a scheme the fetcher cannot handle."""


class FetchFailed(RecipeError):
    """Network or storage error while retrieving an artifact."""


class ChecksumMismatch(RecipeError):
    """Downloaded bytes do not hash to the declared SHA-256."""

    def __init__(self, message: str = "", *, expected: str = "", actual: str = ""):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ArtifactNotFound(RecipeError):
    """A step references an artifact id the recipe does not declare."""


class PathTraversal(RecipeError):
    """An archive member would be written outside its destination."""


class UnsupportedArchiveType(RecipeError):
    """The archive type is unknown or has no decompression backend."""


class SubprocessFailed(RecipeError):
    """A child process exited with a status not in the allowed set."""

    def __init__(
        self,
        message: str = "",
        *,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class LedgerIOError(RecipeError):
    """The persisted ledger cannot be read or written."""


class StepFailed(RecipeError):
    """A step failed for a reason other than a subprocess exit status."""


class InvalidPermissions(StepFailed):
    """A permission string is not a valid octal mode."""


class ArchiveConflict(StepFailed):
    """An archive member would overwrite an existing file."""


class UnsupportedPlatform(StepFailed):
    """The step needs a tool or OS this host does not have."""
