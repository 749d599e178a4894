"""
L4 Execution — Step executors.

Each ``_execute_*`` method handles one step variant. ``execute``
dispatches over the closed set of step types; a new variant that is
not handled here fails type checking at ``assert_never``.

All subprocesses go through the injected runner (``check_subprocess``
by default) and all package tools through the injected
``PackageInstaller``.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
import tempfile
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, assert_never

from recipekit.core.models.recipe import (
    ArchiveExtraction,
    FileCopy,
    FileExec,
    PackageFileInstallation,
    ScriptRun,
    Step,
)
from recipekit.core.services.recipes.domain.errors import (
    ArtifactNotFound,
    RecipeError,
    StepFailed,
    UnsupportedPlatform,
)
from recipekit.core.services.recipes.domain.paths import norm_path, parse_permissions
from recipekit.core.services.recipes.execution.archives import extract_archive
from recipekit.core.services.recipes.execution.package_tool import PackageInstaller
from recipekit.core.services.recipes.execution.subprocess_runner import check_subprocess

logger = logging.getLogger(__name__)

SCRIPT_NAME = "recipe_script_source"
POSIX_SHELL = "/bin/sh"
POWERSHELL = "C:\\Windows\\System32\\WindowsPowerShell\\v1.0\\PowerShell.exe"

_WINDOWS_SCRIPT_EXT = {"none": ".bat", "shell": ".bat", "powershell": ".ps1"}

# Variables a Windows child cannot start without
_WINDOWS_PASSTHROUGH = ("SystemRoot", "SystemDrive", "windir", "ComSpec", "PATHEXT", "TEMP", "TMP")


def default_environment(windows: bool) -> dict[str, str]:
    """Base environment every step child starts from.

    Empty on POSIX: children see only the run environment. On Windows
    a handful of system variables are carried over.
    """
    if not windows:
        return {}
    return {k: os.environ[k] for k in _WINDOWS_PASSTHROUGH if k in os.environ}


def env_list_to_dict(env: Sequence[str]) -> dict[str, str]:
    """``["K=V", ...]`` to a mapping; later entries win."""
    out: dict[str, str] = {}
    for item in env:
        key, sep, value = item.partition("=")
        if sep:
            out[key] = value
    return out


class StepExecutor:
    """Run one recipe step inside its working directory."""

    def __init__(
        self,
        *,
        package_installer: PackageInstaller | None = None,
        runner: Callable[..., dict[str, Any]] = check_subprocess,
        windows: bool | None = None,
    ):
        self._windows = platform.system() == "Windows" if windows is None else windows
        self._packages = package_installer or PackageInstaller(windows=self._windows)
        self._runner = runner

    def execute(
        self,
        step: Step,
        artifact_paths: Mapping[str, str | os.PathLike[str]],
        env: Sequence[str],
        work_dir: str | os.PathLike[str],
    ) -> None:
        """Execute ``step``; return on success, raise on failure.

        Raises:
            ArtifactNotFound: the step names an artifact not in ``artifact_paths``.
            SubprocessFailed: a child exited with a disallowed status.
            StepFailed: any other step failure (IO, bad permissions, ...).
        """
        work_dir = os.fspath(work_dir)
        try:
            if isinstance(step, FileCopy):
                self._execute_copy_step(step, artifact_paths)
            elif isinstance(step, ArchiveExtraction):
                self._execute_extract_step(step, artifact_paths)
            elif isinstance(step, PackageFileInstallation):
                self._execute_package_step(step, artifact_paths, work_dir)
            elif isinstance(step, FileExec):
                self._execute_exec_step(step, artifact_paths, env, work_dir)
            elif isinstance(step, ScriptRun):
                self._execute_script_step(step, env, work_dir)
            else:
                assert_never(step)
        except RecipeError:
            raise
        except OSError as e:
            raise StepFailed(f"{step.label} failed: {e}") from e

    # ── Helpers ────────────────────────────────────────────────

    @staticmethod
    def _artifact(artifact_paths: Mapping[str, Any], artifact_id: str) -> str:
        try:
            return os.fspath(artifact_paths[artifact_id])
        except KeyError:
            raise ArtifactNotFound(
                f"could not find location for artifact {artifact_id!r}"
            ) from None

    def _child_env(self, env: Sequence[str], work_dir: str) -> dict[str, str]:
        child = default_environment(self._windows)
        child.update(env_list_to_dict(env))
        child["PWD"] = work_dir
        return child

    # ── Variants ───────────────────────────────────────────────

    def _execute_copy_step(self, step: FileCopy, artifact_paths: Mapping[str, Any]) -> None:
        """Copy an artifact to ``destination`` with the requested mode.

        An existing destination with ``overwrite`` unset is left alone.
        """
        src = self._artifact(artifact_paths, step.artifact_id)
        mode = parse_permissions(step.permissions)
        dest = Path(norm_path(step.destination, windows=self._windows))

        if dest.exists() and not step.overwrite:
            logger.info("Destination %s already exists and overwrite is false, skipping copy", dest)
            return

        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}_", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            with open(src, "rb") as reader, os.fdopen(fd, "wb") as writer:
                shutil.copyfileobj(reader, writer)
            os.chmod(tmp, mode)
            os.replace(tmp, dest)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Copied %s to %s (mode %o)", src, dest, mode)

    def _execute_extract_step(
        self, step: ArchiveExtraction, artifact_paths: Mapping[str, Any],
    ) -> None:
        archive = self._artifact(artifact_paths, step.artifact_id)
        extract_archive(archive, step.destination, step.archive_type)

    def _execute_package_step(
        self,
        step: PackageFileInstallation,
        artifact_paths: Mapping[str, Any],
        work_dir: str,
    ) -> None:
        path = self._artifact(artifact_paths, step.artifact_id)
        # package tools inherit the host environment; their maintainer
        # scripts rely on PATH
        self._packages.install(
            step.kind,
            path,
            flags=step.flags,
            allowed_exit_codes=step.allowed_exit_codes,
            cwd=work_dir,
        )

    def _execute_exec_step(
        self,
        step: FileExec,
        artifact_paths: Mapping[str, Any],
        env: Sequence[str],
        work_dir: str,
    ) -> None:
        if step.artifact_id:
            path = self._artifact(artifact_paths, step.artifact_id)
            # fetched artifacts are not executable
            os.chmod(path, 0o755)
        else:
            path = step.local_path

        self._runner(
            [path, *step.args],
            cwd=work_dir,
            env=self._child_env(env, work_dir),
            allowed_exit_codes=step.allowed_exit_codes,
        )

    def _execute_script_step(self, step: ScriptRun, env: Sequence[str], work_dir: str) -> None:
        """Materialize the script body and run it through its interpreter.

        Arguments are passed as discrete argv entries, never joined
        into a command line, so they are not subject to word splitting.
        """
        if step.interpreter == "powershell" and not self._windows:
            raise UnsupportedPlatform("interpreter 'powershell' can only be used on Windows")

        ext = _WINDOWS_SCRIPT_EXT[step.interpreter] if self._windows else ""
        script = Path(work_dir) / f"{SCRIPT_NAME}{ext}"
        script.write_text(step.body, encoding="utf-8")
        os.chmod(script, 0o755)

        if step.interpreter == "powershell":
            cmd = [POWERSHELL, "-File", str(script)]
        elif step.interpreter == "shell" and not self._windows:
            cmd = [POSIX_SHELL, str(script)]
        else:
            cmd = [str(script)]

        self._runner(
            [*cmd, *step.args],
            cwd=work_dir,
            env=self._child_env(env, work_dir),
            allowed_exit_codes=step.allowed_exit_codes,
        )
