"""
L4 Execution — Core subprocess runner.

The SINGLE PLACE where ``subprocess.run`` is called for recipe
steps. Executables, scripts and package tools all go through here.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Sequence
from typing import Any

from recipekit.core.services.recipes.domain.errors import SubprocessFailed

logger = logging.getLogger(__name__)

# Tail kept on results and errors; the full output goes to the log
_OUTPUT_TAIL = 2000


def run_subprocess(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    allowed_exit_codes: Sequence[int] = (0,),
) -> dict[str, Any]:
    """Run a command to completion and report what happened.

    Blocks until the child exits; there is deliberately no timeout
    here, callers that need one must bound the whole process.

    Args:
        cmd: Executable followed by its arguments.
        cwd: Working directory for the child.
        env: The child's complete environment. ``None`` inherits ours.
        allowed_exit_codes: Exit statuses treated as success. An empty
            sequence means ``(0,)``.

    Returns:
        ``{"ok": True, "returncode": N, "stdout": "...", "stderr": "...",
        "elapsed_ms": N}``; ``ok`` is False for a disallowed exit status
        or when the executable could not be started (``"error"`` set).
    """
    allowed = tuple(allowed_exit_codes) or (0,)
    start = time.monotonic()
    try:
        result = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            errors="replace",
            env=env,
            cwd=cwd,
        )
    except OSError as e:
        logger.error("Cannot start %s: %s", cmd[0], e)
        return {"ok": False, "returncode": None, "error": str(e), "stdout": "", "stderr": ""}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Output for %s (exit %d, %dms):\n%s%s",
        cmd[0], result.returncode, elapsed_ms, result.stdout, result.stderr,
    )

    ok = result.returncode in allowed
    out: dict[str, Any] = {
        "ok": ok,
        "returncode": result.returncode,
        "stdout": result.stdout[-_OUTPUT_TAIL:] if result.stdout else "",
        "stderr": result.stderr[-_OUTPUT_TAIL:] if result.stderr else "",
        "elapsed_ms": elapsed_ms,
    }
    if not ok:
        out["error"] = f"Command failed (exit {result.returncode})"
    return out


def check_subprocess(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    allowed_exit_codes: Sequence[int] = (0,),
) -> dict[str, Any]:
    """Like :func:`run_subprocess` but raise on failure.

    Raises:
        SubprocessFailed: the command could not start or exited with a
            status outside ``allowed_exit_codes``.
    """
    result = run_subprocess(cmd, cwd=cwd, env=env, allowed_exit_codes=allowed_exit_codes)
    if not result["ok"]:
        raise SubprocessFailed(
            f"{cmd[0]}: {result['error']}",
            returncode=result["returncode"],
            stdout=result["stdout"],
            stderr=result["stderr"],
        )
    return result
