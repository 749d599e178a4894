"""
L4 Execution — Package file installation via the platform tool.

The engine does not understand .deb, .rpm or .msi internals. It
only resolves the file and invokes dpkg, rpm or msiexec with the
right arguments.
"""

from __future__ import annotations

import logging
import os
import platform
from collections.abc import Callable, Sequence
from typing import Any

from recipekit.core.services.recipes.domain.errors import UnsupportedPlatform
from recipekit.core.services.recipes.execution.subprocess_runner import check_subprocess

logger = logging.getLogger(__name__)

DPKG = "/usr/bin/dpkg"
RPM = "/bin/rpm"
MSIEXEC = "C:\\Windows\\System32\\msiexec.exe"

DPKG_INSTALL_ARGS = ["--install"]
RPM_INSTALL_ARGS = ["--upgrade", "--replacepkgs", "-v"]
MSI_DEFAULT_FLAGS = ["/i", "/qn", "/norestart"]
# 1641: reboot initiated, 3010: reboot required
MSI_DEFAULT_EXIT_CODES = [0, 1641, 3010]


class PackageInstaller:
    """Invoke the platform package tool for one package file.

    Tool locations are constructor parameters so hosts with unusual
    layouts (and tests) can point elsewhere.
    """

    def __init__(
        self,
        *,
        dpkg: str = DPKG,
        rpm: str = RPM,
        msiexec: str = MSIEXEC,
        runner: Callable[..., dict[str, Any]] = check_subprocess,
        windows: bool | None = None,
    ):
        self._tools = {"dpkg": dpkg, "rpm": rpm, "msi": msiexec}
        self._runner = runner
        self._windows = platform.system() == "Windows" if windows is None else windows

    def build_command(
        self,
        kind: str,
        path: str,
        *,
        flags: Sequence[str] = (),
    ) -> list[str]:
        """The argv that installs ``path`` with the ``kind`` tool."""
        if kind == "dpkg":
            return [self._tools["dpkg"], *DPKG_INSTALL_ARGS, path]
        if kind == "rpm":
            return [self._tools["rpm"], *RPM_INSTALL_ARGS, path]
        if kind == "msi":
            return [self._tools["msi"], *(list(flags) or MSI_DEFAULT_FLAGS), path]
        raise UnsupportedPlatform(f"unknown package kind {kind!r}")

    def install(
        self,
        kind: str,
        path: str,
        *,
        flags: Sequence[str] = (),
        allowed_exit_codes: Sequence[int] = (),
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Install one package file.

        Raises:
            UnsupportedPlatform: msi on a non-Windows host, or the tool
                binary is missing.
            SubprocessFailed: the tool exited with a disallowed status.
        """
        if kind == "msi" and not self._windows:
            raise UnsupportedPlatform("msi installation is only applicable on Windows")

        tool = self._tools.get(kind)
        if tool is None:
            raise UnsupportedPlatform(f"unknown package kind {kind!r}")
        if not os.path.exists(tool):
            raise UnsupportedPlatform(f"{kind} does not exist on this system ({tool})")

        cmd = self.build_command(kind, path, flags=flags)
        codes = list(allowed_exit_codes)
        if not codes:
            codes = MSI_DEFAULT_EXIT_CODES if kind == "msi" else [0]

        logger.info("Installing %s package %s", kind, path)
        return self._runner(cmd, cwd=cwd, env=env, allowed_exit_codes=codes)
