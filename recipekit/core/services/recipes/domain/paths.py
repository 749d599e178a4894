"""
L1 Domain — Path normalization and containment checks (pure).

Lexical path handling only: nothing here touches the filesystem.
"""

from __future__ import annotations

import ntpath
import os
import platform

from recipekit.core.services.recipes.domain.errors import (
    InvalidPermissions,
    PathTraversal,
)

# Win32 extended-length prefix; lifts the 260 character MAX_PATH limit
LONG_PATH_PREFIX = "\\\\?\\"

DEFAULT_PERMISSIONS = 0o755


def _is_windows() -> bool:
    return platform.system() == "Windows"


def norm_path(path: str | os.PathLike[str], *, windows: bool | None = None) -> str:
    """Normalize a destination path before any file is created.

    On POSIX the path is returned unchanged. On Windows it is made
    absolute, cleaned, and given the ``\\\\?\\`` long-path prefix
    (idempotent: already-prefixed paths pass through).
    """
    path = os.fspath(path)
    if windows is None:
        windows = _is_windows()
    if not windows:
        return path
    if path.startswith(LONG_PATH_PREFIX):
        return path
    return LONG_PATH_PREFIX + ntpath.normpath(ntpath.abspath(path))


def safe_join(destination: str | os.PathLike[str], member: str) -> str:
    """Join an archive member name onto ``destination``, refusing escapes.

    The result is lexically cleaned and must equal ``destination`` or
    sit beneath it. Absolute member names (``/etc/x``, ``C:\\x``,
    ``\\\\server\\x``) and ``..`` components that climb out raise
    :class:`PathTraversal`.
    """
    if _is_absolute_member(member):
        raise PathTraversal(f"archive member {member!r} is an absolute path")

    base = os.path.normpath(os.fspath(destination))
    target = os.path.normpath(os.path.join(base, member))

    prefix = base if base.endswith(os.sep) else base + os.sep
    if target != base and not target.startswith(prefix):
        raise PathTraversal(
            f"archive member {member!r} resolves outside destination {base!r}"
        )
    return target


def _is_absolute_member(member: str) -> bool:
    if member.startswith(("/", "\\")):
        return True
    # drive-qualified names are absolute on Windows and nonsense elsewhere
    drive, _ = ntpath.splitdrive(member)
    return bool(drive)


def parse_permissions(value: str) -> int:
    """Parse an octal permission string such as ``"0644"`` or ``"755"``.

    Empty means :data:`DEFAULT_PERMISSIONS`. Each digit must be 0-7.

    Raises:
        InvalidPermissions: on any non-octal input or a mode above 0o7777.
    """
    if value == "":
        return DEFAULT_PERMISSIONS
    if not all(c in "01234567" for c in value):
        raise InvalidPermissions(f"invalid permissions {value!r}: not an octal string")
    mode = int(value, 8)
    if mode > 0o7777:
        raise InvalidPermissions(f"invalid permissions {value!r}: out of range")
    return mode
