"""
L4 Execution — Archive extraction.

zip and tar (plain, gzip, bzip2) archives are unpacked into a
destination directory. Every format goes through the same two
passes:

1. validate: each member's output path must stay inside the
   destination (``PathTraversal`` otherwise), must not pass through a
   symlink declared earlier in the same archive, and must not collide
   with an existing file (``ArchiveConflict``). Nothing is written.
   Writes re-check the resolved parent directory against the real
   destination, so symlinks already on disk cannot redirect them.
2. extract: directories with default permissions, files streamed
   out with their archived mode bits and modification time.

Extraction is not atomic. If a member fails in pass 2, everything
written before it stays on disk; callers that need all-or-nothing
should extract into a scratch directory and rename.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import time
import zipfile

from recipekit.core.services.recipes.domain.errors import (
    ArchiveConflict,
    PathTraversal,
    StepFailed,
    UnsupportedArchiveType,
)
from recipekit.core.services.recipes.domain.paths import norm_path, safe_join

logger = logging.getLogger(__name__)

ZIP = "zip"
TAR = "tar"
TAR_GZ = "tar.gz"
TAR_BZ2 = "tar.bz2"
TAR_LZMA = "tar.lzma"
TAR_XZ = "tar.xz"

ARCHIVE_TYPES = (ZIP, TAR, TAR_GZ, TAR_BZ2, TAR_LZMA, TAR_XZ)

_TAR_MODES = {TAR: "r:", TAR_GZ: "r:gz", TAR_BZ2: "r:bz2"}

# Declared archive types with no decompressor wired up yet
_UNIMPLEMENTED = (TAR_LZMA, TAR_XZ)

_DEFAULT_FILE_MODE = 0o755


def extract_archive(archive: str | os.PathLike[str], destination: str, archive_type: str) -> None:
    """Unpack ``archive`` into ``destination``.

    Raises:
        UnsupportedArchiveType: empty, unknown, or not-yet-supported type.
        PathTraversal: a member would land outside ``destination``.
        ArchiveConflict: a member would overwrite an existing file.
        StepFailed: the archive is unreadable or a write fails.
    """
    if archive_type in _UNIMPLEMENTED:
        raise UnsupportedArchiveType(
            f"archive type {archive_type!r} has no decompression backend"
        )
    if archive_type == ZIP:
        extractor = _extract_zip
    elif archive_type in _TAR_MODES:
        extractor = _extract_tar
    else:
        raise UnsupportedArchiveType(f"unrecognized archive type {archive_type!r}")

    dst = norm_path(destination)
    logger.debug("Extracting %s (%s) into %s", archive, archive_type, dst)
    try:
        extractor(os.fspath(archive), dst, archive_type)
    except PathTraversal as e:
        logger.error("Refusing to extract %s into %s: %s", archive, dst, e)
        raise
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
        raise StepFailed(f"error extracting {archive_type} archive {archive}: {e}") from e


def _check_conflict(target: str, is_dir: bool) -> None:
    if not os.path.lexists(target):
        return
    if is_dir and os.path.isdir(target):
        # existing directories are fine
        return
    raise ArchiveConflict(f"file exists: {target}")


def _check_real_parent(target: str, dst: str, real_dst: str) -> None:
    """Symlinks already on disk must not redirect a write out of the destination."""
    if target == dst:
        return
    parent = os.path.realpath(os.path.dirname(target))
    if parent != real_dst and not parent.startswith(real_dst.rstrip(os.sep) + os.sep):
        raise PathTraversal(f"{target!r} resolves outside destination {real_dst!r}")


# ── zip ────────────────────────────────────────────────────────


def _zip_mode(info: zipfile.ZipInfo) -> int:
    return ((info.external_attr >> 16) & 0o7777) or _DEFAULT_FILE_MODE


def _extract_zip(path: str, dst: str, _archive_type: str) -> None:
    base = os.path.normpath(dst)
    with zipfile.ZipFile(path) as zf:
        members = zf.infolist()

        plan: list[tuple[zipfile.ZipInfo, str]] = []
        for info in members:
            target = safe_join(dst, info.filename)
            _check_conflict(target, info.is_dir())
            plan.append((info, target))

        real_dst = os.path.realpath(dst)
        for info, target in plan:
            _check_real_parent(target, base, real_dst)
            if info.is_dir():
                os.makedirs(target, exist_ok=True)
                continue

            os.makedirs(os.path.dirname(target), exist_ok=True)
            mode = _zip_mode(info)
            with zf.open(info) as src, _open_for_write(target, mode) as out:
                shutil.copyfileobj(src, out)
            os.chmod(target, mode)

            mtime = time.mktime(info.date_time + (0, 0, -1))
            os.utime(target, (time.time(), mtime))


# ── tar ────────────────────────────────────────────────────────


def _through_link(path: str, dst: str, links: set[str]) -> str | None:
    """The first archive symlink that ``path`` is, or sits beneath."""
    while len(path) > len(dst):
        if path in links:
            return path
        path = os.path.dirname(path)
    return None


def _validate_tar_member(
    member: tarfile.TarInfo, target: str, dst: str, links: set[str],
) -> None:
    """Lexical checks for one member against the symlinks declared before it.

    No member path, symlink target or hard link source may pass through
    a symlink created earlier in the same archive. Chained links could
    otherwise resolve outside ``dst`` while each one is lexically inside.
    """
    paths = [target]
    if member.issym():
        link = member.linkname
        if os.path.isabs(link) or link.startswith(("/", "\\")):
            raise PathTraversal(
                f"symlink {member.name!r} points at absolute path {link!r}"
            )
        raw = os.path.join(os.path.dirname(member.name), link).replace("\\", "/")
        paths.append(safe_join(dst, raw))
        # the OS resolves the link text unnormalized, so check every prefix
        parts = raw.split("/")
        paths.extend(
            os.path.normpath(os.path.join(dst, *parts[:i])) for i in range(1, len(parts))
        )
    elif member.islnk():
        paths.append(safe_join(dst, member.linkname))

    for path in paths:
        via = _through_link(path, dst, links)
        if via is not None:
            raise PathTraversal(
                f"tar member {member.name!r} goes through archive symlink {via!r}"
            )
    _check_conflict(target, member.isdir())


def _extract_tar(path: str, dst: str, archive_type: str) -> None:
    base = os.path.normpath(dst)
    with tarfile.open(path, _TAR_MODES[archive_type]) as tf:
        members = tf.getmembers()

        plan: list[tuple[tarfile.TarInfo, str]] = []
        links: set[str] = set()
        for member in members:
            target = safe_join(dst, member.name)
            _validate_tar_member(member, target, base, links)
            if member.issym():
                links.add(target)
            plan.append((member, target))

        real_dst = os.path.realpath(dst)
        for member, target in plan:
            _check_real_parent(target, base, real_dst)
            os.makedirs(os.path.dirname(target), exist_ok=True)

            if member.isdir():
                os.makedirs(target, exist_ok=True)
            elif member.isfile():
                src = tf.extractfile(member)
                if src is None:
                    raise StepFailed(f"cannot read tar member {member.name!r}")
                with src, _open_for_write(target, member.mode) as out:
                    shutil.copyfileobj(src, out)
                os.chmod(target, member.mode)
            elif member.issym():
                os.symlink(member.linkname, target)
                continue
            elif member.islnk():
                os.link(safe_join(dst, member.linkname), target)
                continue
            elif member.isfifo() and hasattr(os, "mkfifo"):
                os.mkfifo(target, member.mode)
            else:
                logger.info("Skipping tar member %s of unsupported type %r", target, member.type)
                continue

            _chown(target, member.uid, member.gid)
            os.utime(target, (time.time(), member.mtime))


def _open_for_write(target: str, mode: int):
    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    return os.fdopen(fd, "wb")


def _chown(target: str, uid: int, gid: int) -> None:
    # ownership only carries over when we are allowed to give files away
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        os.chown(target, uid, gid)
