"""
L4 Execution — Artifact fetching and checksum verification.

Streams each artifact to disk while hashing it in the same pass.
Bytes land in a temporary file next to the destination and are only
renamed into place once the checksum (if any) has matched, so a
resolved artifact path always holds verified content.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

from recipekit.adapters.base import BlobStore, HttpClient
from recipekit.core.models.recipe import Artifact
from recipekit.core.services.recipes.domain.download_helpers import fmt_size
from recipekit.core.services.recipes.domain.errors import (
    ChecksumMismatch,
    FetchFailed,
    RecipeError,
)
from recipekit.core.services.recipes.domain.locations import (
    BlobLocation,
    HttpLocation,
    resolve_location,
)
from recipekit.core.services.recipes.domain.paths import norm_path

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


class ArtifactFetcher:
    """Resolve artifacts to local files.

    Both backends are injected; nothing here constructs a storage or
    HTTP client on its own.
    """

    def __init__(self, blob_store: BlobStore, http_client: HttpClient):
        self._blob_store = blob_store
        self._http = http_client

    def fetch_all(
        self,
        artifacts: Iterable[Artifact],
        destination_dir: str | os.PathLike[str],
    ) -> dict[str, Path]:
        """Fetch every artifact, in order, into ``destination_dir``.

        Fails fast: the first failure propagates (annotated with the
        artifact id) and no partial mapping is returned.
        """
        local: dict[str, Path] = {}
        for artifact in artifacts:
            logger.debug("Downloading artifact %s from %s", artifact.id, artifact.uri)
            try:
                local[artifact.id] = self.fetch(artifact, destination_dir)
            except RecipeError as e:
                raise e.annotate(artifact_id=artifact.id)
        return local

    def fetch(self, artifact: Artifact, destination_dir: str | os.PathLike[str]) -> Path:
        """Fetch one artifact and return its verified local path.

        The file is named ``<id><extension>`` where the extension comes
        from the object or URL path (``a1.msi``, ``pkg.gz``).

        Raises:
            UnsupportedProtocol: unknown URI scheme.
            FetchFailed: storage/network error or non-200 response.
            ChecksumMismatch: content does not match ``artifact.checksum``.
        """
        location = resolve_location(artifact.uri)
        self._warn_if_insecure(artifact, location)

        target = Path(norm_path(Path(destination_dir) / f"{artifact.id}{location.extension}"))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FetchFailed(f"cannot create artifact directory {target.parent}: {e}") from e

        stream = self._open(artifact, location)
        try:
            digest, size = _stream_to_file(stream, target, artifact)
        finally:
            stream.close()

        logger.info("Fetched artifact %s from %s (%s)", artifact.id, location, fmt_size(size))
        logger.debug("Artifact %s sha256=%s -> %s", artifact.id, digest, target)
        return target

    # ── Backends ───────────────────────────────────────────────

    def _open(self, artifact: Artifact, location: BlobLocation | HttpLocation) -> BinaryIO:
        if isinstance(location, BlobLocation):
            try:
                return self._blob_store.open(location.bucket, location.obj, location.generation)
            except Exception as e:
                raise FetchFailed(
                    f"error reading {location} for artifact {artifact.id!r}: {e}"
                ) from e

        try:
            resp = self._http.get(location.uri)
        except Exception as e:
            raise FetchFailed(
                f"error downloading {location.uri} for artifact {artifact.id!r}: {e}"
            ) from e
        if resp.status != 200:
            resp.close()
            raise FetchFailed(
                f"got http status {resp.status} when downloading artifact "
                f"{artifact.id!r} from {location.uri}"
            )
        return resp.body

    @staticmethod
    def _warn_if_insecure(artifact: Artifact, location: BlobLocation | HttpLocation) -> None:
        if artifact.allow_insecure:
            return
        if isinstance(location, HttpLocation) and not location.secure:
            logger.warning(
                "Artifact %s is fetched over plain http (%s) without allow_insecure",
                artifact.id, location.uri,
            )
        elif isinstance(location, HttpLocation) and not artifact.checksum:
            logger.warning(
                "Artifact %s has no checksum and allow_insecure is not set", artifact.id,
            )


def _stream_to_file(stream: BinaryIO, target: Path, artifact: Artifact) -> tuple[str, int]:
    """Copy ``stream`` to ``target`` via a temp file, hashing as it goes.

    Returns:
        ``(hex sha256, bytes written)``.
    """
    hasher = hashlib.sha256()
    size = 0
    try:
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{artifact.id}_", suffix=".part")
    except OSError as e:
        raise FetchFailed(
            f"cannot create temp file for artifact {artifact.id!r} in {target.parent}: {e}"
        ) from e
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as out:
            while True:
                try:
                    chunk = stream.read(_CHUNK)
                except Exception as e:
                    raise FetchFailed(f"error reading artifact {artifact.id!r}: {e}") from e
                if not chunk:
                    break
                out.write(chunk)
                hasher.update(chunk)
                size += len(chunk)

        computed = hasher.hexdigest()
        if artifact.checksum and artifact.checksum.lower() != computed:
            logger.error(
                "Checksum mismatch for artifact %s: got %s, expected %s",
                artifact.id, computed, artifact.checksum,
            )
            raise ChecksumMismatch(
                f"checksum for artifact {artifact.id!r} is {computed!r}, "
                f"expected {artifact.checksum!r}",
                expected=artifact.checksum,
                actual=computed,
            )
        os.replace(tmp, target)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise FetchFailed(f"error writing artifact {artifact.id!r} to {target}: {e}") from e
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return computed, size
