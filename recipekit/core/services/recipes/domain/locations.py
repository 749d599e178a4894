"""
L1 Domain — Artifact URI resolution (pure).

Turns an artifact URI into where the bytes actually live: an object
in cloud storage, or a plain HTTP(S) resource. Several legacy HTTP
URL shapes for Cloud Storage are recognized and routed to the blob
store instead of being downloaded anonymously.
No I/O, no subprocess.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

from recipekit.core.services.recipes.domain.errors import (
    FetchFailed,
    UnsupportedProtocol,
)

_BUCKET = r"(?P<bucket>[a-z0-9][-_.a-z0-9]*)"
_OBJECT = r"(?P<object>.+)"

# Preferred form is gs://<bucket>/<object>; these are the HTTP aliases.
_GCS_HTTP_PATTERNS = (
    # http[s]://<bucket>.storage.googleapis.com/<object>
    re.compile(rf"^https?://{_BUCKET}\.storage\.googleapis\.com/{_OBJECT}$", re.IGNORECASE),
    # http[s]://storage.cloud.google.com/<bucket>/<object>
    re.compile(rf"^https?://storage\.cloud\.google\.com/{_BUCKET}/{_OBJECT}$", re.IGNORECASE),
    # http[s]://storage.googleapis.com/<bucket>/<object>
    # http[s]://commondatastorage.googleapis.com/<bucket>/<object>  (deprecated)
    re.compile(
        rf"^https?://(?:commondata)?storage\.googleapis\.com/{_BUCKET}/{_OBJECT}$",
        re.IGNORECASE,
    ),
)


@dataclass(frozen=True)
class BlobLocation:
    """An object in the blob store."""

    bucket: str
    obj: str
    generation: int | None = None

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.obj)[1]

    def __str__(self) -> str:
        gen = f"#{self.generation}" if self.generation is not None else ""
        return f"gs://{self.bucket}/{self.obj}{gen}"


@dataclass(frozen=True)
class HttpLocation:
    """A resource fetched with a plain GET."""

    uri: str
    secure: bool

    @property
    def extension(self) -> str:
        return posixpath.splitext(urlsplit(self.uri).path)[1]

    def __str__(self) -> str:
        return self.uri


def _parse_generation(fragment: str, uri: str) -> int | None:
    if fragment == "":
        return None
    if not fragment.isdigit():
        raise FetchFailed(f"cannot parse object generation {fragment!r} in {uri!r}")
    return int(fragment)


def match_legacy_gcs_url(uri: str) -> BlobLocation | None:
    """Recognize the HTTP spellings of a Cloud Storage object.

    An optional ``#<generation>`` fragment pins the object revision.
    Returns ``None`` when ``uri`` is not one of the known shapes.
    """
    base, _, fragment = uri.partition("#")
    for pattern in _GCS_HTTP_PATTERNS:
        m = pattern.match(base)
        if m:
            return BlobLocation(
                bucket=m.group("bucket").lower(),
                obj=unquote(m.group("object")),
                generation=_parse_generation(fragment, uri),
            )
    return None


def resolve_location(uri: str) -> BlobLocation | HttpLocation:
    """Decide how an artifact URI is fetched.

    Raises:
        UnsupportedProtocol: any scheme other than gs, http or https.
        FetchFailed: a gs URI without bucket/object, or a non-numeric
            generation fragment.
    """
    parts = urlsplit(uri)
    scheme = parts.scheme.lower()

    if scheme == "gs":
        obj = unquote(parts.path[1:] if parts.path.startswith("/") else parts.path)
        if not parts.netloc or not obj:
            raise FetchFailed(f"gs URI {uri!r} must name a bucket and an object")
        return BlobLocation(
            bucket=parts.netloc,
            obj=obj,
            generation=_parse_generation(parts.fragment, uri),
        )

    if scheme in ("http", "https"):
        legacy = match_legacy_gcs_url(uri)
        if legacy is not None:
            return legacy
        return HttpLocation(uri=uri, secure=scheme == "https")

    raise UnsupportedProtocol(f"protocol {scheme!r} in {uri!r} is not supported")
