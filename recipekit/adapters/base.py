"""
Adapter base — the capabilities the fetcher needs from the outside world.

The artifact fetcher never talks to a storage SDK or an HTTP library
directly; it is handed a ``BlobStore`` and an ``HttpClient`` at
construction time. Production code uses the GCS and urllib adapters,
tests use the mocks in ``recipekit.adapters.mock``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import BinaryIO


@dataclass
class HttpResponse:
    """Status code plus an open, readable body stream.

    The caller owns ``body`` and must close it.
    """

    status: int
    body: BinaryIO
    headers: dict[str, str] = field(default_factory=dict)

    def close(self) -> None:
        self.body.close()


class BlobStore(ABC):
    """Object storage: bucket + object key (+ optional generation) → bytes."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The backend identifier (e.g., 'gcs', 'mock')."""

    @abstractmethod
    def open(self, bucket: str, obj: str, generation: int | None = None) -> BinaryIO:
        """Open an object for streaming reads.

        ``generation`` pins a specific object revision; ``None`` means
        the live version. Errors propagate as exceptions; the fetcher
        turns them into ``FetchFailed``.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class HttpClient(ABC):
    """Plain HTTP(S) GET."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The client identifier (e.g., 'urllib', 'mock')."""

    @abstractmethod
    def get(self, uri: str) -> HttpResponse:
        """Issue a GET and return the response, whatever its status.

        Transport-level failures (DNS, refused connection, TLS) raise.
        A non-200 status is returned, not raised; deciding what to do
        with it is the caller's job.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
