"""
Google Cloud Storage blob store — the default ``BlobStore``.

The storage client is created lazily on first use so that hosts that
only ever fetch over HTTP never need credentials.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, BinaryIO

from recipekit.adapters.base import BlobStore

if TYPE_CHECKING:
    from google.cloud import storage

logger = logging.getLogger(__name__)


class GCSBlobStore(BlobStore):
    """Read objects from GCS with ``google-cloud-storage``."""

    def __init__(self, client: storage.Client | None = None, project: str | None = None):
        self._client = client
        self._project = project

    @property
    def name(self) -> str:
        return "gcs"

    @property
    def client(self) -> Any:
        if self._client is None:
            from google.cloud import storage

            self._client = storage.Client(project=self._project)
        return self._client

    def open(self, bucket: str, obj: str, generation: int | None = None) -> BinaryIO:
        logger.debug("Opening gs://%s/%s (generation=%s)", bucket, obj, generation)
        blob = self.client.bucket(bucket).blob(obj, generation=generation)
        return blob.open("rb")
