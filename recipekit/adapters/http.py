"""
urllib HTTP client — the default ``HttpClient``.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request

from recipekit import __version__
from recipekit.adapters.base import HttpClient, HttpResponse

logger = logging.getLogger(__name__)


class UrllibHttpClient(HttpClient):
    """GET over ``urllib.request``.

    ``urlopen`` raises ``HTTPError`` for non-2xx statuses; the error
    object is itself a readable response, so it is returned as one.
    """

    def __init__(self, timeout: int = 60, user_agent: str | None = None):
        self._timeout = timeout
        self._user_agent = user_agent or f"recipekit/{__version__}"

    @property
    def name(self) -> str:
        return "urllib"

    def get(self, uri: str) -> HttpResponse:
        req = urllib.request.Request(uri, headers={"User-Agent": self._user_agent})
        logger.debug("GET %s", uri)
        try:
            resp = urllib.request.urlopen(req, timeout=self._timeout)
        except urllib.error.HTTPError as e:
            return HttpResponse(status=e.code, body=e, headers=dict(e.headers or {}))
        return HttpResponse(
            status=resp.getcode(),
            body=resp,
            headers=dict(resp.headers),
        )
