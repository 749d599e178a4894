"""
Mock adapters — in-memory backends for tests.

Every call is recorded in ``call_log`` so tests can assert on what
the fetcher or executor actually asked for.
"""

from __future__ import annotations

import io
from typing import Any, BinaryIO

from recipekit.adapters.base import BlobStore, HttpClient, HttpResponse
from recipekit.core.services.recipes.execution.package_tool import PackageInstaller


class MockBlobStore(BlobStore):
    """Serve objects from a ``{(bucket, obj): bytes}`` mapping.

    Missing objects raise ``FileNotFoundError``, like a 404 from the
    real store.
    """

    def __init__(self, objects: dict[tuple[str, str], bytes] | None = None):
        self.objects: dict[tuple[str, str], bytes] = dict(objects or {})
        self.call_log: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "mock"

    def put(self, bucket: str, obj: str, data: bytes) -> None:
        self.objects[(bucket, obj)] = data

    def open(self, bucket: str, obj: str, generation: int | None = None) -> BinaryIO:
        self.call_log.append({"bucket": bucket, "obj": obj, "generation": generation})
        try:
            return io.BytesIO(self.objects[(bucket, obj)])
        except KeyError:
            raise FileNotFoundError(f"no such object: gs://{bucket}/{obj}") from None


class MockHttpClient(HttpClient):
    """Serve canned responses keyed by URI.

    Unknown URIs get a 404. Values may be bytes (served with 200) or
    a ``(status, bytes)`` tuple. An ``Exception`` value is raised, to
    simulate a transport failure.
    """

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses: dict[str, Any] = dict(responses or {})
        self.call_log: list[str] = []

    @property
    def name(self) -> str:
        return "mock"

    def get(self, uri: str) -> HttpResponse:
        self.call_log.append(uri)
        value = self.responses.get(uri, (404, b"not found"))
        if isinstance(value, Exception):
            raise value
        if isinstance(value, tuple):
            status, body = value
        else:
            status, body = 200, value
        return HttpResponse(status=status, body=io.BytesIO(body))


class MockPackageInstaller(PackageInstaller):
    """Record package installs instead of invoking dpkg, rpm or msiexec.

    Commands are still built by the real ``build_command`` so tests
    see the exact argv that would run.
    """

    def __init__(self, windows: bool = False):
        super().__init__(windows=windows)
        self.call_log: list[dict[str, Any]] = []

    def install(
        self,
        kind: str,
        path: str,
        *,
        flags=(),
        allowed_exit_codes=(),
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        cmd = self.build_command(kind, path, flags=flags)
        self.call_log.append({
            "kind": kind,
            "cmd": cmd,
            "allowed_exit_codes": list(allowed_exit_codes),
            "cwd": cwd,
        })
        return {"ok": True, "returncode": 0, "stdout": "", "stderr": "", "elapsed_ms": 0}
