"""
Recipe ledger persistence — which recipes are applied, at what version.

The ledger is a JSON document keyed by recipe name. It is the only
durable state the engine owns. Writes are atomic (write to temp
file, then rename) so a crash mid-write leaves the previous ledger
intact.

Unlike disposable state, a corrupt ledger is NOT silently reset:
starting fresh would re-run every recipe on the host.
"""

from __future__ import annotations

import json
import logging
import platform
import tempfile
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from recipekit.core.models.ledger import RecipeLedgerEntry, RecipeLedgerState
from recipekit.core.services.recipes.domain.errors import LedgerIOError
from recipekit.core.services.recipes.domain.version import parse_version

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_DIR_UNIX = "/var/lib/recipekit"
DEFAULT_LEDGER_DIR_WINDOWS = "C:\\ProgramData\\recipekit"
DEFAULT_LEDGER_FILE = "recipedb.json"


def default_ledger_path() -> Path:
    """Platform default location of the recipe database."""
    if platform.system() == "Windows":
        return Path(DEFAULT_LEDGER_DIR_WINDOWS) / DEFAULT_LEDGER_FILE
    return Path(DEFAULT_LEDGER_DIR_UNIX) / DEFAULT_LEDGER_FILE


class RecipeLedger:
    """Durable name → last-successful-application store.

    One entry per recipe name; recording a name replaces its previous
    entry. ``lock(name)`` serializes whole applications of the same
    recipe within this process, and every write re-reads the file
    under a store-wide lock so records for different names never
    clobber each other.
    """

    def __init__(self, path: Path | None = None):
        self._path = path if path is not None else default_ledger_path()
        self._store_lock = threading.Lock()
        self._name_locks: dict[str, threading.Lock] = {}
        self._name_locks_guard = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ── Queries ────────────────────────────────────────────────

    def lookup(self, name: str) -> tuple[RecipeLedgerEntry | None, bool]:
        """Return ``(entry, True)`` for a recorded name, else ``(None, False)``."""
        entry = self._load().recipes.get(name)
        return entry, entry is not None

    def entries(self) -> list[RecipeLedgerEntry]:
        """All entries, sorted by name."""
        state = self._load()
        return [state.recipes[k] for k in sorted(state.recipes)]

    # ── Mutations ──────────────────────────────────────────────

    def record(self, name: str, version: str, success: bool = True) -> RecipeLedgerEntry:
        """Mark ``name`` as applied at ``version``, replacing any prior entry.

        Raises:
            InvalidVersion: ``version`` is not a valid dotted version.
            LedgerIOError: the ledger cannot be read or written.
        """
        entry = RecipeLedgerEntry(
            name=name,
            version=parse_version(version),
            install_time_unix_nanos=time.time_ns(),
            success=success,
        )
        with self._store_lock:
            state = self._load()
            state.recipes[name] = entry
            self._save(state)
        logger.debug("Recorded recipe %s at version %s in %s", name, version, self._path)
        return entry

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """Hold the per-name lock for the duration of the block."""
        with self._name_locks_guard:
            lk = self._name_locks.setdefault(name, threading.Lock())
        with lk:
            yield

    # ── Storage ────────────────────────────────────────────────

    def _load(self) -> RecipeLedgerState:
        if not self._path.is_file():
            return RecipeLedgerState()
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise LedgerIOError(f"cannot read ledger {self._path}: {e}") from e
        try:
            return RecipeLedgerState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise LedgerIOError(f"corrupt ledger {self._path}: {e}") from e

    def _save(self, state: RecipeLedgerState) -> None:
        data = state.model_dump(mode="json")
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            _fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".recipedb_",
                suffix=".tmp",
            )
            tmp = Path(tmp_path)
            try:
                with open(_fd, "w", encoding="utf-8") as f:
                    f.write(content)
                tmp.replace(self._path)
            except BaseException:
                tmp.unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to save ledger to %s: %s", self._path, e)
            raise LedgerIOError(f"cannot write ledger {self._path}: {e}") from e
