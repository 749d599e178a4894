"""
Tests for the recipe ledger — durable name → version store.
"""

import json
import threading
from pathlib import Path

import pytest

from recipekit.core.persistence.ledger_file import RecipeLedger, default_ledger_path
from recipekit.core.services.recipes.domain.errors import InvalidVersion, LedgerIOError


class TestRecipeLedger:
    """Tests for RecipeLedger lookup/record."""

    def test_missing_file_is_empty(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        assert ledger.lookup("nginx") == (None, False)
        assert ledger.entries() == []

    def test_record_and_lookup(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        ledger.record("nginx", "1.2.3")

        entry, found = ledger.lookup("nginx")
        assert found is True
        assert entry.version == (1, 2, 3)
        assert entry.success is True
        assert entry.install_time_unix_nanos > 0

    def test_record_replaces(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        ledger.record("nginx", "1.0")
        ledger.record("nginx", "2.0")
        assert ledger.lookup("nginx")[0].version == (2, 0)
        assert len(ledger.entries()) == 1

    def test_unversioned_records_zero(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        ledger.record("tool", "")
        assert ledger.lookup("tool")[0].version == (0,)

    def test_invalid_version_not_recorded(self, tmp_path: Path):
        path = tmp_path / "recipedb.json"
        ledger = RecipeLedger(path)
        with pytest.raises(InvalidVersion):
            ledger.record("nginx", "1.x")
        assert not path.exists()

    def test_persists_across_instances(self, tmp_path: Path):
        path = tmp_path / "nested" / "recipedb.json"
        RecipeLedger(path).record("nginx", "1.2")
        assert RecipeLedger(path).lookup("nginx")[0].version == (1, 2)

    def test_file_is_json(self, tmp_path: Path):
        path = tmp_path / "recipedb.json"
        RecipeLedger(path).record("nginx", "1.2")
        data = json.loads(path.read_text())
        assert data["schema_version"] == 1
        assert data["recipes"]["nginx"]["version"] == [1, 2]

    def test_entries_sorted(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        for name in ("zeta", "alpha", "mid"):
            ledger.record(name, "1")
        assert [e.name for e in ledger.entries()] == ["alpha", "mid", "zeta"]

    def test_no_temp_files_left(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        ledger.record("a", "1")
        ledger.record("b", "1")
        assert list(tmp_path.glob(".recipedb_*.tmp")) == []

    def test_corrupt_file_raises(self, tmp_path: Path):
        path = tmp_path / "recipedb.json"
        path.write_text("not json {{{")
        with pytest.raises(LedgerIOError, match="corrupt"):
            RecipeLedger(path).lookup("nginx")

    def test_wrong_shape_raises(self, tmp_path: Path):
        path = tmp_path / "recipedb.json"
        path.write_text(json.dumps({"recipes": {"a": {"name": "a", "version": "one"}}}))
        with pytest.raises(LedgerIOError):
            RecipeLedger(path).entries()

    def test_concurrent_records_keep_all_names(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        threads = [
            threading.Thread(target=ledger.record, args=(f"r{i}", f"{i}.0"))
            for i in range(10)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(ledger.entries()) == 10

    def test_locks_are_per_name(self, tmp_path: Path):
        ledger = RecipeLedger(tmp_path / "recipedb.json")
        with ledger.lock("a"):
            with ledger.lock("b"):
                pass

    def test_default_path(self):
        assert default_ledger_path().name == "recipedb.json"
