"""
Tests for the recipe runner — decide, fetch, execute, record.
"""

import hashlib
import sys
from pathlib import Path

import pytest
import yaml

from recipekit.core.models.recipe import (
    Artifact,
    FileCopy,
    FileExec,
    Recipe,
    ScriptRun,
)
from recipekit.core.services.recipes.domain.errors import (
    ArtifactNotFound,
    FetchFailed,
    InvalidVersion,
    SubprocessFailed,
)
from recipekit.core.services.recipes.orchestration.runner import RecipeRunner

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh")

CFG_URI = "https://example.com/files/app.conf"


def _copy_recipe(dest: Path, **kwargs) -> Recipe:
    fields = {
        "name": "app",
        "version": "1.0",
        "artifacts": [Artifact(id="cfg", uri=CFG_URI)],
        "install_steps": [FileCopy(artifact_id="cfg", destination=str(dest), overwrite=True)],
        "update_steps": [FileCopy(artifact_id="cfg", destination=str(dest), overwrite=True)],
    }
    fields.update(kwargs)
    return Recipe(**fields)


class TestInstall:
    def test_fresh_install_records(self, runner, ledger, http_client, tmp_path: Path):
        http_client.responses[CFG_URI] = b"v1"
        dest = tmp_path / "etc" / "app.conf"

        outcome = runner.apply(_copy_recipe(dest))

        assert outcome.action == "installed"
        assert outcome.changed is True
        assert outcome.steps_executed == 1
        assert dest.read_bytes() == b"v1"
        entry, found = ledger.lookup("app")
        assert found and entry.version == (1, 0)

    def test_installed_is_idempotent(self, runner, http_client, tmp_path: Path):
        http_client.responses[CFG_URI] = b"v1"
        recipe = _copy_recipe(tmp_path / "app.conf")
        runner.apply(recipe)

        outcome = runner.apply(recipe)

        assert outcome.action == "skipped"
        assert outcome.changed is False
        assert http_client.call_log == [CFG_URI]

    def test_installed_ignores_newer_version(self, runner, ledger, http_client, tmp_path: Path):
        http_client.responses[CFG_URI] = b"v1"
        runner.apply(_copy_recipe(tmp_path / "app.conf"))

        outcome = runner.apply(_copy_recipe(tmp_path / "app.conf", version="9.0"))

        assert outcome.action == "skipped"
        assert ledger.lookup("app")[0].version == (1, 0)

    def test_unversioned_records_zero(self, runner, ledger, http_client, tmp_path: Path):
        http_client.responses[CFG_URI] = b"v1"
        runner.apply(_copy_recipe(tmp_path / "app.conf", version=""))
        assert ledger.lookup("app")[0].version == (0,)

    def test_run_dir_removed_by_default(self, runner, http_client, work_root: Path, tmp_path: Path):
        http_client.responses[CFG_URI] = b"v1"
        runner.apply(_copy_recipe(tmp_path / "app.conf"))
        assert list(work_root.glob("*/run_*")) == []

    def test_empty_step_list_still_records(self, runner, ledger):
        outcome = runner.apply(Recipe(name="noop", version="1"))
        assert outcome.action == "installed"
        assert outcome.steps_executed == 0
        assert ledger.lookup("noop")[1] is True


class TestUpdate:
    def _install(self, runner, http_client, dest: Path) -> None:
        http_client.responses[CFG_URI] = b"v1"
        runner.apply(_copy_recipe(dest, desired_state="UPDATED"))

    def test_newer_version_runs_update_steps(self, runner, ledger, http_client, tmp_path: Path):
        dest = tmp_path / "app.conf"
        self._install(runner, http_client, dest)
        http_client.responses[CFG_URI] = b"v2"

        outcome = runner.apply(_copy_recipe(dest, version="1.10", desired_state="UPDATED"))

        assert outcome.action == "updated"
        assert dest.read_bytes() == b"v2"
        assert ledger.lookup("app")[0].version == (1, 10)

    @pytest.mark.parametrize("version", ["1.0", "1.0.0", "0.9", ""])
    def test_not_newer_is_skipped(self, runner, ledger, http_client, tmp_path: Path, version: str):
        dest = tmp_path / "app.conf"
        self._install(runner, http_client, dest)
        http_client.responses[CFG_URI] = b"v2"

        outcome = runner.apply(_copy_recipe(dest, version=version, desired_state="UPDATED"))

        assert outcome.action == "skipped"
        assert dest.read_bytes() == b"v1"
        assert ledger.lookup("app")[0].version == (1, 0)

    def test_update_uses_update_steps_only(self, runner, http_client, tmp_path: Path):
        dest = tmp_path / "app.conf"
        other = tmp_path / "install-only.conf"
        self._install(runner, http_client, dest)

        recipe = _copy_recipe(
            dest,
            version="2.0",
            desired_state="UPDATED",
            install_steps=[FileCopy(artifact_id="cfg", destination=str(other))],
        )
        runner.apply(recipe)

        assert not other.exists()


class TestFailures:
    def test_invalid_version_rejected_up_front(self, runner, http_client, ledger, tmp_path: Path):
        with pytest.raises(InvalidVersion) as exc:
            runner.apply(_copy_recipe(tmp_path / "x", version="1.2.3.4.5"))
        assert exc.value.stage == "Decide"
        assert http_client.call_log == []
        assert ledger.lookup("app")[1] is False

    def test_dangling_reference(self, runner, http_client, ledger, work_root: Path, tmp_path: Path):
        recipe = _copy_recipe(
            tmp_path / "x",
            install_steps=[FileCopy(artifact_id="ghost", destination=str(tmp_path / "x"))],
        )

        with pytest.raises(ArtifactNotFound) as exc:
            runner.apply(recipe)

        assert exc.value.stage == "Decide"
        assert exc.value.step_index == 0
        assert http_client.call_log == []
        assert not work_root.exists()
        assert ledger.lookup("app")[1] is False

    def test_fetch_failure(self, runner, ledger, tmp_path: Path):
        with pytest.raises(FetchFailed) as exc:
            runner.apply(_copy_recipe(tmp_path / "x"))

        err = exc.value
        assert err.stage == "Fetching"
        assert err.artifact_id == "cfg"
        assert err.recipe == "app"
        assert "Fetching" in str(err)
        assert not (tmp_path / "x").exists()
        assert ledger.lookup("app")[1] is False

    @posix_only
    def test_step_failure_stops_and_does_not_record(
        self, runner, ledger, http_client, work_root: Path, tmp_path: Path,
    ):
        http_client.responses[CFG_URI] = b"v1"
        dest = tmp_path / "app.conf"
        never = tmp_path / "never"
        recipe = _copy_recipe(
            dest,
            install_steps=[
                FileCopy(artifact_id="cfg", destination=str(dest)),
                ScriptRun(body="exit 1\n"),
                ScriptRun(body=f"touch {never}\n"),
            ],
        )

        with pytest.raises(SubprocessFailed) as exc:
            runner.apply(recipe)

        err = exc.value
        assert err.stage == "Executing"
        assert err.step_index == 1
        assert err.step_kind == "RunScript"
        # no rollback: step 0 stays applied
        assert dest.read_bytes() == b"v1"
        assert not never.exists()
        assert ledger.lookup("app")[1] is False
        assert list(work_root.glob("*/run_*")) == []

    @posix_only
    def test_failed_run_is_retried_in_full(self, runner, ledger, http_client, tmp_path: Path):
        http_client.responses[CFG_URI] = b"v1"
        flag = tmp_path / "ok"
        recipe = _copy_recipe(
            tmp_path / "app.conf",
            install_steps=[ScriptRun(body=f'[ -f "{flag}" ] || exit 1\n')],
        )
        with pytest.raises(SubprocessFailed):
            runner.apply(recipe)

        flag.write_text("")
        assert runner.apply(recipe).action == "installed"
        assert ledger.lookup("app")[1] is True


@posix_only
class TestEndToEnd:
    def test_exec_artifact_with_checksum(self, runner, ledger, http_client, tmp_path: Path):
        out = tmp_path / "out.txt"
        body = f'#!/bin/sh\necho "$@" > "{out}"\n'.encode()
        uri = "https://example.com/tool.sh"
        http_client.responses[uri] = body
        recipe = Recipe(
            name="demo",
            version="1.0",
            artifacts=[Artifact(id="tool", uri=uri, checksum=hashlib.sha256(body).hexdigest())],
            install_steps=[FileExec(artifact_id="tool", args=["--flag"])],
        )

        outcome = runner.apply(recipe)

        assert outcome.action == "installed"
        assert out.read_text().strip() == "--flag"
        assert ledger.lookup("demo")[0].version == (1, 0)

    def test_run_environment(self, runner, http_client, tmp_path: Path):
        out = tmp_path / "env.txt"
        http_client.responses[CFG_URI] = b"v1"
        recipe = _copy_recipe(
            tmp_path / "app.conf",
            install_steps=[ScriptRun(
                body=f'echo "$RECIPE_NAME|$RECIPE_VERSION|$RUNID" > "{out}"\nread -r line < "$cfg" || true\necho "$line" >> "{out}"\n',
            )],
        )

        outcome = runner.apply(recipe)

        first, second = out.read_text().splitlines()
        assert first == f"app|1.0|{outcome.run_id}"
        assert second == "v1"

    def test_layout_when_kept(self, ledger, fetcher, executor, http_client, work_root: Path, tmp_path: Path):
        runner = RecipeRunner(
            ledger=ledger, fetcher=fetcher, executor=executor,
            work_root=work_root, keep_run_dirs=True, clock=lambda: 1000,
        )
        http_client.responses[CFG_URI] = b"v1"
        recipe = _copy_recipe(
            tmp_path / "app.conf",
            install_steps=[
                FileCopy(artifact_id="cfg", destination=str(tmp_path / "app.conf")),
                ScriptRun(body="true\n"),
            ],
        )

        outcome = runner.apply(recipe)

        base = work_root / "app_1.0" / "run_1000"
        assert outcome.run_id == "run_1000"
        assert outcome.run_dir == str(base)
        assert (base / "artifacts" / "cfg.conf").read_bytes() == b"v1"
        assert (base / "step00_CopyFile").is_dir()
        assert (base / "step01_RunScript" / "recipe_script_source").is_file()
        snapshot = yaml.safe_load((base / "recipe.yaml").read_text())
        assert snapshot["name"] == "app"

    def test_run_ids_unique_with_frozen_clock(self, ledger, fetcher, executor, work_root: Path):
        runner = RecipeRunner(
            ledger=ledger, fetcher=fetcher, executor=executor,
            work_root=work_root, keep_run_dirs=True, clock=lambda: 5,
        )
        first = runner.apply(Recipe(name="a"))
        second = runner.apply(Recipe(name="b"))
        assert first.run_id == "run_5"
        assert second.run_id == "run_6"
