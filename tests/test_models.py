"""
Tests for recipe and ledger models.
"""

import pytest
from pydantic import ValidationError

from recipekit.core.models import (
    ArchiveExtraction,
    Artifact,
    FileExec,
    PackageFileInstallation,
    Recipe,
    RecipeLedgerEntry,
    ScriptRun,
)


class TestRecipe:
    def test_minimal_defaults(self):
        r = Recipe(name="tool")
        assert r.version == ""
        assert r.desired_state == "INSTALLED"
        assert r.artifacts == []
        assert r.dir_name == "tool"

    def test_dir_name_with_version(self):
        assert Recipe(name="tool", version="1.2").dir_name == "tool_1.2"

    def test_steps_discriminated_by_type(self):
        r = Recipe.model_validate({
            "name": "x",
            "artifacts": [{"id": "a", "uri": "gs://b/a.zip"}],
            "install_steps": [
                {"type": "archive_extraction", "artifact_id": "a", "destination": "/opt/x", "archive_type": "zip"},
                {"type": "package_installation", "artifact_id": "a", "kind": "dpkg"},
                {"type": "exec", "local_path": "/bin/true"},
                {"type": "script", "body": "echo hi"},
            ],
        })
        kinds = [type(s) for s in r.install_steps]
        assert kinds == [ArchiveExtraction, PackageFileInstallation, FileExec, ScriptRun]
        assert [s.label for s in r.install_steps] == [
            "ExtractArchive", "InstallDpkg", "ExecFile", "RunScript",
        ]

    def test_unknown_step_type(self):
        with pytest.raises(ValidationError):
            Recipe.model_validate({"name": "x", "install_steps": [{"type": "reboot"}]})

    def test_duplicate_artifact_ids(self):
        with pytest.raises(ValidationError, match="duplicate artifact id"):
            Recipe(name="x", artifacts=[Artifact(id="a", uri="gs://b/1"), Artifact(id="a", uri="gs://b/2")])

    def test_bad_desired_state(self):
        with pytest.raises(ValidationError):
            Recipe(name="x", desired_state="REMOVED")

    def test_frozen(self):
        r = Recipe(name="x")
        with pytest.raises(ValidationError):
            r.version = "2"

    def test_artifact_ids(self):
        r = Recipe(name="x", artifacts=[Artifact(id="a", uri="gs://b/1"), Artifact(id="b", uri="gs://b/2")])
        assert r.artifact_ids == {"a", "b"}

    @pytest.mark.parametrize("name", ["../../outside", "a/b", "..", ".", "a\\b", ""])
    def test_name_must_be_one_path_component(self, name: str):
        with pytest.raises(ValidationError, match="recipe name"):
            Recipe(name=name)

    @pytest.mark.parametrize("version", ["1/2", "..", "../../x"])
    def test_version_must_be_one_path_component(self, version: str):
        with pytest.raises(ValidationError, match="recipe version"):
            Recipe(name="tool", version=version)


class TestArtifact:
    def test_plain_id(self):
        assert Artifact(id="agent-1.2_x86", uri="gs://b/a").id == "agent-1.2_x86"

    @pytest.mark.parametrize("artifact_id", ["bin/tool", "../../../x", "..", "a\\b", ""])
    def test_id_must_be_one_path_component(self, artifact_id: str):
        with pytest.raises(ValidationError, match="artifact id"):
            Artifact(id=artifact_id, uri="gs://b/a")


class TestSteps:
    def test_exec_needs_exactly_one_location(self):
        with pytest.raises(ValidationError):
            FileExec()
        with pytest.raises(ValidationError):
            FileExec(local_path="/bin/true", artifact_id="a")

    def test_exec_default_exit_codes(self):
        assert FileExec(local_path="/bin/true").allowed_exit_codes == [0]

    def test_package_labels(self):
        assert PackageFileInstallation(artifact_id="a", kind="msi").label == "InstallMsi"
        assert PackageFileInstallation(artifact_id="a", kind="rpm").label == "InstallRpm"

    def test_package_bad_kind(self):
        with pytest.raises(ValidationError):
            PackageFileInstallation(artifact_id="a", kind="apk")

    def test_script_interpreter_default(self):
        assert ScriptRun(body="x").interpreter == "shell"


class TestLedgerEntry:
    def test_version_from_list(self):
        entry = RecipeLedgerEntry.model_validate({"name": "a", "version": [1, 2]})
        assert entry.version == (1, 2)
