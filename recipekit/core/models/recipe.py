"""
Recipe model — the declarative unit of desired software state.

A recipe names remote artifacts and the ordered steps that turn them
into installed software. Recipes are frozen: re-applying one means
constructing a fresh value, never editing an existing one.

Steps are a closed set of variants discriminated by ``type``::

    {"type": "file_copy", "artifact_id": "cfg", "destination": "/etc/x"}
    {"type": "exec", "artifact_id": "installer", "args": ["--quiet"]}
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _path_component(value: str, what: str) -> str:
    """Reject values that cannot be used as a single path component."""
    if not value:
        raise ValueError(f"{what} cannot be empty")
    if value in (".", "..") or "/" in value or "\\" in value or "\0" in value:
        raise ValueError(f"{what} {value!r} must not contain path separators or be . or ..")
    return value


class Artifact(BaseModel):
    """A remote file, fetched once per application and referenced by id."""

    model_config = ConfigDict(frozen=True)

    id: str
    uri: str
    checksum: str = ""              # hex SHA-256, empty = unchecked
    allow_insecure: bool = False    # advisory only

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Artifact ids name the downloaded file."""
        return _path_component(v, "artifact id")


class FileCopy(BaseModel):
    """Copy an artifact to a fixed location on the host."""

    model_config = ConfigDict(frozen=True)

    type: Literal["file_copy"] = "file_copy"
    artifact_id: str
    destination: str
    overwrite: bool = False
    permissions: str = ""           # octal string, empty = 0755

    @property
    def label(self) -> str:
        return "CopyFile"


class ArchiveExtraction(BaseModel):
    """Unpack an archive artifact into a destination directory."""

    model_config = ConfigDict(frozen=True)

    type: Literal["archive_extraction"] = "archive_extraction"
    artifact_id: str
    destination: str
    # zip, tar, tar.gz, tar.bz2, tar.lzma, tar.xz; checked at execution time
    archive_type: str = ""

    @property
    def label(self) -> str:
        return "ExtractArchive"


class PackageFileInstallation(BaseModel):
    """Install a package file with the platform package tool."""

    model_config = ConfigDict(frozen=True)

    type: Literal["package_installation"] = "package_installation"
    artifact_id: str
    kind: Literal["msi", "dpkg", "rpm"]
    flags: list[str] = Field(default_factory=list)              # msi only
    allowed_exit_codes: list[int] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return {"msi": "InstallMsi", "dpkg": "InstallDpkg", "rpm": "InstallRpm"}[self.kind]


class FileExec(BaseModel):
    """Run an executable, given either as a local path or an artifact id."""

    model_config = ConfigDict(frozen=True)

    type: Literal["exec"] = "exec"
    local_path: str = ""
    artifact_id: str = ""
    args: list[str] = Field(default_factory=list)
    allowed_exit_codes: list[int] = Field(default_factory=lambda: [0])

    @model_validator(mode="after")
    def _one_location(self) -> FileExec:
        if bool(self.local_path) == bool(self.artifact_id):
            raise ValueError("exactly one of 'local_path' or 'artifact_id' must be set")
        return self

    @property
    def label(self) -> str:
        return "ExecFile"


class ScriptRun(BaseModel):
    """Write an inline script to disk and run it through an interpreter."""

    model_config = ConfigDict(frozen=True)

    type: Literal["script"] = "script"
    body: str
    args: list[str] = Field(default_factory=list)
    interpreter: Literal["none", "shell", "powershell"] = "shell"
    allowed_exit_codes: list[int] = Field(default_factory=lambda: [0])

    @property
    def label(self) -> str:
        return "RunScript"


Step = Annotated[
    Union[FileCopy, ArchiveExtraction, PackageFileInstallation, FileExec, ScriptRun],
    Field(discriminator="type"),
]


class Recipe(BaseModel):
    """Desired software state: artifacts plus install and update steps.

    ``desired_state`` decides what happens when the ledger already has
    an entry for ``name``: ``INSTALLED`` recipes are applied at most
    once, ``UPDATED`` recipes re-run ``update_steps`` whenever a
    strictly newer ``version`` arrives.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str = ""
    desired_state: Literal["INSTALLED", "UPDATED"] = "INSTALLED"
    artifacts: list[Artifact] = Field(default_factory=list)
    install_steps: list[Step] = Field(default_factory=list)
    update_steps: list[Step] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Recipe names become the run directory name."""
        return _path_component(v, "recipe name")

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if v:
            _path_component(v, "recipe version")
        return v

    @model_validator(mode="after")
    def _unique_artifact_ids(self) -> Recipe:
        seen: set[str] = set()
        for artifact in self.artifacts:
            if artifact.id in seen:
                raise ValueError(f"duplicate artifact id {artifact.id!r}")
            seen.add(artifact.id)
        return self

    @property
    def artifact_ids(self) -> set[str]:
        """Ids of every declared artifact."""
        return {a.id for a in self.artifacts}

    @property
    def dir_name(self) -> str:
        """``name`` or ``name_version``, the run directory's parent."""
        return f"{self.name}_{self.version}" if self.version else self.name
