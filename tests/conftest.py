"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from recipekit.adapters.mock import MockBlobStore, MockHttpClient, MockPackageInstaller
from recipekit.core.persistence.ledger_file import RecipeLedger
from recipekit.core.services.recipes.execution.fetcher import ArtifactFetcher
from recipekit.core.services.recipes.execution.step_executors import StepExecutor
from recipekit.core.services.recipes.orchestration.runner import RecipeRunner


@pytest.fixture
def blob_store() -> MockBlobStore:
    return MockBlobStore()


@pytest.fixture
def http_client() -> MockHttpClient:
    return MockHttpClient()


@pytest.fixture
def fetcher(blob_store: MockBlobStore, http_client: MockHttpClient) -> ArtifactFetcher:
    return ArtifactFetcher(blob_store, http_client)


@pytest.fixture
def package_installer() -> MockPackageInstaller:
    return MockPackageInstaller()


@pytest.fixture
def executor(package_installer: MockPackageInstaller) -> StepExecutor:
    return StepExecutor(package_installer=package_installer, windows=False)


@pytest.fixture
def ledger(tmp_path: Path) -> RecipeLedger:
    return RecipeLedger(tmp_path / "state" / "recipedb.json")


@pytest.fixture
def work_root(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture
def runner(
    ledger: RecipeLedger,
    fetcher: ArtifactFetcher,
    executor: StepExecutor,
    work_root: Path,
) -> RecipeRunner:
    return RecipeRunner(ledger=ledger, fetcher=fetcher, executor=executor, work_root=work_root)
