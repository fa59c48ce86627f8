"""Shared test fixtures for storage, snapshots and classification."""

import os
import random

import pytest
from faker import Faker

from dirsummary.classify.file_types import FileClassification
from dirsummary.storage.manager import StorageManager
from dirsummary.testing.factories import (
    DirNodeFactory,
    NodeFactory,
    SnapshotFactory,
    snapshot_with_files,
)

SCENARIO_A_FILES = ["a/x.png", "a/y.png", "a/b/z.png", "c.txt"]


def extension_classifier(path: str) -> FileClassification:
    """Tiny classifier: .png and .txt only."""
    if path.endswith(".png"):
        return FileClassification("png", "PNG image")
    if path.endswith(".txt"):
        return FileClassification("text", "Text")
    return FileClassification("", "")


@pytest.fixture(scope="session", autouse=True)
def setup_factory_seed():
    """Configure factory_boy/Faker to use a deterministic seed for reproducibility.

    The seed can be set via FACTORY_SEED environment variable, or will be
    randomly generated. The seed is printed to stdout for reproducibility.
    """
    seed = os.environ.get("FACTORY_SEED")
    if seed:
        seed = int(seed)
    else:
        seed = random.randint(0, 2**32 - 1)

    print(f"\n{'=' * 70}")
    print(f"Factory seed: {seed}")
    print(f"To reproduce this test run, set: FACTORY_SEED={seed}")
    print(f"{'=' * 70}\n")

    Faker.seed(seed)
    random.seed(seed)

    return seed


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep logs and default storage of CLI runs inside tmp_path."""
    monkeypatch.setenv("DIRSUMMARY_BASE_PATH", str(tmp_path))


@pytest.fixture
def storage_manager(tmp_path):
    """Create a StorageManager with temporary databases."""
    return StorageManager(database_path=tmp_path / "data")


@pytest.fixture
def index_session(storage_manager):
    """Index session backed by StorageManager, with factories bound to it."""
    with storage_manager.get_index_session() as session:
        SnapshotFactory._meta.sqlalchemy_session = session  # type: ignore[misc]
        NodeFactory._meta.sqlalchemy_session = session  # type: ignore[misc]
        DirNodeFactory._meta.sqlalchemy_session = session  # type: ignore[misc]
        yield session


@pytest.fixture
def work_session(storage_manager):
    with storage_manager.get_work_session() as session:
        yield session


@pytest.fixture
def make_snapshot(index_session):
    """Commit a snapshot holding the given file paths and return it."""

    def make(file_paths: list[str], **kwargs):
        snapshot = snapshot_with_files(file_paths, **kwargs)
        index_session.commit()
        return snapshot

    return make


@pytest.fixture
def classify():
    return extension_classifier


@pytest.fixture
def scenario_snapshot(make_snapshot):
    """Snapshot holding the files {a/x.png, a/y.png, a/b/z.png, c.txt}."""
    return make_snapshot(SCENARIO_A_FILES)
