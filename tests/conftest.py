"""Pytest configuration and fixtures for index testing."""

import pytest

from ctxgraph.rag.indexer import IndexingManager
from ctxgraph.testing.fakes import HashingEmbedder, create_test_config, create_test_workspace


@pytest.fixture
def embedder():
    """Deterministic 64-dim bag-of-words embedder (no model download)."""
    return HashingEmbedder(dimension=64)


@pytest.fixture
def workspace(tmp_path):
    """Create a temporary workspace directory.

    Returns:
        Path to an empty workspace
    """
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def storage(tmp_path):
    """Directory holding the ``.indexing`` folder, outside the workspace."""
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def write_files(workspace):
    """Factory writing files into the workspace.

    Example:
        >>> def test_x(write_files):
        ...     write_files({"src/a.py": "def a(): pass"})
    """
    def _write(files):
        return create_test_workspace(workspace, files)
    return _write


@pytest.fixture
def manager_factory(workspace, storage, embedder):
    """Factory for initialized managers with synchronous builds and no observer.

    Every manager created is shut down at teardown.
    """
    managers = []

    def _factory(embedder_override=None, storage_path=None, **config_overrides):
        manager = IndexingManager(
            create_test_config(**config_overrides),
            embedder=embedder_override or embedder,
            watch=False,
        )
        manager.initialize(workspace, storage_path or storage, background=False)
        managers.append(manager)
        return manager

    yield _factory

    for manager in managers:
        manager.stop_watcher()
