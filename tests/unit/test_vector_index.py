"""Unit tests for the HNSW vector index wrapper."""

import numpy as np
import pytest

from ctxgraph.rag.errors import DuplicateLabelError, IndexCapacityError, IndexLoadError
from ctxgraph.rag.vector_index import VectorIndex

DIM = 8


def unit(*components):
    vector = np.zeros(DIM, dtype=np.float32)
    vector[: len(components)] = components
    return vector / np.linalg.norm(vector)


@pytest.fixture
def index():
    return VectorIndex.create(DIM, capacity=100)


class TestAddAndSearch:
    """Test add/search contract."""

    def test_empty_index_returns_no_results(self, index):
        assert index.search(unit(1), 5) == []

    def test_results_sorted_by_distance(self, index):
        index.add(unit(1, 0), 10)
        index.add(unit(1, 1), 20)
        index.add(unit(0, 1), 30)

        results = index.search(unit(1, 0), 3)

        assert [label for label, _ in results] == [10, 20, 30]
        distances = [d for _, d in results]
        assert distances == sorted(distances)
        assert distances[0] == pytest.approx(0.0, abs=1e-5)

    def test_squared_l2_distance(self, index):
        index.add(unit(0, 1), 1)
        (_, distance), = index.search(unit(1, 0), 1)
        # Orthogonal unit vectors: |a - b|^2 == 2
        assert distance == pytest.approx(2.0, abs=1e-4)

    def test_k_larger_than_count(self, index):
        index.add(unit(1), 1)
        assert len(index.search(unit(1), 50)) == 1

    def test_non_positive_k(self, index):
        index.add(unit(1), 1)
        assert index.search(unit(1), 0) == []

    def test_duplicate_label_rejected(self, index):
        index.add(unit(1), 7)
        with pytest.raises(DuplicateLabelError):
            index.add(unit(0, 1), 7)
        assert index.count == 1

    def test_negative_label_rejected(self, index):
        with pytest.raises(ValueError):
            index.add(unit(1), -1)

    def test_dimension_mismatch_rejected(self, index):
        with pytest.raises(ValueError):
            index.add(np.ones(DIM + 1, dtype=np.float32), 1)

    def test_contains_and_labels(self, index):
        index.add(unit(1), 3)
        index.add(unit(0, 1), 4)
        assert index.contains(3)
        assert not index.contains(5)
        assert index.labels() == {3, 4}
        assert len(index) == 2


class TestCapacity:
    """Test capacity limit and resize."""

    def test_full_index_rejects_add(self):
        index = VectorIndex.create(DIM, capacity=2)
        index.add(unit(1), 0)
        index.add(unit(0, 1), 1)
        assert index.is_full
        with pytest.raises(IndexCapacityError):
            index.add(unit(1, 1), 2)

    def test_resize_allows_more(self):
        index = VectorIndex.create(DIM, capacity=1)
        index.add(unit(1), 0)
        index.resize(4)
        index.add(unit(0, 1), 1)
        assert index.capacity == 4
        assert index.count == 2

    def test_resize_below_count_rejected(self):
        index = VectorIndex.create(DIM, capacity=4)
        index.add(unit(1), 0)
        index.add(unit(0, 1), 1)
        with pytest.raises(ValueError):
            index.resize(1)

    @pytest.mark.parametrize("dimension,capacity", [(0, 10), (8, 0)])
    def test_create_rejects_invalid_sizes(self, dimension, capacity):
        with pytest.raises(ValueError):
            VectorIndex.create(dimension, capacity=capacity)


class TestPersistence:
    """Test save/load contract."""

    def test_round_trip_preserves_labels_and_search(self, index, tmp_path):
        index.add(unit(1, 0), 5)
        index.add(unit(0, 1), 9)
        path = tmp_path / "index.bin"
        index.save(path)

        loaded = VectorIndex.load(path, DIM)

        assert loaded.labels() == {5, 9}
        assert loaded.search(unit(0, 1), 1)[0][0] == 9
        assert not (tmp_path / "index.bin.tmp").exists()

    def test_loaded_index_rejects_existing_label(self, index, tmp_path):
        index.add(unit(1), 5)
        index.save(tmp_path / "index.bin")
        loaded = VectorIndex.load(tmp_path / "index.bin", DIM)
        with pytest.raises(DuplicateLabelError):
            loaded.add(unit(0, 1), 5)

    def test_load_capacity_at_least_count(self, tmp_path):
        index = VectorIndex.create(DIM, capacity=3)
        for label in range(3):
            index.add(unit(1, label), label)
        index.save(tmp_path / "index.bin")

        loaded = VectorIndex.load(tmp_path / "index.bin", DIM, capacity=1)
        assert loaded.capacity == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(IndexLoadError):
            VectorIndex.load(tmp_path / "nope.bin", DIM)

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "index.bin"
        path.write_bytes(b"this is not an index")
        with pytest.raises(IndexLoadError):
            VectorIndex.load(path, DIM)

    def test_dimension_mismatch(self, index, tmp_path):
        index.add(unit(1), 1)
        index.save(tmp_path / "index.bin")
        with pytest.raises(IndexLoadError):
            VectorIndex.load(tmp_path / "index.bin", DIM * 2)


class TestRebuilt:
    """Test compaction into a new index."""

    def test_keeps_only_requested_labels(self, index):
        index.add(unit(1, 0), 1)
        index.add(unit(0, 1), 2)
        index.add(unit(1, 1), 3)

        compacted = index.rebuilt([1, 3])

        assert compacted.labels() == {1, 3}
        assert index.labels() == {1, 2, 3}
        assert compacted.search(unit(1, 1), 1)[0][0] == 3

    def test_ignores_unknown_labels(self, index):
        index.add(unit(1), 1)
        assert index.rebuilt([1, 99]).labels() == {1}

    def test_reconstruct_returns_stored_vector(self, index):
        vector = unit(3, 4)
        index.add(vector, 42)
        np.testing.assert_allclose(index.reconstruct(42), vector, atol=1e-6)
