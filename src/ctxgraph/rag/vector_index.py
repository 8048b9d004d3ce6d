"""Approximate nearest-neighbour index over fixed-size vectors.

Wraps a faiss HNSW graph (squared L2 distance) in an ID map so callers pick
the integer label of every vector. Over unit-length vectors squared L2 is
monotonic with cosine distance. HNSW search is approximate: the exact top-k
is not guaranteed.

The structure has no delete. Deleting is done by the owner at the catalog
level and the index is compacted with :meth:`VectorIndex.rebuilt`.
"""

import os
import threading
from pathlib import Path
from typing import Iterable

import faiss
import numpy as np

from ..logging_config import get_logger
from .errors import DuplicateLabelError, IndexCapacityError, IndexLoadError

logger = get_logger(__name__)

DEFAULT_CAPACITY = 10000


class VectorIndex:
    """Label-addressed HNSW index with binary persistence."""

    def __init__(
        self,
        index,
        dimension: int,
        capacity: int,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 100,
    ):
        self._index = index
        self._dimension = dimension
        self._capacity = capacity
        self._m = m
        self._ef_construction = ef_construction
        self._ef_search = ef_search
        self._lock = threading.Lock()
        self._labels: set[int] = set(int(x) for x in faiss.vector_to_array(index.id_map))
        faiss.downcast_index(index.index).hnsw.efSearch = ef_search

    @classmethod
    def create(
        cls,
        dimension: int,
        capacity: int = DEFAULT_CAPACITY,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 100,
    ) -> "VectorIndex":
        """Allocate a fresh, empty index.

        Args:
            dimension: Vector dimension
            capacity: Maximum number of vectors before :meth:`resize` is required
            m: HNSW graph degree
            ef_construction: HNSW build-time candidate list size
            ef_search: HNSW query-time candidate list size
        """
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        hnsw = faiss.IndexHNSWFlat(dimension, m)
        hnsw.hnsw.efConstruction = ef_construction
        index = faiss.IndexIDMap2(hnsw)
        return cls(index, dimension, capacity, m, ef_construction, ef_search)

    @classmethod
    def load(
        cls,
        path: Path | str,
        dimension: int,
        capacity: int = DEFAULT_CAPACITY,
        ef_search: int = 100,
    ) -> "VectorIndex":
        """Load an index written by :meth:`save`.

        Raises:
            IndexLoadError: File missing, unreadable, of another index type,
                or built with a different dimension.
        """
        path = Path(path)
        if not path.is_file():
            raise IndexLoadError(f"Index file not found: {path}")
        try:
            index = faiss.downcast_index(faiss.read_index(str(path)))
        except RuntimeError as e:
            raise IndexLoadError(f"Corrupt index file {path}: {e}") from e

        if not isinstance(index, faiss.IndexIDMap2):
            raise IndexLoadError(f"Unexpected index type in {path}: {type(index).__name__}")
        hnsw = faiss.downcast_index(index.index)
        if not isinstance(hnsw, faiss.IndexHNSWFlat):
            raise IndexLoadError(f"Unexpected index type in {path}: {type(hnsw).__name__}")
        if index.d != dimension:
            raise IndexLoadError(
                f"Index dimension mismatch in {path}: expected {dimension}, found {index.d}"
            )

        capacity = max(capacity, int(index.ntotal))
        return cls(
            index,
            dimension,
            capacity,
            m=hnsw.hnsw.nb_neighbors(1),
            ef_construction=hnsw.hnsw.efConstruction,
            ef_search=ef_search,
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def count(self) -> int:
        return int(self._index.ntotal)

    @property
    def is_full(self) -> bool:
        return self.count >= self._capacity

    def __len__(self) -> int:
        return self.count

    def contains(self, label: int) -> bool:
        return int(label) in self._labels

    def labels(self) -> set[int]:
        """Return a copy of every label stored in the index."""
        with self._lock:
            return set(self._labels)

    def resize(self, new_capacity: int) -> None:
        """Grow the capacity. Shrinking below the current count is rejected."""
        with self._lock:
            if new_capacity < self.count:
                raise ValueError(
                    f"Cannot resize to {new_capacity}: index holds {self.count} vectors"
                )
            logger.debug("Resizing vector index %s -> %s", self._capacity, new_capacity)
            self._capacity = new_capacity

    def _as_matrix(self, vector) -> np.ndarray:
        array = np.ascontiguousarray(np.asarray(vector, dtype=np.float32).reshape(1, -1))
        if array.shape[1] != self._dimension:
            raise ValueError(
                f"Vector dimension mismatch: expected {self._dimension}, got {array.shape[1]}"
            )
        return array

    def add(self, vector, label: int) -> None:
        """Insert ``vector`` under ``label``.

        Raises:
            DuplicateLabelError: The label is already used in this index.
            IndexCapacityError: The index is full.
        """
        matrix = self._as_matrix(vector)
        label = int(label)
        if label < 0:
            raise ValueError("label must not be negative")
        with self._lock:
            if label in self._labels:
                raise DuplicateLabelError(f"Label {label} already exists in the index")
            if self.count >= self._capacity:
                raise IndexCapacityError(
                    f"Vector index is full ({self._capacity} vectors); resize before adding"
                )
            self._index.add_with_ids(matrix, np.asarray([label], dtype=np.int64))
            self._labels.add(label)

    def search(self, query, k: int) -> list[tuple[int, float]]:
        """Return up to ``k`` (label, squared distance) pairs, closest first."""
        if k <= 0:
            return []
        matrix = self._as_matrix(query)
        with self._lock:
            if self.count == 0:
                return []
            distances, labels = self._index.search(matrix, min(k, self.count))

        results = []
        for label, distance in zip(labels[0], distances[0]):
            if label < 0:
                continue
            results.append((int(label), float(distance)))
        results.sort(key=lambda item: item[1])
        return results

    def reconstruct(self, label: int) -> np.ndarray:
        """Return the stored vector for ``label``."""
        with self._lock:
            return self._index.reconstruct(int(label))

    def rebuilt(self, keep_labels: Iterable[int]) -> "VectorIndex":
        """Return a new index holding only ``keep_labels``.

        The current index is left untouched so readers can keep using it
        until the caller swaps the new one in.
        """
        keep = sorted(int(label) for label in keep_labels if self.contains(label))
        fresh = VectorIndex.create(
            self._dimension,
            capacity=max(self._capacity, len(keep)),
            m=self._m,
            ef_construction=self._ef_construction,
            ef_search=self._ef_search,
        )
        for label in keep:
            fresh.add(self.reconstruct(label), label)
        return fresh

    def save(self, path: Path | str) -> None:
        """Write the index to ``path`` atomically."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        with self._lock:
            faiss.write_index(self._index, str(tmp_path))
        os.replace(tmp_path, path)
