"""Exceptions raised by the indexing and retrieval engine."""


class IndexingError(Exception):
    """Base class for indexing engine errors."""


class EmbeddingModelError(IndexingError):
    """The embedding model could not be loaded. Indexing is disabled."""


class EmbeddingError(IndexingError):
    """A single embedding call failed."""


class IndexLoadError(IndexingError):
    """A persisted index is missing, corrupt, or built for another configuration."""


class IndexCapacityError(IndexingError):
    """The vector index is full and was not resized before adding."""


class DuplicateLabelError(IndexingError):
    """A label was reused within one index generation."""


class ValidationError(IndexingError, ValueError):
    """Invalid input at the exposed boundary (query, k, paths)."""
