"""Embedding providers used by the indexing engine."""

import threading
from typing import Optional, Protocol, runtime_checkable

import numpy as np

from ..logging_config import get_logger
from .errors import EmbeddingError, EmbeddingModelError

logger = get_logger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding model providers.

    Implementations map text to a fixed-size, unit-length vector so the
    vector index can use squared Euclidean distance as a cosine proxy.
    """

    @property
    def dimension(self) -> int:
        """Return the embedding dimension."""
        ...

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        ...

    def load(self) -> None:
        """Load the model eagerly. Raises EmbeddingModelError on failure."""
        ...

    def embed(self, text: str) -> np.ndarray:
        """Embed one text. Returns a float32 array of shape (dimension,)."""
        ...


def normalize(vector) -> np.ndarray:
    """Return ``vector`` as a unit-length float32 array (zero vectors unchanged)."""
    array = np.asarray(vector, dtype=np.float32).reshape(-1)
    norm = float(np.linalg.norm(array))
    if norm == 0.0:
        return array
    return array / norm


class SentenceTransformerEmbedder:
    """Embedding provider using the sentence-transformers library.

    Uses all-MiniLM-L6-v2 by default:
    - Fast (runs on CPU)
    - 384-dimensional embeddings
    - Good for code and technical text
    """

    DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

    def __init__(self, model_name: str | None = None):
        self._model_name = model_name or self.DEFAULT_MODEL
        self._model = None
        self._lock = threading.Lock()

    @property
    def model(self):
        """Lazy-load the model on first access."""
        if self._model is None:
            self.load()
        return self._model

    @property
    def dimension(self) -> int:
        return self.model.get_sentence_embedding_dimension()

    @property
    def model_name(self) -> str:
        return self._model_name

    def load(self) -> None:
        with self._lock:
            if self._model is not None:
                return
            logger.info("Loading embedding model %s (first time only)...", self._model_name)
            try:
                from sentence_transformers import SentenceTransformer

                self._model = SentenceTransformer(self._model_name)
            except Exception as e:
                raise EmbeddingModelError(
                    f"Failed to load embedding model {self._model_name}: {e}"
                ) from e
            logger.info("Embedding model loaded")

    def embed(self, text: str) -> np.ndarray:
        try:
            embedding = self.model.encode(
                text,
                convert_to_numpy=True,
                normalize_embeddings=True,  # For cosine similarity
                show_progress_bar=False,
            )
        except EmbeddingModelError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e
        return np.asarray(embedding, dtype=np.float32).reshape(-1)


# Shared embedder instances, one per model name (loaded once)
_embedders: dict[str, SentenceTransformerEmbedder] = {}
_embedders_lock = threading.Lock()


def get_embedder(model_name: Optional[str] = None) -> SentenceTransformerEmbedder:
    """Get or create the shared embedder for ``model_name``.

    The returned instance is shared read-only by the write path (indexing)
    and the read path (queries).
    """
    name = model_name or SentenceTransformerEmbedder.DEFAULT_MODEL
    with _embedders_lock:
        if name not in _embedders:
            _embedders[name] = SentenceTransformerEmbedder(name)
        return _embedders[name]
