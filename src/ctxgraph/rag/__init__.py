"""Semantic workspace index and retrieval-augmented context for chat.

This module keeps an approximate nearest-neighbour index over chunked
workspace files in sync with the file system, and assembles token-budgeted
context snippets for a chat pipeline.
"""

from .catalog import Chunk, DocumentCatalog, DocumentEntry, IndexMetadata
from .chunker import chunk_text
from .embeddings import EmbeddingProvider, SentenceTransformerEmbedder, get_embedder
from .errors import (
    DuplicateLabelError,
    EmbeddingError,
    EmbeddingModelError,
    IndexCapacityError,
    IndexingError,
    IndexLoadError,
    ValidationError,
)
from .indexer import IndexingManager, IndexState, RetrievalResult
from .retriever import RAGContext, RAGOptions, RetrievalAssembler, estimate_tokens
from .scanner import scan_workspace
from .vector_index import VectorIndex

__all__ = [
    "Chunk",
    "DocumentCatalog",
    "DocumentEntry",
    "IndexMetadata",
    "chunk_text",
    "EmbeddingProvider",
    "SentenceTransformerEmbedder",
    "get_embedder",
    "DuplicateLabelError",
    "EmbeddingError",
    "EmbeddingModelError",
    "IndexCapacityError",
    "IndexingError",
    "IndexLoadError",
    "ValidationError",
    "IndexingManager",
    "IndexState",
    "RetrievalResult",
    "RAGContext",
    "RAGOptions",
    "RetrievalAssembler",
    "estimate_tokens",
    "scan_workspace",
    "VectorIndex",
]
