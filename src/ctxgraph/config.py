import copy
import json
import os
from dataclasses import asdict, dataclass, field, fields

from .logging_config import get_logger

logger = get_logger(__name__)
config: dict = None

DEFAULT_INDEXING = {
    "extensions": [".js", ".ts", ".tsx", ".jsx", ".py", ".md", ".json", ".css", ".html"],
    "chunk_size": 512,
    "chunk_overlap": 50,
    "ignore_dirs": [
        "node_modules",
        ".git",
        "dist",
        "build",
        ".next",
        "coverage",
        ".indexing",
        ".nografo",
    ],
    "embedding_model": "sentence-transformers/all-MiniLM-L6-v2",
    "embedding_dim": 384,
    "max_neighbors": 10,
    "initial_capacity": 10000,
    "hnsw_m": 16,
    "ef_construction": 200,
    "ef_search": 100,
    "debounce_seconds": 2.0,
    "max_file_size": 1_000_000,
    "compact_ratio": 0.5,
}

DEFAULT_RAG = {
    "k": 8,
    "min_score": 0.65,
    "max_tokens": 4000,
    "include_paths": True,
    "format": "detailed",
    "cache_ttl": 60.0,
    "cache_size": 50,
}


@dataclass
class IndexingConfig:
    """Typed view over the ``indexing`` config section."""

    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_INDEXING["extensions"]))
    chunk_size: int = 512
    chunk_overlap: int = 50
    ignore_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_INDEXING["ignore_dirs"]))
    embedding_model: str = DEFAULT_INDEXING["embedding_model"]
    embedding_dim: int = 384
    max_neighbors: int = 10
    initial_capacity: int = 10000
    hnsw_m: int = 16
    ef_construction: int = 200
    ef_search: int = 100
    debounce_seconds: float = 2.0
    max_file_size: int | None = 1_000_000
    compact_ratio: float | None = 0.5

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "IndexingConfig":
        """Build from a (possibly partial) dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})


def _initialise_config() -> dict:
    """Get application configuration.

    Loads configuration from a JSON file and also optionally from env vars
    """

    config = {
        "log_level": "INFO",
        "log_file": None,
        "indexing": copy.deepcopy(DEFAULT_INDEXING),
        "rag": copy.deepcopy(DEFAULT_RAG),
    }

    # Attempt to load config.json; allow missing files, only log if verbose
    try:
        with open("config.json", "r") as f:
            loaded = json.load(f)
        for section in ("indexing", "rag"):
            if isinstance(loaded.get(section), dict):
                config[section].update(loaded.pop(section))
        config.update(loaded)
    except Exception as e:
        logger.debug("Could not load config.json: %s (using defaults)", e)

    if os.getenv("CTXGRAPH_EMBEDDING_MODEL"):
        config["indexing"]["embedding_model"] = os.getenv("CTXGRAPH_EMBEDDING_MODEL")

    if os.getenv("CTXGRAPH_DEBOUNCE_SECONDS"):
        try:
            config["indexing"]["debounce_seconds"] = float(os.getenv("CTXGRAPH_DEBOUNCE_SECONDS"))
        except ValueError:
            logger.warning("Ignoring invalid CTXGRAPH_DEBOUNCE_SECONDS=%r", os.getenv("CTXGRAPH_DEBOUNCE_SECONDS"))

    if os.getenv("CTXGRAPH_LOG_LEVEL"):
        config["log_level"] = os.getenv("CTXGRAPH_LOG_LEVEL").upper()

    config["debug"] = config["log_level"] == "DEBUG"
    if os.getenv("CTXGRAPH_LOG_FILE") is not None:
        config["log_file"] = os.getenv("CTXGRAPH_LOG_FILE")

    return config


def get_indexing_config() -> IndexingConfig:
    """Return the ``indexing`` section as an :class:`IndexingConfig`."""
    return IndexingConfig.from_dict(config["indexing"])


config = _initialise_config()
