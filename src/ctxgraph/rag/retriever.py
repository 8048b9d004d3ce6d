"""Retrieval-augmented context assembly for the chat pipeline.

Turns a user query into a token-budgeted block of workspace snippets:
similarity search, score threshold, stable ranking, greedy packing into the
budget, and grouping by source file. Results are cached per query and
options for a short TTL.
"""

import json
import math
import time
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as OptionsValidationError

from ..config import config
from ..logging_config import get_logger
from .indexer import IndexingManager, IndexState, RetrievalResult

logger = get_logger(__name__)

ContextFormat = Literal["compact", "detailed", "code-only"]


def estimate_tokens(text: str) -> int:
    """Rough token count (~4 characters per token)."""
    return math.ceil(len(text) / 4)


class RAGOptions(BaseModel):
    """Options for :meth:`RetrievalAssembler.get_context`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    k: int = Field(default=8, ge=1, le=100, description="Candidates requested from the index")
    min_score: float = Field(default=0.65, ge=0.0, le=1.0, description="Minimum similarity to keep a chunk")
    max_tokens: int = Field(default=4000, ge=0, description="Token budget for the selected chunks")
    include_paths: bool = Field(default=True, description="Prefix compact sections with the file path")
    format: ContextFormat = Field(default="detailed", description="Layout of the context text")
    cache_ttl: float = Field(default=60.0, ge=0.0, description="Seconds a cached context stays valid")

    @classmethod
    def from_config(cls, section: Optional[dict] = None) -> "RAGOptions":
        """Build defaults from the ``rag`` config section."""
        section = config["rag"] if section is None else section
        return cls(**{k: v for k, v in section.items() if k in cls.model_fields})


@dataclass
class ContextStats:
    chunks_found: int = 0
    chunks_used: int = 0
    total_tokens: int = 0
    files_included: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "chunks_found": self.chunks_found,
            "chunks_used": self.chunks_used,
            "total_tokens": self.total_tokens,
            "files_included": list(self.files_included),
        }


@dataclass
class RAGContext:
    """Formatted context plus the chunks it was built from."""

    context_text: str
    chunks: list[RetrievalResult]
    stats: ContextStats
    cached_at: Optional[float] = None

    @classmethod
    def empty(cls) -> "RAGContext":
        return cls(context_text="", chunks=[], stats=ContextStats())

    def to_dict(self) -> dict:
        return {
            "context_text": self.context_text,
            "chunks": [chunk.to_dict() for chunk in self.chunks],
            "stats": self.stats.to_dict(),
            "cached_at": self.cached_at,
        }


@dataclass
class EnhancedPrompt:
    user_message: str
    system_prompt: str
    rag_context: Optional[RAGContext] = None


class ContextCache:
    """TTL cache of contexts, evicting the oldest insertion when full.

    Expiry is passive: an entry is dropped when it is read after its TTL.
    """

    def __init__(self, max_size: int = 50, clock: Callable[[], float] = time.time):
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, tuple[RAGContext, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str, ttl: float) -> Optional[RAGContext]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        context, stored_at = entry
        if self._clock() - stored_at > ttl:
            del self._entries[key]
            return None
        return context

    def set(self, key: str, context: RAGContext) -> None:
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (context, self._clock())

    def clear(self) -> None:
        self._entries.clear()


def select_within_budget(
    chunks: list[RetrievalResult],
    max_tokens: int,
    token_estimator: Callable[[str], int] = estimate_tokens,
) -> tuple[list[RetrievalResult], int]:
    """Take chunks in order until the next one would exceed ``max_tokens``.

    Stops at the first chunk that does not fit; smaller chunks ranked after
    it are not considered.
    """
    selected = []
    total = 0
    for chunk in chunks:
        tokens = token_estimator(chunk.text)
        if total + tokens > max_tokens:
            break
        selected.append(chunk)
        total += tokens
    return selected, total


def _group_by_file(chunks: list[RetrievalResult]) -> "OrderedDict[str, list[RetrievalResult]]":
    by_file: OrderedDict[str, list[RetrievalResult]] = OrderedDict()
    for chunk in chunks:
        by_file.setdefault(chunk.path, []).append(chunk)
    return by_file


def format_context(chunks: list[RetrievalResult], options: RAGOptions) -> str:
    """Render chunks grouped by source file in the requested format."""
    if not chunks:
        return ""

    by_file = _group_by_file(chunks)
    sections: list[str] = []

    if options.format == "compact":
        for path, file_chunks in by_file.items():
            content = "\n...\n".join(c.text for c in file_chunks)
            sections.append(f"[{path}]\n{content}" if options.include_paths else content)
    elif options.format == "code-only":
        for file_chunks in by_file.values():
            sections.append("\n\n".join(c.text for c in file_chunks))
    else:
        for path, file_chunks in by_file.items():
            relevance = sum(c.score for c in file_chunks) / len(file_chunks)
            sections.append(f"File: {path} (relevance: {relevance:.2f})")
            sections.append("---")
            for i, chunk in enumerate(file_chunks, 1):
                sections.append(f"[Chunk {i}/{len(file_chunks)}]\n{chunk.text}")
            sections.append("")

    return "\n".join(sections)


class RetrievalAssembler:
    """Builds :class:`RAGContext` objects from the index for chat prompts."""

    def __init__(
        self,
        manager: Optional[IndexingManager],
        token_estimator: Callable[[str], int] = estimate_tokens,
        cache: Optional[ContextCache] = None,
        clock: Callable[[], float] = time.time,
        defaults: Optional[RAGOptions] = None,
    ):
        self.manager = manager
        self.token_estimator = token_estimator
        self.clock = clock
        self.cache = cache or ContextCache(max_size=config["rag"].get("cache_size", 50), clock=clock)
        self.defaults = defaults or RAGOptions.from_config()

    def is_available(self) -> bool:
        """False when there is no index or no embedding model to search with."""
        if self.manager is None:
            return False
        return self.manager.state not in (
            IndexState.UNINITIALIZED,
            IndexState.LOADING_MODEL,
            IndexState.FAILED,
        )

    def _resolve_options(self, options) -> RAGOptions:
        if options is None:
            return self.defaults
        if isinstance(options, RAGOptions):
            return options
        if not isinstance(options, Mapping):
            raise TypeError(f"options must be a mapping, got {type(options).__name__}")
        return RAGOptions(**{**self.defaults.model_dump(), **options})

    @staticmethod
    def cache_key(query: str, options: RAGOptions) -> str:
        return json.dumps({"query": query, **options.model_dump()}, sort_keys=True)

    def get_context(self, query: str, options=None) -> Optional[RAGContext]:
        """Retrieve and format workspace context for ``query``.

        Args:
            query: The user's message
            options: RAGOptions or a dict of overrides

        Returns:
            None when the index is unavailable or retrieval failed; a context
            with no chunks when nothing cleared ``min_score``.
        """
        if not self.is_available():
            logger.warning("Indexing not available, no workspace context")
            return None

        try:
            opts = self._resolve_options(options)
        except (OptionsValidationError, TypeError) as e:
            logger.warning("Invalid RAG options: %s", e)
            return None

        key = self.cache_key(query, opts)
        cached = self.cache.get(key, opts.cache_ttl)
        if cached is not None:
            return cached

        try:
            results = self.manager.search(query, opts.k)
            filtered = [r for r in results if r.score >= opts.min_score]
            if not filtered:
                return RAGContext.empty()

            ranked = sorted(filtered, key=lambda r: r.score, reverse=True)
            selected, tokens = select_within_budget(ranked, opts.max_tokens, self.token_estimator)

            context = RAGContext(
                context_text=format_context(selected, opts),
                chunks=selected,
                stats=ContextStats(
                    chunks_found=len(results),
                    chunks_used=len(selected),
                    total_tokens=tokens,
                    files_included=list(dict.fromkeys(c.path for c in selected)),
                ),
                cached_at=self.clock(),
            )
        except Exception as e:
            logger.error("Error getting context: %s", e, exc_info=True)
            return None

        self.cache.set(key, context)
        logger.debug(
            "Context for %r: %s/%s chunks, %s tokens",
            query,
            context.stats.chunks_used,
            context.stats.chunks_found,
            context.stats.total_tokens,
        )
        return context

    def enhance_prompt(self, user_message: str, system_prompt: str, options=None) -> EnhancedPrompt:
        """Append retrieved workspace context to ``system_prompt`` when any is found."""
        context = self.get_context(user_message, options)
        if context is None or not context.chunks:
            return EnhancedPrompt(user_message=user_message, system_prompt=system_prompt)

        enhanced = (
            f"{system_prompt}\n\n"
            "You have access to relevant code from the workspace. "
            "Use this context to provide accurate, specific answers.\n\n"
            "===== RELEVANT WORKSPACE CONTEXT =====\n"
            f"{context.context_text}\n"
            "===== END CONTEXT =====\n\n"
            "When answering:\n"
            "- Reference specific files/functions from the context when relevant\n"
            "- If the context doesn't contain needed information, say so\n"
            "- Prefer concrete examples from the actual codebase"
        )
        return EnhancedPrompt(user_message=user_message, system_prompt=enhanced, rag_context=context)

    def clear_cache(self) -> None:
        self.cache.clear()
