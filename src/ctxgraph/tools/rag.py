"""RAG search tool for semantic workspace search.

This module provides both:
1. A library function `perform_rag_search()` that can be called directly for prefetching
2. A factory `create_rag_search_tool()` returning a LangChain tool bound to an assembler
"""

from langchain_core.tools import BaseTool, tool

from ..logging_config import get_logger
from ..rag.retriever import RetrievalAssembler

logger = get_logger(__name__)


def perform_rag_search(
    assembler: RetrievalAssembler,
    query: str,
    n_results: int = 8,
    max_tokens: int = 4000,
    format: str = "detailed",
) -> str:
    """Perform RAG search and return formatted results.

    Args:
        assembler: Retrieval assembler over the workspace index
        query: Natural language description of what to find
        n_results: Maximum number of chunks to retrieve
        max_tokens: Token budget for the formatted output
        format: "compact", "detailed" or "code-only"

    Returns:
        Formatted context, or a message when nothing is available
    """
    try:
        context = assembler.get_context(
            query,
            {"k": n_results, "max_tokens": max_tokens, "format": format},
        )
    except Exception as e:
        logger.warning("RAG search failed: %s", e)
        return f"RAG search error: {e}"

    if context is None:
        return "Workspace index is not available."
    if not context.chunks:
        return f"No relevant code found for query: {query}"
    return context.context_text


def create_rag_search_tool(assembler: RetrievalAssembler) -> BaseTool:
    """Return a ``rag_search`` tool bound to ``assembler``."""

    @tool
    def rag_search(query: str, n_results: int = 8) -> str:
        """Search the workspace using semantic search (RAG) to find relevant files and code.

        Use this to ground answers in the user's actual files.

        Args:
            query: Natural language description of what to find (e.g., "graph layout", "settings persistence")
            n_results: Maximum number of chunks to return

        Returns:
            Relevant workspace snippets grouped by file
        """
        return perform_rag_search(assembler, query=query, n_results=n_results)

    return rag_search
