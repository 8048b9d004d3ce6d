"""Tools exposing the workspace index to LLM agents."""

from .rag import create_rag_search_tool, perform_rag_search

__all__ = ["create_rag_search_tool", "perform_rag_search"]
