"""Workspace indexing and retrieval context engine for AI context graphs."""

__version__ = "0.1.0"
