"""Test helpers for the indexing engine."""
