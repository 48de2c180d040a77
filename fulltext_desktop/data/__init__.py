"""Data access layer for the Lance-backed full-text index."""

from .index import IndexAccessError, IndexReader, IndexWriter, LanceIndexStore, Posting

__all__ = ["IndexAccessError", "IndexReader", "IndexWriter", "LanceIndexStore", "Posting"]
