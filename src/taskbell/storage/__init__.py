"""
Storage subsystem.

- document_store.py: flat JSON key-value documents with per-key locks
"""

from .document_store import JsonDocumentStore, StorageError

__all__ = ["JsonDocumentStore", "StorageError"]
