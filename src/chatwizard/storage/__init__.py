"""Persistence of module documents.

Backends:
- InMemoryDocumentStore: single process, nothing survives a restart
- FileDocumentStore: one JSON file per module, atomic writes

Example:
    ```python
    from chatwizard.storage import create_document_store

    store = create_document_store({"backend": "file", "directory": "saved/config"})
    ```
"""

from .base import DocumentStore, create_document_store
from .file import FileDocumentStore
from .memory import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "FileDocumentStore",
    "InMemoryDocumentStore",
    "create_document_store",
]
