"""DocumentStore protocol definition."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from chatwizard.exceptions import ConfigurationError


@runtime_checkable
class DocumentStore(Protocol):
    """Load/save-by-key store of whole JSON documents.

    Each wizard module keeps its complete state (in-progress sessions,
    stored submissions and leased routing tokens) in a single document under
    its namespace. There are no partial writes.

    Example:
        ```python
        store = create_document_store({"backend": "file", "directory": "saved/config"})
        document = await store.load("advertising") or {}
        document["sessions"] = {}
        await store.save("advertising", document)
        ```
    """

    async def load(self, key: str) -> dict[str, Any] | None:
        """Read the document stored under ``key``.

        Returns:
            The document, or None when nothing was saved yet

        Raises:
            PersistenceError: If the document exists but cannot be read
        """
        ...

    async def save(self, key: str, document: dict[str, Any]) -> None:
        """Replace the document stored under ``key``.

        Raises:
            PersistenceError: If the document cannot be written
        """
        ...


def create_document_store(config: dict[str, Any]) -> DocumentStore:
    """Create a document store from configuration.

    Args:
        config: Configuration dict with a 'backend' key ("memory" or "file")
            and backend-specific options ("directory" for the file backend)

    Returns:
        A DocumentStore implementation

    Raises:
        ConfigurationError: If the backend is unknown
    """
    backend = config.get("backend", "memory").lower()

    if backend == "memory":
        from .memory import InMemoryDocumentStore

        return InMemoryDocumentStore()

    if backend == "file":
        from .file import FileDocumentStore

        return FileDocumentStore(
            directory=config.get("directory", "saved/config"),
            suffix=config.get("suffix", "_config.json"),
        )

    raise ConfigurationError(
        f"Unknown storage backend: {backend}",
        context={"backend": backend, "available": ["memory", "file"]},
    )
