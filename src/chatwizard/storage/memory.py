"""In-memory document store."""

from __future__ import annotations

import json
import logging
from typing import Any

from chatwizard.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """Document store backed by a dictionary.

    Documents are kept as JSON text, so a document that could not be written
    to disk fails here too, and callers never share mutable state with the
    store.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}
        self.save_count = 0

    async def load(self, key: str) -> dict[str, Any] | None:
        raw = self._documents.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def save(self, key: str, document: dict[str, Any]) -> None:
        try:
            self._documents[key] = json.dumps(document)
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                f"Document for '{key}' is not JSON serializable",
                context={"key": key, "error": str(e)},
            ) from e
        self.save_count += 1
        logger.debug("Saved document %s (%d bytes)", key, len(self._documents[key]))

    def keys(self) -> list[str]:
        return list(self._documents)
