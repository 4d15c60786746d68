"""JSON file document store."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from chatwizard.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class FileDocumentStore:
    """Stores each document as ``<directory>/<key><suffix>``.

    Writes go to a temporary file in the same directory that is then
    atomically renamed over the target, so a crash mid-write never leaves a
    truncated document behind. A missing or empty file loads as None.
    """

    def __init__(self, directory: str | Path = "saved/config", suffix: str = "_config.json"):
        self.directory = Path(directory)
        self.suffix = suffix
        self._lock = asyncio.Lock()

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}{self.suffix}"

    async def load(self, key: str) -> dict[str, Any] | None:
        path = self.path_for(key)
        async with self._lock:
            if not path.exists() or path.stat().st_size == 0:
                return None
            try:
                with open(path, encoding="utf-8") as f:
                    content = f.read()
                if not content.strip():
                    return None
                return json.loads(content)
            except (OSError, json.JSONDecodeError) as e:
                raise PersistenceError(
                    f"Failed to read document '{key}'",
                    context={"key": key, "path": str(path), "error": str(e)},
                ) from e

    async def save(self, key: str, document: dict[str, Any]) -> None:
        path = self.path_for(key)
        async with self._lock:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                content = json.dumps(document, indent=2, ensure_ascii=False)
            except (OSError, TypeError, ValueError) as e:
                raise PersistenceError(
                    f"Failed to prepare document '{key}'",
                    context={"key": key, "path": str(path), "error": str(e)},
                ) from e

            temp_path = None
            try:
                temp_fd, temp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
                os.close(temp_fd)
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(temp_path, path)
            except OSError as e:
                if temp_path is not None and os.path.exists(temp_path):
                    os.remove(temp_path)
                raise PersistenceError(
                    f"Failed to write document '{key}'",
                    context={"key": key, "path": str(path), "error": str(e)},
                ) from e
        logger.debug("Saved document %s to %s", key, path)
