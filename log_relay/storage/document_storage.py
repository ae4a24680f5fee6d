"""
Checkpoint document storage backends.

A document storage persists a single JSON object. The checkpoint store
owns the keys it cares about and leaves every other key untouched, so
backends only ever read and write whole documents.
"""
import asyncio
import copy
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from ..shared.exceptions import CheckpointStoreError

logger = structlog.get_logger(__name__)


class DocumentStorage(ABC):
    """Persists one JSON document."""

    @abstractmethod
    async def read(self) -> Dict[str, Any]:
        """Return the stored document, or an empty dict when none exists."""

    @abstractmethod
    async def write(self, document: Dict[str, Any]) -> None:
        """Replace the stored document."""


class MemoryDocumentStorage(DocumentStorage):
    """Process-local storage, mainly for tests and dry runs."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document: Dict[str, Any] = copy.deepcopy(document or {})
        self.writes = 0

    async def read(self) -> Dict[str, Any]:
        return copy.deepcopy(self.document)

    async def write(self, document: Dict[str, Any]) -> None:
        self.document = copy.deepcopy(document)
        self.writes += 1


class FileDocumentStorage(DocumentStorage):
    """
    Local JSON file storage.

    Writes go to a temporary file in the same directory which then
    replaces the target, so readers never see a partial document.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = logger.bind(component="file_storage", path=str(self.path))

    async def read(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._read)

    async def write(self, document: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, document)
        self.logger.debug("Checkpoint document written")

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise CheckpointStoreError(f"Failed to read {self.path}: {e}") from e

        if not content.strip():
            return {}
        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            raise CheckpointStoreError(f"Invalid JSON in {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise CheckpointStoreError(f"Expected a JSON object in {self.path}")
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(document, f, indent=2, default=str)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise CheckpointStoreError(f"Failed to write {self.path}: {e}") from e
