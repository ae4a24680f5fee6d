"""
Object Storage Backend - S3-compatible Bucket
Keeps the checkpoint document as a single JSON object in a bucket
reachable over HTTP (R2, MinIO, S3 with a presigning proxy, ...).
"""
import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..shared.config import StorageSettings
from ..shared.exceptions import CheckpointStoreError
from ..shared.http import SessionHolder
from .document_storage import DocumentStorage

logger = structlog.get_logger(__name__)


class ObjectDocumentStorage(SessionHolder, DocumentStorage):
    """
    Checkpoint document stored as one object.

    A missing object (404) reads as an empty document; every other error
    status is a storage failure.
    """

    def __init__(self, settings: StorageSettings, session: Optional[aiohttp.ClientSession] = None):
        if not settings.bucket_url:
            raise CheckpointStoreError("Object storage requires a bucket URL")
        SessionHolder.__init__(self, session)
        self.settings = settings
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        self.logger = logger.bind(component="object_storage", key=settings.object_key)

    @property
    def object_url(self) -> str:
        return f"{self.settings.bucket_url.rstrip('/')}/{self.settings.object_key.lstrip('/')}"

    def _request_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.api_token:
            headers["Authorization"] = f"Bearer {self.settings.api_token}"
        return headers

    async def read(self) -> Dict[str, Any]:
        session = await self.connect()
        try:
            async with session.get(self.object_url, headers=self._request_headers(), timeout=self.timeout) as response:
                if response.status == 404:
                    self.logger.info("Checkpoint object not found, starting empty")
                    return {}
                if response.status >= 400:
                    error_text = await response.text(errors="replace")
                    raise CheckpointStoreError(
                        f"Object storage error {response.status}: {error_text[:200]}",
                        status_code=response.status,
                    )
                data = await response.read()
        except asyncio.TimeoutError as e:
            raise CheckpointStoreError("Object storage read timed out") from e
        except aiohttp.ClientError as e:
            raise CheckpointStoreError(f"Network error: {e}") from e

        if not data:
            return {}
        try:
            document = json.loads(data.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CheckpointStoreError(f"Invalid JSON in object {self.settings.object_key}") from e
        if not isinstance(document, dict):
            raise CheckpointStoreError(f"Expected a JSON object in {self.settings.object_key}")
        return document

    async def write(self, document: Dict[str, Any]) -> None:
        session = await self.connect()
        data_bytes = json.dumps(document, default=str).encode('utf-8')
        try:
            async with session.put(
                self.object_url,
                data=data_bytes,
                headers=self._request_headers(),
                timeout=self.timeout,
            ) as response:
                if response.status >= 400:
                    error_text = await response.text(errors="replace")
                    raise CheckpointStoreError(
                        f"Object storage error {response.status}: {error_text[:200]}",
                        status_code=response.status,
                    )
        except asyncio.TimeoutError as e:
            raise CheckpointStoreError("Object storage write timed out") from e
        except aiohttp.ClientError as e:
            raise CheckpointStoreError(f"Network error: {e}") from e

        self.logger.debug("Checkpoint object stored", size=len(data_bytes))
