"""
Component wiring for the log relay.

``RelayRuntime`` owns the process-wide resources: one HTTP session and
the credential cache. Orchestrators are built from settings on top of
them, so every run in the process shares the cached credential.
"""

from typing import Optional

import aiohttp
import structlog
from fastapi import Request

from ..delivery.deliverer import DeliveryMode, WebhookDeliverer
from ..filtering.log_filter import LogFilter
from ..orchestrator.orchestrator import LogRelayOrchestrator
from ..reporting.slack_reporter import create_reporter
from ..shared.caching.credential_cache import CredentialCache
from ..shared.config import Settings, StorageBackend, StorageSettings
from ..shared.http import USER_AGENT
from ..source.auth_client import SourceTokenClient
from ..source.log_source import LogSource
from ..storage.checkpoint_store import CheckpointStore
from ..storage.document_storage import DocumentStorage, FileDocumentStorage, MemoryDocumentStorage
from ..storage.object_storage import ObjectDocumentStorage

logger = structlog.get_logger(__name__)


def build_storage(settings: StorageSettings, session: Optional[aiohttp.ClientSession] = None) -> DocumentStorage:
    """Create the document storage selected by ``CHECKPOINT_BACKEND``."""
    if settings.backend == StorageBackend.MEMORY:
        return MemoryDocumentStorage()
    if settings.backend == StorageBackend.OBJECT:
        return ObjectDocumentStorage(settings, session)
    return FileDocumentStorage(settings.path)


def build_credential_cache(settings: Settings, session: Optional[aiohttp.ClientSession] = None) -> CredentialCache:
    token_client = SourceTokenClient(settings.source, session)
    return CredentialCache(token_client.fetch_token, ttl_seconds=settings.source.token_ttl_seconds)


def build_orchestrator(
    settings: Settings,
    credential_cache: CredentialCache,
    session: Optional[aiohttp.ClientSession] = None,
    storage: Optional[DocumentStorage] = None,
) -> LogRelayOrchestrator:
    """
    Build a ready-to-run orchestrator.

    Raises:
        ConfigError: If required settings are missing
    """
    settings.require_complete()

    return LogRelayOrchestrator(
        source=LogSource(settings.source, credential_cache, session),
        log_filter=LogFilter.from_settings(settings.filter),
        deliverer=WebhookDeliverer(settings.webhook, session),
        store=CheckpointStore(storage or build_storage(settings.storage, session)),
        reporter=create_reporter(settings.report, session),
        batch_size=settings.run.batch_size,
        start_from=settings.source.start_from,
        delivery_mode=DeliveryMode.BATCH if settings.webhook.send_as_batch else DeliveryMode.FAN_OUT,
        concurrency=settings.webhook.concurrent_calls,
        send_success=settings.report.send_success,
        daily_report_hour=settings.report.daily_report_hour,
    )


class RelayRuntime:
    """Process-wide resources shared by every run."""

    def __init__(self, settings: Settings, session: Optional[aiohttp.ClientSession] = None):
        self.settings = settings
        self.session = session
        self._owns_session = session is None
        self.credential_cache: Optional[CredentialCache] = None
        self._orchestrator: Optional[LogRelayOrchestrator] = None

    async def __aenter__(self) -> 'RelayRuntime':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        if self.session is None:
            self.session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
            self._owns_session = True
        self.credential_cache = build_credential_cache(self.settings, self.session)
        logger.info("Relay runtime started", missing_settings=self.settings.missing_settings())

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None
        self._orchestrator = None

    def orchestrator(self) -> LogRelayOrchestrator:
        """
        Get the orchestrator, building it on first use.

        Raises:
            ConfigError: If required settings are missing
        """
        if self._orchestrator is None:
            if self.credential_cache is None:
                raise RuntimeError("Relay runtime is not started")
            self._orchestrator = build_orchestrator(self.settings, self.credential_cache, self.session)
        return self._orchestrator


def get_runtime(request: Request) -> RelayRuntime:
    """FastAPI dependency returning the application's runtime."""
    return request.app.state.runtime
