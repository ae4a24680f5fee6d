"""
Event Source - Paginated Log Reader

This module implements the cursor-based reader over the remote event log.
Pages are requested strictly one after another because each request
starts from the last id of the previous page.
"""
import asyncio
import time
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from ..filtering.log_types import level_for
from ..shared.caching.credential_cache import CredentialCache
from ..shared.config import SourceSettings
from ..shared.exceptions import SourceError
from ..shared.http import SessionHolder
from ..shared.models import LogEntry

logger = structlog.get_logger(__name__)

PAGE_SIZE = 100


class LogSource(SessionHolder):
    """Reads log entries from the event source, starting at a cursor."""

    def __init__(
        self,
        settings: SourceSettings,
        credentials: CredentialCache,
        session: Optional[aiohttp.ClientSession] = None,
        page_size: int = PAGE_SIZE,
    ):
        super().__init__(session)
        self.settings = settings
        self.credentials = credentials
        self.page_size = page_size
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        self.logger = logger.bind(component="log_source")

    @property
    def endpoint(self) -> str:
        return self.settings.domain

    def logs_url(self) -> str:
        return f"{self.settings.base_url()}/api/v2/logs"

    async def fetch(self, cursor_id: Optional[str], max_total: int) -> List[LogEntry]:
        """
        Fetch up to ``max_total`` entries after ``cursor_id``.

        A page shorter than requested means the source has nothing more
        for now, so fewer than ``max_total`` entries is not an error.

        Raises:
            AuthError: If no credential could be obtained
            SourceError: If any page request fails; nothing is returned
        """
        start_time = time.monotonic()
        logs: List[LogEntry] = []
        cursor = cursor_id
        remaining = max_total
        pages = 0

        self.logger.info("Downloading logs", start_cursor=cursor_id or "start", max_total=max_total)

        while remaining > 0:
            take = min(remaining, self.page_size)
            page = await self._fetch_page(cursor, take)
            pages += 1
            logs.extend(page)

            if len(page) < take:
                break

            cursor = page[-1].id
            remaining -= len(page)

        self.logger.info(
            "Logs downloaded",
            total_logs=len(logs),
            pages=pages,
            last_id=logs[-1].id if logs else None,
            response_time=time.monotonic() - start_time,
        )
        return logs

    def _page_params(self, cursor: Optional[str], take: int) -> Dict[str, str]:
        if cursor:
            return {"from": cursor, "take": str(take)}
        return {"per_page": str(take), "page": "0", "sort": "date:1"}

    async def _fetch_page(self, cursor: Optional[str], take: int) -> List[LogEntry]:
        credential = await self.credentials.get(self.endpoint)
        session = await self.connect()
        headers = {"Authorization": f"Bearer {credential.token}"}

        try:
            async with session.get(
                self.logs_url(),
                params=self._page_params(cursor, take),
                headers=headers,
                timeout=self.timeout,
            ) as response:
                if response.status == 401:
                    # Token revoked or rotated before our cache TTL ran out.
                    self.credentials.invalidate(self.endpoint)
                if response.status >= 400:
                    error_text = await response.text(errors="replace")
                    raise SourceError(
                        f"Log request returned {response.status}: {error_text[:200]}",
                        status_code=response.status,
                    )
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise SourceError(f"Log request timed out after {self.settings.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise SourceError(f"Log request failed: {e}") from e
        except ValueError as e:
            raise SourceError("Log endpoint returned invalid JSON") from e

        if not isinstance(data, list):
            raise SourceError(f"Expected a list of logs, got {type(data).__name__}")

        return [self._parse_record(record) for record in data]

    def _parse_record(self, record: Any) -> LogEntry:
        if not isinstance(record, dict):
            raise SourceError(f"Expected a log object, got {type(record).__name__}")
        try:
            return LogEntry.from_record(record, level=level_for(record.get("type")))
        except ValueError as e:
            raise SourceError(f"Malformed log record: {e}") from e
