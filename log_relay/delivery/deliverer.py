"""
Webhook delivery.

Posts relayed log entries to the configured webhook, either as one batch
request or fanned out one request per entry with bounded concurrency.
Delivery is fail-fast: after the first failure no new request starts,
requests already in flight are allowed to finish, and the whole delivery
is reported as failed so the caller can roll the checkpoint back.
"""

import asyncio
import json
import time
from enum import Enum
from typing import Any, List, Optional, Sequence

import aiohttp
import structlog

from ..shared.config import WebhookSettings
from ..shared.exceptions import DeliveryError
from ..shared.http import USER_AGENT, SessionHolder
from ..shared.models import DeliveryOutcome, ErrorInfo, LogEntry
from .security import WebhookSecurity

logger = structlog.get_logger(__name__)


class DeliveryMode(str, Enum):
    """How entries are mapped onto webhook requests."""
    BATCH = "batch"
    FAN_OUT = "fan_out"


class WebhookDeliverer(SessionHolder):
    """Delivers log payloads to the webhook sink."""

    def __init__(self, settings: WebhookSettings, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(session)
        self.settings = settings
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        self.logger = logger.bind(component="webhook_deliverer")

    @property
    def default_mode(self) -> DeliveryMode:
        return DeliveryMode.BATCH if self.settings.send_as_batch else DeliveryMode.FAN_OUT

    async def deliver(
        self,
        entries: Sequence[LogEntry],
        mode: Optional[DeliveryMode] = None,
        concurrency: Optional[int] = None,
    ) -> DeliveryOutcome:
        """
        Deliver entries to the webhook.

        Args:
            entries: Entries to deliver, in source order
            mode: Batch or fan-out; defaults to the configured mode
            concurrency: Max requests in flight for fan-out

        Returns:
            Outcome of a fully successful delivery

        Raises:
            DeliveryError: If any request failed; carries the outcome
        """
        mode = mode or self.default_mode
        concurrency = max(1, concurrency or self.settings.concurrent_calls)
        outcome = DeliveryOutcome()
        if not entries:
            return outcome

        self.logger.info(
            "Sending logs to webhook",
            logs=len(entries),
            mode=mode.value,
            concurrency=concurrency if mode == DeliveryMode.FAN_OUT else 1,
        )

        if mode == DeliveryMode.BATCH:
            outcome.attempted = 1
            failure = await self._post([entry.payload for entry in entries], outcome)
            failures = [failure] if failure else []
        else:
            failures = await self._fan_out(entries, concurrency, outcome)

        if failures:
            self.logger.error(
                "Webhook delivery failed",
                attempted=outcome.attempted,
                succeeded=outcome.succeeded,
                failed=outcome.failed,
            )
            first = failures[0]
            raise DeliveryError(
                f"{outcome.failed} of {outcome.attempted} webhook calls failed: {first.message}",
                outcome,
                status_code=first.status_code,
            ) from (first.cause or first)

        self.logger.info(
            "Webhook delivery completed",
            attempted=outcome.attempted,
            duration_ms=outcome.duration_ms,
        )
        return outcome

    async def _fan_out(
        self,
        entries: Sequence[LogEntry],
        concurrency: int,
        outcome: DeliveryOutcome,
    ) -> List[DeliveryError]:
        semaphore = asyncio.Semaphore(concurrency)
        abort = asyncio.Event()
        failures: List[DeliveryError] = []
        tasks: List[asyncio.Task] = []

        async def dispatch(payload: Any) -> None:
            try:
                failure = await self._post(payload, outcome)
            except Exception as e:
                failure = DeliveryError(f"Webhook call failed: {e}")
                failure.__cause__ = e
                outcome.record_failure(ErrorInfo.from_exception(failure), 0)
            finally:
                semaphore.release()
            if failure:
                failures.append(failure)
                abort.set()

        try:
            for entry in entries:
                await semaphore.acquire()
                if abort.is_set():
                    semaphore.release()
                    break
                outcome.attempted += 1
                tasks.append(asyncio.create_task(dispatch(entry.payload)))
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        if abort.is_set():
            self.logger.warning(
                "Fan-out aborted after failure",
                dispatched=outcome.attempted,
                skipped=len(entries) - outcome.attempted,
            )
        return failures

    def _headers(self, body: str) -> dict:
        headers = {
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
        }
        if self.settings.authorization:
            headers['Authorization'] = self.settings.authorization
        if self.settings.secret:
            headers.update(WebhookSecurity.create_signature_headers(body, self.settings.secret))
        return headers

    async def _post(self, body: Any, outcome: DeliveryOutcome) -> Optional[DeliveryError]:
        """Make one webhook call and record it; returns the failure, if any."""
        start_time = time.monotonic()
        try:
            status = await self._call(body)
        except DeliveryError as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            outcome.record_failure(ErrorInfo.from_exception(e), duration_ms)
            self.logger.warning(
                "Webhook call failed",
                status=e.status_code,
                error=e.message,
                duration_ms=duration_ms,
            )
            return e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        outcome.record_success(duration_ms)
        self.logger.debug("Webhook call completed", status=status, duration_ms=duration_ms)
        return None

    async def _call(self, body: Any) -> int:
        session = await self.connect()
        data = json.dumps(body, default=str)
        try:
            async with session.post(
                self.settings.url,
                data=data,
                headers=self._headers(data),
                timeout=self.timeout,
                allow_redirects=False,
            ) as response:
                if 200 <= response.status < 400:
                    return response.status
                response_body = await response.text(errors="replace")
                raise DeliveryError(
                    f"Webhook returned {response.status}: {response_body[:200]}",
                    status_code=response.status,
                )
        except DeliveryError:
            raise
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"Webhook timeout after {self.settings.timeout_seconds} seconds") from e
        except aiohttp.ClientError as e:
            raise DeliveryError(f"HTTP client error: {e}") from e
        except Exception as e:
            raise DeliveryError(f"Webhook call failed: {e}") from e
