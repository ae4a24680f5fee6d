"""
Relay Orchestrator - Run Pipeline
Drives one relay run: read the checkpoint, fetch a batch, filter it,
deliver it, then commit the new checkpoint or roll back to the old one.

After every run (successful or not) the run is recorded in the history,
reported when appropriate, and the daily digest is evaluated. None of
these follow-up steps can turn a run into a failure.
"""
import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

import structlog

from ..delivery.deliverer import DeliveryMode, WebhookDeliverer
from ..filtering.log_filter import LogFilter
from ..reporting.slack_reporter import Reporter
from ..shared.config import MAX_BATCH_SIZE
from ..shared.exceptions import RelayError
from ..shared.logging_config import RunContext
from ..shared.models import Checkpoint, ErrorInfo, Report, RunResult
from ..source.log_source import LogSource
from ..storage.checkpoint_store import CheckpointStore
from .digest import DEFAULT_REPORT_HOUR, is_digest_due, report_window

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunState(str, Enum):
    """Pipeline states of a single run."""
    IDLE = "idle"
    FETCHING = "fetching"
    FILTERING = "filtering"
    DELIVERING = "delivering"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class LogRelayOrchestrator:
    """
    Runs the relay pipeline.

    Delivery is at-least-once: the checkpoint only advances after every
    relayed entry was accepted, and any failure writes the starting
    checkpoint back so the next run fetches the same window again.
    """

    def __init__(
        self,
        source: LogSource,
        log_filter: LogFilter,
        deliverer: WebhookDeliverer,
        store: CheckpointStore,
        reporter: Reporter,
        *,
        batch_size: int = MAX_BATCH_SIZE,
        start_from: Optional[str] = None,
        delivery_mode: Optional[DeliveryMode] = None,
        concurrency: Optional[int] = None,
        send_success: bool = False,
        daily_report_hour: int = DEFAULT_REPORT_HOUR,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.source = source
        self.log_filter = log_filter
        self.deliverer = deliverer
        self.store = store
        self.reporter = reporter
        self.batch_size = min(batch_size, MAX_BATCH_SIZE) if batch_size > 0 else MAX_BATCH_SIZE
        self.start_from = start_from
        self.delivery_mode = delivery_mode
        self.concurrency = concurrency
        self.send_success = send_success
        self.daily_report_hour = daily_report_hour
        self.clock = clock
        self.state = RunState.IDLE
        self._run_lock = asyncio.Lock()
        self.logger = logger.bind(component="orchestrator")

    async def run(self) -> RunResult:
        """
        Execute one relay run.

        Runs on the same orchestrator are serialized. Failures are returned
        in ``RunResult.status``, never raised.
        """
        async with self._run_lock:
            with RunContext() as context:
                result = await self._execute(context.run_id)
                await self._after_run(result)
                return result

    def _transition(self, state: RunState) -> None:
        self.logger.debug("Run state changed", previous=self.state.value, state=state.value)
        self.state = state

    async def _execute(self, run_id: str) -> RunResult:
        self.state = RunState.IDLE
        result = RunResult(checkpoint=None, run_id=run_id, started_at=self.clock())
        start_checkpoint: Optional[Checkpoint] = None

        try:
            self._transition(RunState.FETCHING)
            start_checkpoint = await self.store.read()
            cursor = start_checkpoint.cursor_id or self.start_from
            fetched = await self.source.fetch(cursor, self.batch_size)
            result.logs_fetched = len(fetched)

            self._transition(RunState.FILTERING)
            relayed = self.log_filter.apply(fetched)

            if relayed:
                self._transition(RunState.DELIVERING)
                await self.deliverer.deliver(relayed, self.delivery_mode, self.concurrency)

            self._transition(RunState.COMMITTING)
            new_checkpoint = Checkpoint(
                cursor_id=fetched[-1].id if fetched else cursor,
                last_report_date=start_checkpoint.last_report_date,
            )
            await self.store.write(new_checkpoint)

            result.checkpoint = new_checkpoint
            result.logs_processed = len(relayed)
            self._transition(RunState.DONE)

        except Exception as e:
            failed_in = self.state
            self._transition(RunState.FAILED)
            result.status.error = ErrorInfo.from_exception(e)
            result.checkpoint = start_checkpoint
            self.logger.error(
                "Run failed",
                stage=failed_in.value,
                error=str(e),
                exc_info=not isinstance(e, RelayError),
            )
            if start_checkpoint is not None:
                await self._rollback(start_checkpoint, result)

        result.finished_at = self.clock()
        self.logger.info(
            "Run finished",
            state=self.state.value,
            logs_fetched=result.logs_fetched,
            logs_processed=result.logs_processed,
            checkpoint=result.checkpoint.cursor_id if result.checkpoint else None,
        )
        return result

    async def _rollback(self, checkpoint: Checkpoint, result: RunResult) -> None:
        try:
            await self.store.write(checkpoint)
        except Exception as e:
            result.status.rollback_error = ErrorInfo.from_exception(e)
            self.logger.error("Checkpoint rollback failed", error=str(e))
        else:
            self.logger.info("Checkpoint rolled back", cursor_id=checkpoint.cursor_id)

    async def _after_run(self, result: RunResult) -> None:
        try:
            await self.store.record_run(result)
        except Exception as e:
            self.logger.warning("Failed to record run history", error=str(e))

        if not result.succeeded or self.send_success:
            cursor = result.checkpoint.cursor_id if result.checkpoint else None
            try:
                await self.reporter.send(result, cursor)
            except Exception as e:
                self.logger.warning("Failed to report run", error=str(e))

        await self.evaluate_digest()

    async def evaluate_digest(self, now: Optional[datetime] = None) -> Optional[Report]:
        """
        Send the daily digest if it is due.

        Returns:
            The report that was sent, or None
        """
        now = now or self.clock()
        try:
            checkpoint = await self.store.read()
            if not is_digest_due(checkpoint.last_report_date, now, self.daily_report_hour):
                return None

            start, end = report_window(now)
            report = await self.store.build_report(start, end)
            await self.reporter.send(report, report.checkpoint)
            await self.store.mark_reported(now.date())
        except Exception as e:
            self.logger.warning("Daily report failed", error=str(e))
            return None

        self.logger.info("Daily report sent", runs=report.runs, failed_runs=report.failed_runs)
        return report
