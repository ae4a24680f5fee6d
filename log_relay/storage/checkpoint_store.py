"""
Checkpoint Store - Durable Cursor and Run History

Reads and writes the relay checkpoint inside a storage document. Keys the
store does not own are preserved on every write. The same document keeps
a bounded history of recent runs, which feeds the daily digest.
"""
from datetime import date, datetime
from typing import Any, Dict, List

import structlog

from ..shared.exceptions import CheckpointStoreError
from ..shared.models import Checkpoint, Report, RunRecord, RunResult
from .document_storage import DocumentStorage

logger = structlog.get_logger(__name__)

CURSOR_KEY = 'cursorId'
REPORT_DATE_KEY = 'lastReportDate'
RUNS_KEY = 'runs'
HISTORY_LIMIT = 100


class CheckpointStore:
    """Checkpoint persistence on top of a document storage."""

    def __init__(self, storage: DocumentStorage, history_limit: int = HISTORY_LIMIT):
        self.storage = storage
        self.history_limit = history_limit
        self.logger = logger.bind(component="checkpoint_store")

    async def read(self) -> Checkpoint:
        document = await self._load()
        return Checkpoint.from_dict(document)

    async def write(self, checkpoint: Checkpoint) -> None:
        document = await self._load()
        document.update(checkpoint.to_dict())
        await self._save(document)
        self.logger.info("Checkpoint written", cursor_id=checkpoint.cursor_id)

    async def mark_reported(self, day: date) -> None:
        """Persist the date of the last digest."""
        document = await self._load()
        document[REPORT_DATE_KEY] = day.isoformat()
        await self._save(document)

    async def record_run(self, result: RunResult) -> None:
        """Append a run to the history, keeping only the most recent runs."""
        document = await self._load()
        runs = document.get(RUNS_KEY)
        if not isinstance(runs, list):
            runs = []
        runs.append(RunRecord.from_result(result).to_dict())
        document[RUNS_KEY] = runs[-self.history_limit:]
        await self._save(document)

    async def history(self) -> List[RunRecord]:
        document = await self._load()
        runs = document.get(RUNS_KEY)
        if not isinstance(runs, list):
            return []
        return [RunRecord.from_dict(run) for run in runs if isinstance(run, dict)]

    async def build_report(self, start: datetime, end: datetime) -> Report:
        """
        Aggregate the runs that finished within ``[start, end]``.

        Args:
            start: Window start (timezone-aware)
            end: Window end (timezone-aware)

        Returns:
            Report with run counts, processed logs and run errors
        """
        document = await self._load()
        runs = document.get(RUNS_KEY) if isinstance(document.get(RUNS_KEY), list) else []
        report = Report(start=start, end=end, checkpoint=document.get(CURSOR_KEY))

        for raw in runs:
            if not isinstance(raw, dict):
                continue
            run = RunRecord.from_dict(raw)
            if not start <= run.finished_at <= end:
                continue
            report.runs += 1
            report.logs_processed += run.logs_processed
            if run.error:
                report.failed_runs += 1
                report.errors.append(run.error)

        self.logger.info(
            "Report built",
            runs=report.runs,
            failed_runs=report.failed_runs,
            logs_processed=report.logs_processed,
        )
        return report

    async def _load(self) -> Dict[str, Any]:
        try:
            document = await self.storage.read()
        except CheckpointStoreError:
            raise
        except Exception as e:
            raise CheckpointStoreError(f"Failed to read checkpoint document: {e}") from e
        return dict(document or {})

    async def _save(self, document: Dict[str, Any]) -> None:
        try:
            await self.storage.write(document)
        except CheckpointStoreError:
            raise
        except Exception as e:
            raise CheckpointStoreError(f"Failed to write checkpoint document: {e}") from e
