"""
Unit tests for checkpoint persistence and storage backends.
"""
import json
from datetime import datetime, date, timedelta, timezone

import pytest

from log_relay.shared.config import StorageSettings, StorageBackend
from log_relay.shared.exceptions import CheckpointStoreError, DeliveryError
from log_relay.shared.models import Checkpoint, ErrorInfo, RunResult, RunStatus
from log_relay.storage.checkpoint_store import CheckpointStore
from log_relay.storage.document_storage import FileDocumentStorage, MemoryDocumentStorage
from log_relay.storage.object_storage import ObjectDocumentStorage

from fakes import FakeResponse, FakeSession, queue_handler

NOW = datetime(2026, 10, 18, 17, 0, tzinfo=timezone.utc)


def run_result(finished_at, logs_processed=0, cursor_id='c1', error=None):
    status = RunStatus(error=ErrorInfo.from_exception(error) if error else None)
    return RunResult(
        checkpoint=Checkpoint(cursor_id=cursor_id),
        logs_processed=logs_processed,
        status=status,
        started_at=finished_at - timedelta(seconds=5),
        finished_at=finished_at,
    )


class BrokenStorage(MemoryDocumentStorage):
    async def write(self, document):
        raise OSError("disk full")


class TestCheckpointStore:
    """Test checkpoint reads, writes and run history."""

    @pytest.mark.asyncio
    async def test_read_empty_document(self):
        store = CheckpointStore(MemoryDocumentStorage())

        checkpoint = await store.read()

        assert checkpoint == Checkpoint(cursor_id=None, last_report_date=None)

    @pytest.mark.asyncio
    async def test_write_preserves_unrelated_keys(self):
        storage = MemoryDocumentStorage({'cursorId': 'old', 'owner': 'ops', 'lastReportDate': '2026-10-17'})
        store = CheckpointStore(storage)

        await store.write(Checkpoint(cursor_id='new', last_report_date=date(2026, 10, 17)))

        assert storage.document == {'cursorId': 'new', 'owner': 'ops', 'lastReportDate': '2026-10-17'}
        assert (await store.read()).cursor_id == 'new'

    @pytest.mark.asyncio
    async def test_mark_reported(self):
        storage = MemoryDocumentStorage({'cursorId': 'abc'})
        store = CheckpointStore(storage)

        await store.mark_reported(date(2026, 10, 18))

        checkpoint = await store.read()
        assert checkpoint.cursor_id == 'abc'
        assert checkpoint.last_report_date == date(2026, 10, 18)

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        storage = MemoryDocumentStorage()
        store = CheckpointStore(storage, history_limit=3)

        for i in range(5):
            await store.record_run(run_result(NOW - timedelta(minutes=5 - i), logs_processed=i))

        history = await store.history()
        assert [run.logs_processed for run in history] == [2, 3, 4]
        assert storage.document['runs'][0]['logsProcessed'] == 2

    @pytest.mark.asyncio
    async def test_build_report_covers_window(self):
        store = CheckpointStore(MemoryDocumentStorage({'cursorId': 'latest'}))
        await store.record_run(run_result(NOW - timedelta(hours=30), logs_processed=50))
        await store.record_run(run_result(NOW - timedelta(hours=20), logs_processed=10))
        await store.record_run(run_result(NOW - timedelta(hours=2), error=DeliveryError("Webhook returned 500")))
        await store.record_run(run_result(NOW - timedelta(hours=1), logs_processed=7))

        report = await store.build_report(NOW - timedelta(hours=24), NOW)

        assert report.runs == 3
        assert report.failed_runs == 1
        assert report.logs_processed == 17
        assert report.checkpoint == 'latest'
        assert report.errors[0].stage == 'delivery'
        assert report.to_dict()['type'] == 'report'

    @pytest.mark.asyncio
    async def test_storage_failure_is_wrapped(self):
        store = CheckpointStore(BrokenStorage())

        with pytest.raises(CheckpointStoreError) as exc_info:
            await store.write(Checkpoint(cursor_id='x'))

        assert isinstance(exc_info.value.cause, OSError)


class TestFileDocumentStorage:
    """Test the local JSON file backend."""

    @pytest.mark.asyncio
    async def test_missing_file_reads_empty(self, tmp_path):
        storage = FileDocumentStorage(str(tmp_path / "checkpoint.json"))

        assert await storage.read() == {}

    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path):
        path = tmp_path / "state" / "checkpoint.json"
        storage = FileDocumentStorage(str(path))

        await storage.write({'cursorId': 'abc', 'runs': []})

        assert json.loads(path.read_text()) == {'cursorId': 'abc', 'runs': []}
        assert await storage.read() == {'cursorId': 'abc', 'runs': []}
        assert [p.name for p in path.parent.iterdir()] == ['checkpoint.json']

    @pytest.mark.asyncio
    async def test_invalid_json(self, tmp_path):
        path = tmp_path / "checkpoint.json"
        path.write_text("{not json")
        storage = FileDocumentStorage(str(path))

        with pytest.raises(CheckpointStoreError, match="Invalid JSON"):
            await storage.read()


class TestObjectDocumentStorage:
    """Test the bucket object backend."""

    def settings(self):
        return StorageSettings(
            backend=StorageBackend.OBJECT,
            bucket_url="https://bucket.example.com/relay/",
            object_key="state/checkpoint.json",
            api_token="bucket-token",
        )

    @pytest.mark.asyncio
    async def test_missing_object_reads_empty(self):
        session = FakeSession(queue_handler(FakeResponse(404, text="NoSuchKey")))
        storage = ObjectDocumentStorage(self.settings(), session)

        assert await storage.read() == {}
        request = session.requests[0]
        assert request.url == "https://bucket.example.com/relay/state/checkpoint.json"
        assert request.headers["Authorization"] == "Bearer bucket-token"

    @pytest.mark.asyncio
    async def test_write_puts_document(self):
        session = FakeSession(queue_handler(FakeResponse(200)))
        storage = ObjectDocumentStorage(self.settings(), session)

        await storage.write({'cursorId': 'abc'})

        request = session.requests[0]
        assert request.method == 'PUT'
        assert request.body == {'cursorId': 'abc'}

    @pytest.mark.asyncio
    async def test_error_status(self):
        session = FakeSession(queue_handler(FakeResponse(403, text="AccessDenied")))
        storage = ObjectDocumentStorage(self.settings(), session)

        with pytest.raises(CheckpointStoreError) as exc_info:
            await storage.read()

        assert exc_info.value.status_code == 403

    def test_requires_bucket_url(self):
        with pytest.raises(CheckpointStoreError):
            ObjectDocumentStorage(StorageSettings(backend=StorageBackend.OBJECT, bucket_url=None))
