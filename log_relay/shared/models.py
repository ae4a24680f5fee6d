"""
Shared Models - Core Data Structures
Data structures passed between the pipeline stages of a relay run.

These are plain dataclasses: the pipeline never validates them against
untrusted input beyond what ``from_record``/``from_dict`` do, and the
API layer converts them into pydantic schemas at the boundary.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import RelayError


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None when absent or malformed."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    """Parse a stored ``YYYY-MM-DD`` date."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class LogEntry:
    """A single record read from the event log."""
    id: str
    type: Optional[str]
    level: Optional[int]
    timestamp: Optional[datetime]
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Dict[str, Any], level: Optional[int] = None) -> 'LogEntry':
        """Build an entry from a raw source record."""
        entry_id = record.get('_id') or record.get('log_id') or record.get('id')
        if entry_id is None:
            raise ValueError("Log record has no identifier")
        return cls(
            id=str(entry_id),
            type=record.get('type'),
            level=level,
            timestamp=parse_timestamp(record.get('date')),
            payload=record,
        )


@dataclass(frozen=True)
class Checkpoint:
    """Durable cursor plus run metadata."""
    cursor_id: Optional[str] = None
    last_report_date: Optional[date] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Checkpoint':
        """Create a Checkpoint from a stored document."""
        data = data or {}
        return cls(
            cursor_id=data.get('cursorId'),
            last_report_date=parse_date(data.get('lastReportDate')),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the checkpoint to its stored document form."""
        return {
            'cursorId': self.cursor_id,
            'lastReportDate': self.last_report_date.isoformat() if self.last_report_date else None,
        }


@dataclass(frozen=True)
class ErrorInfo:
    """Serializable view of a pipeline error."""
    stage: str
    type: str
    message: str
    status_code: Optional[int] = None
    cause: Optional[Dict[str, str]] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> 'ErrorInfo':
        """Capture an exception, keeping its wrapped cause."""
        if isinstance(exc, RelayError):
            data = exc.to_dict()
            return cls(
                stage=data['stage'],
                type=data['type'],
                message=data['message'],
                status_code=data.get('status_code'),
                cause=data.get('cause'),
            )
        return cls(stage='unknown', type=type(exc).__name__, message=str(exc))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ErrorInfo':
        return cls(
            stage=data.get('stage', 'unknown'),
            type=data.get('type', 'Error'),
            message=data.get('message', ''),
            status_code=data.get('status_code'),
            cause=data.get('cause'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'stage': self.stage, 'type': self.type, 'message': self.message}
        if self.status_code is not None:
            data['status_code'] = self.status_code
        if self.cause is not None:
            data['cause'] = dict(self.cause)
        return data


@dataclass
class DeliveryOutcome:
    """Aggregate result of delivering one batch to the webhook sink."""
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[ErrorInfo] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """True when no call failed."""
        return self.failed == 0

    def record_success(self, duration_ms: int) -> None:
        self.succeeded += 1
        self.duration_ms += duration_ms

    def record_failure(self, error: ErrorInfo, duration_ms: int) -> None:
        self.failed += 1
        self.errors.append(error)
        self.duration_ms += duration_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            'attempted': self.attempted,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'errors': [e.to_dict() for e in self.errors],
            'duration_ms': self.duration_ms,
        }


@dataclass(frozen=True)
class Credential:
    """Access credential for the event source."""
    token: str
    obtained_at: datetime

    def is_expired(self, ttl_seconds: float, now: Optional[datetime] = None) -> bool:
        """Check the cache lifetime, not the token's own expiry."""
        now = now or datetime.now(timezone.utc)
        return (now - self.obtained_at).total_seconds() >= ttl_seconds


@dataclass
class RunStatus:
    """Status block of a run result."""
    error: Optional[ErrorInfo] = None
    rollback_error: Optional[ErrorInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.error:
            data['error'] = self.error.to_dict()
        if self.rollback_error:
            data['rollback_error'] = self.rollback_error.to_dict()
        return data


@dataclass
class RunResult:
    """Result of one orchestrator run."""
    checkpoint: Optional[Checkpoint]
    logs_processed: int = 0
    logs_fetched: int = 0
    status: RunStatus = field(default_factory=RunStatus)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    run_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'checkpoint': self.checkpoint.to_dict() if self.checkpoint else None,
            'logs_processed': self.logs_processed,
            'logs_fetched': self.logs_fetched,
            'status': self.status.to_dict(),
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class RunRecord:
    """Compact run entry kept in the checkpoint document history."""
    started_at: datetime
    finished_at: datetime
    logs_processed: int
    cursor_id: Optional[str]
    error: Optional[ErrorInfo] = None

    @classmethod
    def from_result(cls, result: RunResult) -> 'RunRecord':
        return cls(
            started_at=result.started_at,
            finished_at=result.finished_at or datetime.now(timezone.utc),
            logs_processed=result.logs_processed,
            cursor_id=result.checkpoint.cursor_id if result.checkpoint else None,
            error=result.status.error,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RunRecord':
        error = data.get('error')
        return cls(
            started_at=parse_timestamp(data.get('start')) or datetime.now(timezone.utc),
            finished_at=parse_timestamp(data.get('end')) or datetime.now(timezone.utc),
            logs_processed=int(data.get('logsProcessed') or 0),
            cursor_id=data.get('checkpoint'),
            error=ErrorInfo.from_dict(error) if error else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.started_at.isoformat(),
            'end': self.finished_at.isoformat(),
            'logsProcessed': self.logs_processed,
            'checkpoint': self.cursor_id,
            'error': self.error.to_dict() if self.error else None,
        }


@dataclass
class Report:
    """Digest over the run history of a time window."""
    start: datetime
    end: datetime
    runs: int = 0
    failed_runs: int = 0
    logs_processed: int = 0
    checkpoint: Optional[str] = None
    errors: List[ErrorInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'report',
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'runs': self.runs,
            'failed_runs': self.failed_runs,
            'logs_processed': self.logs_processed,
            'checkpoint': self.checkpoint,
            'errors': [e.to_dict() for e in self.errors],
        }
