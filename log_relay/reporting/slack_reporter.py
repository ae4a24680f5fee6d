"""
Run reporting.

Posts run outcomes and the daily digest to a Slack incoming webhook.
When no webhook is configured the ``NullReporter`` takes its place so the
orchestrator never has to check.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import aiohttp
import structlog

from ..shared.config import ReportSettings
from ..shared.exceptions import ReportError
from ..shared.http import SessionHolder
from ..shared.models import ErrorInfo, Report, RunResult

logger = structlog.get_logger(__name__)

Reportable = Union[RunResult, Report]

COLOR_SUCCESS = '#36a64f'
COLOR_WARNING = '#ff9500'
COLOR_FAILURE = '#ff0000'


class Reporter(ABC):
    """Destination for run outcomes and digests."""

    @abstractmethod
    async def send(self, subject: Reportable, checkpoint: Optional[str]) -> None:
        """Report a run result or a digest."""


class NullReporter(Reporter):
    """Reporter used when no channel is configured."""

    async def send(self, subject: Reportable, checkpoint: Optional[str]) -> None:
        logger.debug("Reporting disabled, skipping notification", kind=type(subject).__name__)


def _error_text(error: ErrorInfo) -> str:
    text = f"[{error.stage}] {error.type}: {error.message}"
    if error.cause:
        text += f" (caused by {error.cause.get('type')}: {error.cause.get('message')})"
    return text


class SlackReporter(SessionHolder, Reporter):
    """Sends notifications to a Slack incoming webhook."""

    def __init__(self, settings: ReportSettings, session: Optional[aiohttp.ClientSession] = None):
        SessionHolder.__init__(self, session)
        self.settings = settings
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        self.logger = logger.bind(component="slack_reporter")

    async def send(self, subject: Reportable, checkpoint: Optional[str]) -> None:
        """
        Post a notification.

        Raises:
            ReportError: If Slack could not be reached or rejected the message
        """
        if isinstance(subject, Report):
            payload = self.format_report(subject, checkpoint)
        else:
            payload = self.format_run(subject, checkpoint)

        session = await self.connect()
        try:
            async with session.post(self.settings.slack_webhook_url, json=payload, timeout=self.timeout) as response:
                if response.status >= 400:
                    error_text = await response.text(errors="replace")
                    raise ReportError(
                        f"Slack returned {response.status}: {error_text[:200]}",
                        status_code=response.status,
                    )
        except asyncio.TimeoutError as e:
            raise ReportError("Slack notification timed out") from e
        except aiohttp.ClientError as e:
            raise ReportError(f"Slack notification failed: {e}") from e

        self.logger.info("Notification sent", kind=type(subject).__name__)

    def format_run(self, result: RunResult, checkpoint: Optional[str]) -> Dict[str, Any]:
        error = result.status.error
        fields: List[Dict[str, Any]] = [
            {'title': 'Logs processed', 'value': str(result.logs_processed), 'short': True},
            {'title': 'Checkpoint', 'value': checkpoint or 'none', 'short': True},
        ]
        if error:
            title = f"{self.settings.title}: run failed"
            text = _error_text(error)
            color = COLOR_FAILURE
        else:
            title = f"{self.settings.title}: run succeeded"
            text = f"{result.logs_processed} logs relayed."
            color = COLOR_SUCCESS
        if result.status.rollback_error:
            fields.append({
                'title': 'Rollback error',
                'value': _error_text(result.status.rollback_error),
                'short': False,
            })
        return self._attachment(title, text, color, fields, result.finished_at or result.started_at)

    def format_report(self, report: Report, checkpoint: Optional[str]) -> Dict[str, Any]:
        color = COLOR_WARNING if report.failed_runs else COLOR_SUCCESS
        fields: List[Dict[str, Any]] = [
            {'title': 'Runs', 'value': str(report.runs), 'short': True},
            {'title': 'Failed runs', 'value': str(report.failed_runs), 'short': True},
            {'title': 'Logs processed', 'value': str(report.logs_processed), 'short': True},
            {'title': 'Checkpoint', 'value': checkpoint or 'none', 'short': True},
        ]
        if report.errors:
            # Last few errors are enough to triage.
            fields.append({
                'title': 'Errors',
                'value': "\n".join(_error_text(e) for e in report.errors[-5:]),
                'short': False,
            })
        text = f"{report.start.isoformat()} to {report.end.isoformat()}"
        return self._attachment(f"{self.settings.title}: daily report", text, color, fields, report.end)

    def _attachment(
        self,
        title: str,
        text: str,
        color: str,
        fields: List[Dict[str, Any]],
        at: Optional[datetime],
    ) -> Dict[str, Any]:
        at = at or datetime.now(timezone.utc)
        return {
            'username': 'log-relay',
            'text': title,
            'attachments': [{
                'color': color,
                'title': title,
                'text': text,
                'fields': fields,
                'ts': int(at.timestamp()),
            }],
        }


def create_reporter(settings: ReportSettings, session: Optional[aiohttp.ClientSession] = None) -> Reporter:
    if settings.slack_webhook_url:
        return SlackReporter(settings, session)
    return NullReporter()
