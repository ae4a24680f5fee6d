"""
Logging configuration for the log relay.

Provides structured logging with run correlation IDs, centralized
configuration, and JSON or console output for different environments.
"""

import logging
import sys
from typing import Optional, Union
from uuid import uuid4

import structlog

# Third-party loggers kept quiet unless something goes wrong.
THIRD_PARTY_LOGGERS = {
    'uvicorn': logging.WARNING,
    'uvicorn.access': logging.WARNING,
    'fastapi': logging.WARNING,
    'aiohttp': logging.WARNING,
    'asyncio': logging.WARNING,
}


class LoggingConfig:
    """Centralized logging configuration."""

    SHARED_PROCESSORS = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    @classmethod
    def setup_logging(
        cls,
        level: Union[str, int] = logging.INFO,
        format_type: str = 'console',
        log_file: Optional[str] = None,
    ) -> None:
        """
        Setup structlog on top of the standard library handlers.

        Args:
            level: Logging level
            format_type: 'json' or 'console'
            log_file: Optional log file path (always JSON)
        """
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())

        structlog.configure(
            processors=[
                *cls.SHARED_PROCESSORS,
                structlog.processors.StackInfoRenderer(),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(cls._formatter(format_type))
        root_logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(cls._formatter('json'))
            root_logger.addHandler(file_handler)

        for logger_name, logger_level in THIRD_PARTY_LOGGERS.items():
            logging.getLogger(logger_name).setLevel(logger_level)

        structlog.get_logger(__name__).info(
            "Logging system initialized",
            level=logging.getLevelName(level),
            format_type=format_type,
            log_file=log_file,
        )

    @classmethod
    def _formatter(cls, format_type: str) -> logging.Formatter:
        if format_type == 'json':
            renderer = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
        return structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
            foreign_pre_chain=cls.SHARED_PROCESSORS,
        )


class RunContext:
    """Context manager binding a run correlation ID to every log line."""

    def __init__(self, run_id: Optional[str] = None, **extra):
        self.run_id = run_id or str(uuid4())
        self.extra = extra
        self._tokens = None

    def __enter__(self) -> 'RunContext':
        self._tokens = structlog.contextvars.bind_contextvars(run_id=self.run_id, **self.extra)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._tokens:
            structlog.contextvars.reset_contextvars(**self._tokens)
            self._tokens = None


def get_run_id() -> Optional[str]:
    """Get the run ID bound to the current context."""
    return structlog.contextvars.get_contextvars().get('run_id')


def configure_logging(settings=None) -> None:
    """Initialize logging from monitoring settings."""
    if settings is None:
        from .config import get_settings
        settings = get_settings()

    monitoring = settings.monitoring
    LoggingConfig.setup_logging(
        level=monitoring.log_level.value,
        format_type=monitoring.log_format.value,
    )
