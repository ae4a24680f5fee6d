"""
Shared Exceptions - Typed Relay Errors
Common error hierarchy used across all components of the log relay.

Every error carries the pipeline stage that raised it and keeps the
underlying cause (via ``raise ... from``) so the orchestrator and the
reporter can render the full chain.
"""
from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base exception for log relay operations."""

    stage = "relay"

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def cause(self) -> Optional[BaseException]:
        """Original exception this error wraps, if any."""
        return self.__cause__

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            "stage": self.stage,
            "type": type(self).__name__,
            "message": self.message,
        }
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.cause is not None:
            data["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}
        return data


class ConfigError(RelayError):
    """Required settings are missing or invalid; the run never starts."""

    stage = "config"

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class AuthError(RelayError):
    """Credential exchange against the event source failed."""

    stage = "auth"


class SourceError(RelayError):
    """A page fetch from the event source failed."""

    stage = "source"


class DeliveryError(RelayError):
    """The webhook sink rejected a call or was unreachable."""

    stage = "delivery"

    def __init__(self, message: str, outcome: Any = None, *, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.outcome = outcome


class CheckpointStoreError(RelayError):
    """Reading or writing the checkpoint document failed."""

    stage = "checkpoint"


class ReportError(RelayError):
    """A notification could not be delivered to the report channel."""

    stage = "report"
