"""
Shared Configuration - Application Settings and Environment Management
Centralized configuration management for the log relay.

This module provides:
- Environment-based configuration
- Type-safe settings with validation
- Event source and webhook sink settings
- Checkpoint storage and reporting configuration
"""
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError

# Hard upper bound on records fetched per run.
MAX_BATCH_SIZE = 100


class Environment(str, Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""
    JSON = "json"
    CONSOLE = "console"


class StorageBackend(str, Enum):
    """Checkpoint document storage backends."""
    MEMORY = "memory"
    FILE = "file"
    OBJECT = "object"


class RelaySettingsBase(BaseSettings):
    """Common settings configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


class SourceSettings(RelaySettingsBase):
    """Event source configuration settings."""

    model_config = SettingsConfigDict(env_prefix="SOURCE_")

    domain: Optional[str] = Field(None, description="Event source domain, e.g. tenant.example.com")
    client_id: Optional[str] = Field(None, description="Client id for the credential exchange")
    client_secret: Optional[str] = Field(None, description="Client secret for the credential exchange")
    audience: Optional[str] = Field(None, description="Token audience; defaults to the management API")
    start_from: Optional[str] = Field(None, description="Cursor used when no checkpoint exists yet")
    timeout_seconds: float = Field(30.0, gt=0)
    token_ttl_seconds: int = Field(3600, ge=1)

    @field_validator("domain")
    @classmethod
    def strip_scheme(cls, v):
        if v:
            v = v.strip().rstrip("/")
            for prefix in ("https://", "http://"):
                if v.startswith(prefix):
                    v = v[len(prefix):]
        return v or None

    def base_url(self) -> str:
        """Get the source API base URL."""
        return f"https://{self.domain}"

    def get_audience(self) -> str:
        return self.audience or f"{self.base_url()}/api/v2/"


class WebhookSettings(RelaySettingsBase):
    """Webhook sink configuration settings."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_")

    url: Optional[str] = Field(None, description="Webhook URL receiving the logs")
    authorization: Optional[str] = Field(None, description="Static Authorization header value")
    secret: Optional[str] = Field(None, description="Secret for payload signatures")
    concurrent_calls: int = Field(5, ge=1, le=100)
    send_as_batch: bool = Field(False, description="Send all logs in a single call")
    timeout_seconds: float = Field(30.0, gt=0)


class FilterSettings(RelaySettingsBase):
    """Log filtering configuration settings."""

    model_config = SettingsConfigDict(env_prefix="FILTER_")

    min_level: int = Field(0, ge=0, le=4, description="Minimum severity to relay")
    log_types: Optional[str] = Field(None, description="Comma-separated type allow-list")

    def allowed_types(self) -> List[str]:
        """Parse the allow-list, ignoring whitespace and empty items."""
        if not self.log_types:
            return []
        return [t.strip() for t in self.log_types.split(",") if t.strip()]


class RunSettings(RelaySettingsBase):
    """Per-run configuration settings."""

    model_config = SettingsConfigDict(env_prefix="RUN_")

    batch_size: int = Field(MAX_BATCH_SIZE)

    @field_validator("batch_size")
    @classmethod
    def cap_batch_size(cls, v):
        if v <= 0 or v > MAX_BATCH_SIZE:
            return MAX_BATCH_SIZE
        return v


class ReportSettings(RelaySettingsBase):
    """Reporting and digest configuration settings."""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    slack_webhook_url: Optional[str] = Field(None, description="Slack incoming webhook")
    send_success: bool = Field(False, description="Also report successful runs")
    daily_report_hour: int = Field(16, ge=0, le=23)
    title: str = Field("Log Relay")
    timeout_seconds: float = Field(10.0, gt=0)


class StorageSettings(RelaySettingsBase):
    """Checkpoint storage configuration settings."""

    model_config = SettingsConfigDict(env_prefix="CHECKPOINT_")

    backend: StorageBackend = Field(StorageBackend.FILE)
    path: str = Field("checkpoint.json", description="Document path for the file backend")
    bucket_url: Optional[str] = Field(None, description="Bucket base URL for the object backend")
    object_key: str = Field("log-relay/checkpoint.json")
    api_token: Optional[str] = Field(None)
    timeout_seconds: float = Field(30.0, gt=0)


class MonitoringSettings(RelaySettingsBase):
    """Monitoring and logging configuration settings."""

    environment: Environment = Field(Environment.DEVELOPMENT)
    log_level: LogLevel = Field(LogLevel.INFO)
    log_format: LogFormat = Field(LogFormat.CONSOLE)


class Settings(RelaySettingsBase):
    """Main application settings."""

    app_name: str = Field("log-relay")
    app_version: str = Field("1.0.0")

    source: SourceSettings = Field(default_factory=SourceSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    filter: FilterSettings = Field(default_factory=FilterSettings)
    run: RunSettings = Field(default_factory=RunSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    def missing_settings(self) -> List[str]:
        """
        List required settings that are not configured.

        Returns:
            Environment variable names, in a stable order
        """
        required = {
            "SOURCE_DOMAIN": self.source.domain,
            "SOURCE_CLIENT_ID": self.source.client_id,
            "SOURCE_CLIENT_SECRET": self.source.client_secret,
            "WEBHOOK_URL": self.webhook.url,
        }
        if self.storage.backend == StorageBackend.OBJECT:
            required["CHECKPOINT_BUCKET_URL"] = self.storage.bucket_url
        return [name for name, value in required.items() if not value]

    def require_complete(self) -> None:
        """Raise ConfigError when any required setting is missing."""
        missing = self.missing_settings()
        if missing:
            raise ConfigError(f"Missing settings: {', '.join(missing)}", missing=missing)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.
    This function can be used as a FastAPI dependency.
    """
    return Settings()


def get_config_summary(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Get a summary of the current configuration (without sensitive data).

    Returns:
        Dictionary with configuration summary
    """
    settings = settings or get_settings()
    return {
        "environment": settings.monitoring.environment.value,
        "source": {
            "domain": settings.source.domain,
            "start_from": settings.source.start_from,
            "credentials_configured": bool(settings.source.client_id and settings.source.client_secret),
        },
        "webhook": {
            "configured": bool(settings.webhook.url),
            "send_as_batch": settings.webhook.send_as_batch,
            "concurrent_calls": settings.webhook.concurrent_calls,
            "signed": bool(settings.webhook.secret),
        },
        "filter": {
            "min_level": settings.filter.min_level,
            "log_types": settings.filter.allowed_types(),
        },
        "run": {"batch_size": settings.run.batch_size},
        "report": {
            "slack_configured": bool(settings.report.slack_webhook_url),
            "send_success": settings.report.send_success,
            "daily_report_hour": settings.report.daily_report_hour,
        },
        "storage": {"backend": settings.storage.backend.value},
        "missing_settings": settings.missing_settings(),
    }
