"""
Shared fixtures for the log relay tests.
"""
import pytest

from log_relay.shared.config import (
    FilterSettings, ReportSettings, RunSettings, Settings, SourceSettings,
    StorageBackend, StorageSettings, WebhookSettings,
)


@pytest.fixture
def source_settings():
    return SourceSettings(
        domain="tenant.example.com",
        client_id="client-id",
        client_secret="client-secret",
        audience=None,
        start_from=None,
    )


@pytest.fixture
def webhook_settings():
    return WebhookSettings(
        url="https://hooks.example.com/logs",
        authorization=None,
        secret=None,
        concurrent_calls=5,
        send_as_batch=False,
    )


@pytest.fixture
def complete_settings(source_settings, webhook_settings):
    """Settings with every required value present and in-memory storage."""
    return Settings(
        source=source_settings,
        webhook=webhook_settings,
        filter=FilterSettings(min_level=0, log_types=None),
        run=RunSettings(batch_size=100),
        report=ReportSettings(slack_webhook_url=None, send_success=False),
        storage=StorageSettings(backend=StorageBackend.MEMORY),
    )
