"""
Unit tests for webhook delivery.
"""
import asyncio

import aiohttp
import pytest

from log_relay.delivery.deliverer import DeliveryMode, WebhookDeliverer
from log_relay.delivery.security import SIGNATURE_HEADER, TIMESTAMP_HEADER, WebhookSecurity
from log_relay.shared.exceptions import DeliveryError
from log_relay.shared.http import USER_AGENT
from log_relay.shared.config import WebhookSettings

from fakes import FakeResponse, FakeSession, make_entry, queue_handler


def entries(count):
    return [make_entry(f'log-{i}', 'f', level=3) for i in range(count)]


class TestBatchDelivery:
    """Test single-request batch delivery."""

    @pytest.mark.asyncio
    async def test_one_request_with_ordered_payloads(self, webhook_settings):
        session = FakeSession(queue_handler(FakeResponse(200)))
        deliverer = WebhookDeliverer(webhook_settings, session)
        batch = entries(3)

        outcome = await deliverer.deliver(batch, DeliveryMode.BATCH)

        assert outcome.attempted == outcome.succeeded == 1
        assert len(session.requests) == 1
        request = session.requests[0]
        assert request.url == "https://hooks.example.com/logs"
        assert request.body == [e.payload for e in batch]
        assert request.kwargs['allow_redirects'] is False

    @pytest.mark.asyncio
    async def test_headers(self):
        settings = WebhookSettings(url="https://hooks.example.com/logs", authorization="Bearer sink-token", secret="s3cret")
        session = FakeSession(queue_handler(FakeResponse(204)))
        deliverer = WebhookDeliverer(settings, session)

        await deliverer.deliver(entries(1), DeliveryMode.BATCH)

        request = session.requests[0]
        headers = request.headers
        assert headers['Content-Type'] == 'application/json'
        assert headers['User-Agent'] == USER_AGENT
        assert headers['Authorization'] == 'Bearer sink-token'
        assert WebhookSecurity.verify_signature(
            request.kwargs['data'], headers[SIGNATURE_HEADER], "s3cret", headers[TIMESTAMP_HEADER]
        )

    @pytest.mark.asyncio
    async def test_redirect_status_counts_as_success(self, webhook_settings):
        session = FakeSession(queue_handler(FakeResponse(302)))
        deliverer = WebhookDeliverer(webhook_settings, session)

        outcome = await deliverer.deliver(entries(2), DeliveryMode.BATCH)

        assert outcome.ok

    @pytest.mark.asyncio
    async def test_error_status_fails(self, webhook_settings):
        session = FakeSession(queue_handler(FakeResponse(500, text="boom")))
        deliverer = WebhookDeliverer(webhook_settings, session)

        with pytest.raises(DeliveryError) as exc_info:
            await deliverer.deliver(entries(2), DeliveryMode.BATCH)

        error = exc_info.value
        assert error.status_code == 500
        assert error.outcome.failed == 1
        assert error.outcome.errors[0].status_code == 500

    @pytest.mark.asyncio
    async def test_timeout_keeps_cause(self, webhook_settings):
        session = FakeSession(queue_handler(asyncio.TimeoutError()))
        deliverer = WebhookDeliverer(webhook_settings, session)

        with pytest.raises(DeliveryError) as exc_info:
            await deliverer.deliver(entries(1), DeliveryMode.BATCH)

        assert isinstance(exc_info.value.cause, asyncio.TimeoutError)
        assert exc_info.value.to_dict()['cause']['type'] == 'TimeoutError'

    @pytest.mark.asyncio
    async def test_undecodable_success_body(self, webhook_settings):
        """Test a 2xx answer succeeds whatever its body encoding."""
        session = FakeSession(queue_handler(FakeResponse(200, raw=b'\xff\xfe ok')))
        deliverer = WebhookDeliverer(webhook_settings, session)

        outcome = await deliverer.deliver(entries(2), DeliveryMode.BATCH)

        assert outcome.ok
        assert outcome.succeeded == 1

    @pytest.mark.asyncio
    async def test_undecodable_error_body(self, webhook_settings):
        session = FakeSession(queue_handler(FakeResponse(502, raw=b'\xffbad gateway')))
        deliverer = WebhookDeliverer(webhook_settings, session)

        with pytest.raises(DeliveryError) as exc_info:
            await deliverer.deliver(entries(1), DeliveryMode.BATCH)

        assert exc_info.value.status_code == 502
        assert "bad gateway" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_nothing_to_deliver(self, webhook_settings):
        session = FakeSession(queue_handler())
        deliverer = WebhookDeliverer(webhook_settings, session)

        outcome = await deliverer.deliver([], DeliveryMode.BATCH)

        assert outcome.attempted == 0
        assert session.requests == []


class TestFanOutDelivery:
    """Test per-entry delivery with bounded concurrency."""

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, webhook_settings):
        """Test no more than three requests are ever outstanding."""
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return FakeResponse(200)

        session = FakeSession(handler)
        deliverer = WebhookDeliverer(webhook_settings, session)

        outcome = await deliverer.deliver(entries(10), DeliveryMode.FAN_OUT, concurrency=3)

        assert outcome.attempted == outcome.succeeded == 10
        assert peak == 3
        assert sorted(r.body['_id'] for r in session.requests) == sorted(f'log-{i}' for i in range(10))

    @pytest.mark.asyncio
    async def test_dispatch_follows_entry_order(self, webhook_settings):
        session = FakeSession(lambda request: FakeResponse(200))
        deliverer = WebhookDeliverer(webhook_settings, session)

        await deliverer.deliver(entries(5), DeliveryMode.FAN_OUT, concurrency=2)

        assert [r.body['_id'] for r in session.requests] == [f'log-{i}' for i in range(5)]

    @pytest.mark.asyncio
    async def test_fail_fast_stops_new_dispatches(self, webhook_settings):
        """Test the first failure prevents any further request."""
        session = FakeSession(queue_handler(
            FakeResponse(200),
            FakeResponse(503, text="unavailable"),
        ))
        deliverer = WebhookDeliverer(webhook_settings, session)

        with pytest.raises(DeliveryError) as exc_info:
            await deliverer.deliver(entries(5), DeliveryMode.FAN_OUT, concurrency=1)

        outcome = exc_info.value.outcome
        assert len(session.requests) == 2
        assert outcome.attempted == 2
        assert outcome.succeeded == 1
        assert outcome.failed == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_stops_new_dispatches(self, webhook_settings):
        """Test an unexpected call error is a delivery failure and aborts fan-out."""
        session = FakeSession(lambda request: UnicodeDecodeError('utf-8', b'\xff', 0, 1, 'invalid start byte'))
        deliverer = WebhookDeliverer(webhook_settings, session)

        with pytest.raises(DeliveryError) as exc_info:
            await deliverer.deliver(entries(6), DeliveryMode.FAN_OUT, concurrency=1)

        assert len(session.requests) == 1
        assert exc_info.value.outcome.failed == 1
        assert isinstance(exc_info.value.cause, UnicodeDecodeError)

    @pytest.mark.asyncio
    async def test_in_flight_requests_finish_after_failure(self, webhook_settings):
        """Test requests already dispatched complete before delivery returns."""
        finished = []

        async def handler(request):
            log_id = request.body['_id']
            if log_id == 'log-0':
                return aiohttp.ClientConnectionError("reset")
            await asyncio.sleep(0.01)
            finished.append(log_id)
            return FakeResponse(200)

        session = FakeSession(handler)
        deliverer = WebhookDeliverer(webhook_settings, session)

        with pytest.raises(DeliveryError):
            await deliverer.deliver(entries(6), DeliveryMode.FAN_OUT, concurrency=3)

        assert finished == ['log-1', 'log-2']
        assert len(session.requests) == 3

    @pytest.mark.asyncio
    async def test_default_mode_from_settings(self):
        settings = WebhookSettings(url="https://hooks.example.com/logs", send_as_batch=True)
        session = FakeSession(lambda request: FakeResponse(200))
        deliverer = WebhookDeliverer(settings, session)

        await deliverer.deliver(entries(4))

        assert len(session.requests) == 1
