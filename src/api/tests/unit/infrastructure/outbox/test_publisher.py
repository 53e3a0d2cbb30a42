"""Unit tests for OutboxEventPublisher.

Covers the publisher's contract of never raising: every store failure is
turned into a structured result. Behaviour against real SQL lives in the
integration suite.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from infrastructure.outbox.publisher import OutboxEventPublisher
from infrastructure.settings import OutboxSettings
from shared_kernel.outbox.observability import (
    DefaultOutboxPublisherProbe,
    NullOutboxPublisherProbe,
)
from shared_kernel.outbox.ports import DomainEventPublisher
from shared_kernel.outbox.value_objects import EventEnvelope

NOW = datetime(2026, 5, 1, 10, 0, tzinfo=UTC)


def make_envelope(event_id: str = "01JNQ0000000000000000000AA") -> EventEnvelope:
    return EventEnvelope(
        event_id=event_id,
        event_type="student.enrolled",
        aggregate_id="01JNQ0000000000000000000ST",
        aggregate_type="Student",
        tenant_id="tenant-a",
        occurred_on=NOW,
        version=1,
        event_data={},
    )


@pytest.fixture
def broken_session_factory():
    return MagicMock(side_effect=RuntimeError("database unavailable"))


@pytest.fixture
def probe():
    return MagicMock()


@pytest.fixture
def publisher(broken_session_factory, outbox_settings, probe):
    return OutboxEventPublisher(
        broken_session_factory, outbox_settings, probe=probe, clock=lambda: NOW
    )


class TestConstruction:
    def test_implements_publisher_port(self, publisher):
        assert isinstance(publisher, DomainEventPublisher)

    def test_logging_disabled_uses_null_probe(self, outbox_settings):
        publisher = OutboxEventPublisher(MagicMock(), outbox_settings)
        assert isinstance(publisher._probe, NullOutboxPublisherProbe)

    def test_logging_enabled_uses_structlog_probe(self):
        publisher = OutboxEventPublisher(MagicMock(), OutboxSettings(enable_logging=True))
        assert isinstance(publisher._probe, DefaultOutboxPublisherProbe)

    def test_injected_probe_wins_over_setting(self, outbox_settings, probe):
        publisher = OutboxEventPublisher(MagicMock(), outbox_settings, probe=probe)
        assert publisher._probe is probe


class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_publish_returns_failure(self, publisher, probe):
        result = await publisher.publish(make_envelope())

        assert result.success is False
        assert result.error == "database unavailable"
        assert result.published_at == NOW
        probe.event_storage_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_batch_fails_every_event(self, publisher, probe):
        events = [make_envelope("e1"), make_envelope("e2")]

        result = await publisher.publish_batch(events)

        assert result.total_events == 2
        assert result.success_count == 0
        assert result.failure_count == 2
        assert [r.event_id for r in result.results] == ["e1", "e2"]
        assert all(r.error == "database unavailable" for r in result.results)
        probe.batch_storage_failed.assert_called_once_with(2, "database unavailable")

    @pytest.mark.asyncio
    async def test_empty_batch_touches_nothing(self, publisher, broken_session_factory):
        result = await publisher.publish_batch([])

        assert result.total_events == 0
        broken_session_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_returns_failure(self, publisher):
        result = await publisher.cancel_scheduled_event("e1")

        assert result.success is False
        assert result.error == "database unavailable"

    @pytest.mark.asyncio
    async def test_health_check_reports_unknown_backlog(self, publisher):
        report = await publisher.health_check()

        assert report.healthy is False
        assert report.pending_events == -1
        assert report.error_rate == -1
        assert report.details == {"error": "database unavailable"}

    @pytest.mark.asyncio
    async def test_statistics_report_error_count_minus_one(self, publisher):
        stats = await publisher.get_statistics()

        assert stats.error_count == -1
        assert stats.events_published == 0
        assert stats.success_rate == 0.0

    @pytest.mark.asyncio
    async def test_failed_events_page_is_empty(self, publisher):
        page = await publisher.get_failed_events()

        assert page.events == ()
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_retry_reports_error(self, publisher):
        result = await publisher.retry_failed_events(["e1", "e2"])

        assert result.success_count == 0
        assert result.failure_count == 2
        assert result.error == "database unavailable"


class TestProcessing:
    @pytest.mark.asyncio
    async def test_request_processing_is_false_when_stopped(self, publisher):
        assert publisher.request_processing() is False

    @pytest.mark.asyncio
    async def test_statistics_reject_non_positive_window(self, publisher, probe):
        stats = await publisher.get_statistics(time_range_ms=0)

        assert stats.error_count == -1
        probe.diagnostics_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_and_stop_report_lifecycle(self, publisher, probe):
        await publisher.start()
        await publisher.start()
        assert publisher.is_running

        await publisher.stop()
        await publisher.stop()

        assert not publisher.is_running
        probe.publisher_started.assert_called_once_with(50, 10)
        probe.publisher_stopped.assert_called_once()

    @pytest.mark.asyncio
    async def test_process_pending_reports_poll_error(self, publisher, probe):
        assert await publisher.process_pending() is None
        probe.poll_error.assert_called_once_with("database unavailable")

    def test_register_delivery_handler_routes_to_dispatcher(self, publisher):
        publisher.register_delivery_handler("student.graduated", AsyncMock())
        assert "student.graduated" in publisher._dispatcher.registered_event_types
