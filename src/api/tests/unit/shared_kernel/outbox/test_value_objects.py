"""Unit tests for outbox value objects."""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta

import pytest

from shared_kernel.outbox.value_objects import (
    EventEnvelope,
    EventPriority,
    OutboxEvent,
    PublishOptions,
    PublishResult,
    RetryPolicy,
)

OCCURRED = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


def make_envelope(**overrides) -> EventEnvelope:
    values = {
        "event_id": "01JNQ0000000000000000000AA",
        "event_type": "student.enrolled",
        "aggregate_id": "01JNQ0000000000000000000ST",
        "aggregate_type": "Student",
        "tenant_id": "tenant-a",
        "occurred_on": OCCURRED,
        "version": 1,
        "event_data": {"student_number": "STU000001"},
    }
    values.update(overrides)
    return EventEnvelope(**values)


def make_row(**overrides) -> OutboxEvent:
    values = {
        "event_id": "01JNQ0000000000000000000AA",
        "event_type": "student.enrolled",
        "aggregate_id": "01JNQ0000000000000000000ST",
        "tenant_id": "tenant-a",
        "event_data": make_envelope().to_payload(),
        "published": False,
        "published_at": None,
        "retry_count": 0,
        "max_retries": 3,
        "scheduled_for": OCCURRED,
        "last_error": None,
        "created_at": OCCURRED,
        "updated_at": OCCURRED,
    }
    values.update(overrides)
    return OutboxEvent(**values)


class TestEventEnvelope:
    def test_is_immutable(self):
        envelope = make_envelope()
        with pytest.raises(FrozenInstanceError):
            envelope.event_type = "other"  # type: ignore[misc]

    def test_payload_round_trip_preserves_fields(self):
        envelope = make_envelope(metadata={"source": "import"})

        rebuilt = EventEnvelope.from_payload(envelope.to_payload())

        assert rebuilt == envelope

    def test_payload_omits_metadata_when_absent(self):
        assert "metadata" not in make_envelope().to_payload()

    def test_from_payload_requires_event_id(self):
        payload = make_envelope().to_payload()
        del payload["event_id"]

        with pytest.raises(KeyError):
            EventEnvelope.from_payload(payload)

    def test_with_metadata_merges_over_existing(self):
        envelope = make_envelope(metadata={"a": 1, "b": 1})

        merged = envelope.with_metadata({"b": 2})

        assert merged.metadata == {"a": 1, "b": 2}
        assert envelope.metadata == {"a": 1, "b": 1}

    def test_with_empty_metadata_returns_same_envelope(self):
        envelope = make_envelope()
        assert envelope.with_metadata(None) is envelope
        assert envelope.with_metadata({}) is envelope


class TestRetryPolicy:
    def test_rejects_zero_retries(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=0)

    def test_rejects_negative_backoff(self):
        with pytest.raises(ValueError):
            RetryPolicy(backoff_ms=-1)

    def test_all_fields_optional(self):
        policy = RetryPolicy()
        assert policy.max_retries is None
        assert policy.backoff_ms is None


class TestPublishOptions:
    def test_defaults(self):
        options = PublishOptions()
        assert options.immediate is True
        assert options.retry_policy is None
        assert options.priority is EventPriority.NORMAL
        assert options.metadata is None


class TestPublishResult:
    def test_acknowledgments_default_to_empty(self):
        result = PublishResult(success=True, event_id="e", published_at=OCCURRED)
        assert result.acknowledgments == ()


class TestOutboxEvent:
    def test_new_row_is_due_at_schedule_time(self):
        row = make_row()
        assert row.is_due(OCCURRED)
        assert not row.is_due(OCCURRED - timedelta(milliseconds=1))

    def test_published_row_is_never_due(self):
        row = make_row(published=True, published_at=OCCURRED)
        assert not row.is_due(OCCURRED + timedelta(days=1))
        assert not row.is_dead_lettered

    def test_exhausted_row_is_dead_lettered_and_not_due(self):
        row = make_row(retry_count=3, max_retries=3)
        assert row.is_dead_lettered
        assert not row.is_due(OCCURRED + timedelta(days=1))

    def test_dead_letter_uses_row_ceiling(self):
        assert not make_row(retry_count=3, max_retries=5).is_dead_lettered

    def test_to_envelope_rebuilds_published_envelope(self):
        assert make_row().to_envelope() == make_envelope()
