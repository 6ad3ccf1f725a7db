"""
Unit tests for the failure sink.
"""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from flat_notifier.models.failure import FailureType
from flat_notifier.utils.error_handling import FailureNotFoundError


class TestFailureSink:
    """Test cases for FailureSink class."""

    def test_record_and_list(self, failure_sink):
        record = failure_sink.record_failure(
            FailureType.INVALID_DATA,
            "Invalid price value: 0",
            listing_id="bxkfo",
            title="Flat",
            link="https://www.ss.lv/msg/bxkfo.html",
            context={"price": "0 €"},
        )

        assert record.id
        assert record.resolved is False

        failures = failure_sink.list_failures()
        assert len(failures) == 1
        stored = failures[0]
        assert stored.id == record.id
        assert stored.failure_type == FailureType.INVALID_DATA
        assert stored.context == {"price": "0 €"}
        assert stored.created_at.tzinfo is not None

    def test_list_filters_by_type(self, failure_sink):
        failure_sink.record_failure(FailureType.PARSING_ERROR, "bad entry")
        failure_sink.record_failure(FailureType.NOTIFICATION_ERROR, "blocked")

        failures = failure_sink.list_failures(FailureType.NOTIFICATION_ERROR)

        assert [f.error for f in failures] == ["blocked"]

    def test_list_newest_first_with_limit(self, failure_sink):
        for i in range(5):
            failure_sink.record_failure(FailureType.PARSING_ERROR, f"error {i}")

        failures = failure_sink.list_failures(limit=2)

        assert [f.error for f in failures] == ["error 4", "error 3"]

    def test_mark_resolved(self, failure_sink):
        record = failure_sink.record_failure(FailureType.PARSING_ERROR, "bad entry")

        resolved = failure_sink.mark_resolved(record.id)

        assert resolved.resolved is True
        assert resolved.resolved_at is not None
        assert failure_sink.list_failures() == []
        assert len(failure_sink.list_failures(resolved=True)) == 1
        assert len(failure_sink.list_failures(resolved=None)) == 1

    def test_mark_resolved_twice_keeps_timestamp(self, failure_sink):
        record = failure_sink.record_failure(FailureType.PARSING_ERROR, "bad entry")
        first = failure_sink.mark_resolved(record.id)

        second = failure_sink.mark_resolved(record.id)

        assert second.resolved_at == first.resolved_at

    def test_mark_resolved_unknown(self, failure_sink):
        with pytest.raises(FailureNotFoundError):
            failure_sink.mark_resolved("does-not-exist")

    def test_stats(self, failure_sink):
        failure_sink.record_failure(FailureType.PARSING_ERROR, "a")
        failure_sink.record_failure(FailureType.PARSING_ERROR, "b")
        notification = failure_sink.record_failure(FailureType.NOTIFICATION_ERROR, "c")
        failure_sink.mark_resolved(notification.id)

        stats = failure_sink.stats()

        assert stats.total == 3
        assert stats.by_type == {"PARSING_ERROR": 2, "NOTIFICATION_ERROR": 1}
        assert stats.unresolved == 2
        assert stats.since_count == 3

    def test_stats_since_window(self, failure_sink):
        failure_sink.record_failure(FailureType.PARSING_ERROR, "a")

        stats = failure_sink.stats(since=timedelta(seconds=-60))

        assert stats.total == 1
        assert stats.since_count == 0

    def test_empty_error_is_refused(self, failure_sink):
        assert failure_sink.record_failure(FailureType.PARSING_ERROR, "  ") is None
        assert failure_sink.list_failures() == []

    def test_storage_error_does_not_raise(self, failure_sink):
        with patch.object(
            failure_sink.database,
            "session",
            side_effect=OperationalError("INSERT", {}, Exception("database is locked")),
        ):
            assert failure_sink.record_failure(FailureType.PARSING_ERROR, "x") is None

    def test_mirrored_to_failure_log(self, failure_sink):
        with patch("flat_notifier.services.failure_sink.failure_log") as failure_log:
            failure_sink.record_failure(
                FailureType.NOTIFICATION_ERROR,
                "blocked",
                listing_id="bxkfo",
                context={"user_chat_id": "100"},
            )

        failure_log.error.assert_called_once()
        payload = json.loads(failure_log.error.call_args[0][0])
        assert payload["type"] == "NOTIFICATION_ERROR"
        assert payload["listing_id"] == "bxkfo"
        assert payload["context"] == {"user_chat_id": "100"}
