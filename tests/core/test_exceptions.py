"""
Tests for the exception hierarchy.
"""

from core.exceptions import (
    ErrorClassification,
    InvalidValueError,
    MetricValidationError,
    ReportError,
    ServerUnavailableError,
    StorageError,
    UniqueConstraintRaceError,
)


class TestExceptions:
    """Tests for error classification."""

    def test_only_race_and_unavailable_server_are_retryable(self):
        assert UniqueConstraintRaceError("race").is_retryable
        assert ServerUnavailableError("down", "http://x/updates/").is_retryable
        assert not StorageError("broken").is_retryable
        assert not ReportError("bad request", "http://x/updates/", status=400).is_retryable

    def test_validation_errors_are_client_errors(self):
        error = InvalidValueError("counter", "1.5")

        assert isinstance(error, MetricValidationError)
        assert error.classification == ErrorClassification.CLIENT
        assert str(error) == "incorrect counter value: '1.5'"

    def test_to_dict(self):
        cause = ValueError("bad")
        data = InvalidValueError("gauge", "x", cause=cause).to_dict()

        assert data["type"] == "InvalidValueError"
        assert data["classification"] == "client"
        assert data["context"]["cause_type"] == "ValueError"
