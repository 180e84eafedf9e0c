"""
Tests for the In-Memory Store.
"""

import threading

import pytest

from core.constants import COUNTER, GAUGE, INT64_MAX
from core.exceptions import (
    InvalidNameError,
    InvalidValueError,
    StorageUnavailableError,
    UnknownMetricTypeError,
)
from core.models import MetricRecord
from storage.memory import MemStorage


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def storage():
    return MemStorage()


# ============================================================
# TESTS
# ============================================================

class TestUpdateMetric:
    """Tests for single updates."""

    def test_gauge_stored_in_canonical_form(self, storage):
        storage.update_metric(GAUGE, "temp", "1.0")
        storage.update_metric(GAUGE, "temp", "2.5")

        assert storage.get_metric(GAUGE) == {"temp": "2.5"}

    def test_counter_accumulates(self, storage):
        storage.update_metric(COUNTER, "requests", "5")
        total = storage.update_metric(COUNTER, "requests", "3")

        assert total == 8
        assert storage.get_metric(COUNTER) == {"requests": "8"}

    def test_empty_name_leaves_store_unchanged(self, storage):
        with pytest.raises(InvalidNameError):
            storage.update_metric(GAUGE, "", "1")

        assert storage.get_metric(GAUGE) == {}

    def test_invalid_counter_value(self, storage):
        with pytest.raises(InvalidValueError):
            storage.update_metric(COUNTER, "requests", "1.5")

        assert storage.get_metric(COUNTER) == {}

    def test_counter_overflow_leaves_store_unchanged(self, storage):
        storage.update_metric(COUNTER, "requests", str(INT64_MAX))

        with pytest.raises(InvalidValueError):
            storage.update_metric(COUNTER, "requests", "1")

        assert storage.get_metric(COUNTER) == {"requests": str(INT64_MAX)}

    def test_non_finite_gauge_rejected(self, storage):
        with pytest.raises(InvalidValueError):
            storage.update_metric(GAUGE, "temp", "NaN")

        assert storage.get_metric(GAUGE) == {}

    def test_unknown_kind(self, storage):
        with pytest.raises(UnknownMetricTypeError):
            storage.update_metric("histogram", "x", "1")

    def test_get_metric_unknown_kind(self, storage):
        assert storage.get_metric("histogram") is None

    def test_get_metrics_returns_copies(self, storage):
        storage.update_metric(COUNTER, "requests", "1")

        snapshot = storage.get_metrics()
        snapshot[COUNTER]["requests"] = 100

        assert storage.get_metric(COUNTER) == {"requests": "1"}

    def test_concurrent_counter_updates(self, storage):
        def worker():
            for _ in range(200):
                storage.update_metric(COUNTER, "hits", "1")

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert storage.get_metric(COUNTER) == {"hits": "1000"}


class TestUpdateMetrics:
    """Tests for batch updates."""

    def test_batch_applied_in_order(self, storage):
        storage.update_metrics([
            MetricRecord.counter("requests", 5),
            MetricRecord.counter("requests", 3),
            MetricRecord.gauge("temp", 1.0),
            MetricRecord.gauge("temp", 2.0),
        ])

        assert storage.get_metric(COUNTER) == {"requests": "8"}
        assert storage.get_metric(GAUGE) == {"temp": "2"}

    def test_failed_batch_keeps_earlier_records(self, storage):
        with pytest.raises(InvalidNameError):
            storage.update_metrics([
                MetricRecord.counter("requests", 5),
                MetricRecord.gauge("", 1.0),
                MetricRecord.gauge("temp", 3.0),
            ])

        assert storage.get_metric(COUNTER) == {"requests": "5"}
        assert storage.get_metric(GAUGE) == {}

    def test_empty_batch(self, storage):
        storage.update_metrics([])
        assert storage.get_metrics() == {GAUGE: {}, COUNTER: {}}


class TestPing:
    """In-memory store has no database to ping."""

    def test_ping_reports_unavailable(self, storage):
        with pytest.raises(StorageUnavailableError):
            storage.ping()
