"""
Tests for the Dump Worker.

============================================================
PURPOSE
============================================================
Covers:
1. File format and atomic rewrite
2. Restore on startup (including malformed files)
3. Sync mode and periodic mode
4. Final dump on stop

============================================================
"""

import asyncio
import json

import pytest

from core.config import DumpConfig
from core.constants import COUNTER, GAUGE
from core.exceptions import DumpIOError
from storage.dump import DumpWorker, DumpedMetric, create_dump_worker, read_dump, write_dump
from storage.memory import MemStorage


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def dump_path(tmp_path):
    return str(tmp_path / "metrics-db.json")


@pytest.fixture
def storage():
    return MemStorage()


def _config(path, store_interval=300, restore=True):
    return DumpConfig(store_interval=store_interval, file_storage_path=path, restore=restore)


# ============================================================
# FILE IO
# ============================================================

class TestDumpFile:
    """Tests for read_dump / write_dump."""

    def test_write_then_read(self, dump_path):
        metrics = [
            DumpedMetric(type=COUNTER, name="requests", value="8"),
            DumpedMetric(type=GAUGE, name="temp", value="2"),
        ]
        write_dump(dump_path, metrics)

        assert read_dump(dump_path) == metrics

    def test_file_is_json_array(self, dump_path):
        write_dump(dump_path, [DumpedMetric(type=COUNTER, name="requests", value="8")])

        with open(dump_path, encoding="utf-8") as f:
            data = json.load(f)
        assert data == [{"type": "counter", "name": "requests", "value": "8"}]

    def test_no_temp_file_left_behind(self, dump_path, tmp_path):
        write_dump(dump_path, [])
        assert [p.name for p in tmp_path.iterdir()] == ["metrics-db.json"]

    def test_reads_legacy_envelope(self, dump_path):
        with open(dump_path, "w", encoding="utf-8") as f:
            json.dump({"Metrics": [{"type": "gauge", "name": "temp", "value": "1.5"}]}, f)

        assert read_dump(dump_path) == [DumpedMetric(type=GAUGE, name="temp", value="1.5")]

    def test_missing_file(self, dump_path):
        with pytest.raises(DumpIOError):
            read_dump(dump_path)

    def test_malformed_file(self, dump_path):
        with open(dump_path, "w", encoding="utf-8") as f:
            f.write("{not json")

        with pytest.raises(DumpIOError):
            read_dump(dump_path)


# ============================================================
# WORKER
# ============================================================

class TestRestore:
    """Tests for restore on construction."""

    def test_restores_into_store(self, dump_path, storage):
        write_dump(dump_path, [
            DumpedMetric(type=COUNTER, name="requests", value="8"),
            DumpedMetric(type=GAUGE, name="temp", value="2"),
        ])

        DumpWorker(_config(dump_path), storage)

        assert storage.get_metric(COUNTER) == {"requests": "8"}
        assert storage.get_metric(GAUGE) == {"temp": "2"}

    def test_restore_disabled(self, dump_path, storage):
        write_dump(dump_path, [DumpedMetric(type=COUNTER, name="requests", value="8")])

        DumpWorker(_config(dump_path, restore=False), storage)

        assert storage.get_metric(COUNTER) == {}

    def test_missing_file_starts_empty(self, dump_path, storage):
        worker = DumpWorker(_config(dump_path), storage)

        assert worker.restore() == 0
        assert storage.get_metric(COUNTER) == {}

    def test_bad_entries_are_skipped(self, dump_path, storage):
        write_dump(dump_path, [
            DumpedMetric(type=COUNTER, name="requests", value="1.5"),
            DumpedMetric(type=GAUGE, name="temp", value="3"),
        ])

        worker = DumpWorker(_config(dump_path, restore=False), storage)

        assert worker.restore() == 1
        assert storage.get_metric(GAUGE) == {"temp": "3"}

    def test_dump_then_restore_roundtrip(self, dump_path):
        source = MemStorage()
        source.update_metric(COUNTER, "requests", "8")
        source.update_metric(GAUGE, "temp", "0.25")
        DumpWorker(_config(dump_path, restore=False), source).dump()

        target = MemStorage()
        DumpWorker(_config(dump_path), target)

        assert target.get_metrics() == source.get_metrics()


class TestDumpModes:
    """Tests for sync/periodic dumping."""

    def test_dump_sync_writes_in_sync_mode(self, dump_path, storage):
        worker = DumpWorker(_config(dump_path, store_interval=0), storage)
        storage.update_metric(COUNTER, "requests", "1")

        worker.dump_sync()

        assert worker.dump_count == 1
        assert read_dump(dump_path) == [DumpedMetric(type=COUNTER, name="requests", value="1")]

    def test_dump_sync_noop_in_periodic_mode(self, dump_path, storage):
        worker = DumpWorker(_config(dump_path, store_interval=300), storage)

        worker.dump_sync()

        assert worker.dump_count == 0

    def test_dump_failure_is_logged_not_raised(self, tmp_path, storage, caplog):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        worker = DumpWorker(_config(str(blocker / "dump.json"), restore=False), storage)

        assert worker.dump() is False
        assert "failed to save dump" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_writes_final_dump(self, dump_path, storage):
        worker = DumpWorker(_config(dump_path, store_interval=300), storage)
        await worker.start()
        storage.update_metric(COUNTER, "requests", "8")

        await worker.stop()

        assert read_dump(dump_path) == [DumpedMetric(type=COUNTER, name="requests", value="8")]

    @pytest.mark.asyncio
    async def test_periodic_dump(self, dump_path, storage):
        worker = DumpWorker(_config(dump_path, store_interval=0.01), storage)
        storage.update_metric(GAUGE, "temp", "1")

        await worker.start()
        for _ in range(100):
            if worker.dump_count:
                break
            await asyncio.sleep(0.01)
        await worker.stop()

        assert worker.dump_count >= 2


class TestFactory:
    """Tests for create_dump_worker."""

    def test_disabled_without_path(self, storage):
        assert create_dump_worker(_config(""), storage) is None

    def test_enabled_with_path(self, dump_path, storage):
        assert isinstance(create_dump_worker(_config(dump_path), storage), DumpWorker)
