"""
Storage - Dump Worker.

============================================================
PURPOSE
============================================================
Durable checkpoint of the in-memory metric set.

- Restore: replays the dump file through the store on startup
- Periodic: rewrites the file every store_interval seconds
- Sync: rewrites the file after every update (store_interval == 0)
- Shutdown: one final dump when the worker is stopped

FILE FORMAT:
    [
        {"type": "counter", "name": "requests", "value": "8"},
        {"type": "gauge", "name": "temp", "value": "2"}
    ]

Values are always the canonical text form, regardless of kind.

FAILURE POLICY:
- Restore failures are logged, the store starts empty
- Dump failures are logged, never raised into the update path

============================================================
"""

import asyncio
import json
import logging
import os
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from core.config import DumpConfig
from core.constants import COUNTER, GAUGE
from core.exceptions import DumpIOError, MetricsException

from .base import MetricStorage


logger = logging.getLogger(__name__)


class DumpedMetric(BaseModel):
    """One entry of the dump file."""

    type: str
    name: str
    value: str


# ============================================================
# FILE IO
# ============================================================

def read_dump(path: str) -> List[DumpedMetric]:
    """
    Read and parse a dump file.

    Also accepts the older ``{"Metrics": [...]}`` envelope.

    Raises:
        DumpIOError: file missing, unreadable or malformed
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise DumpIOError(f"failed to read dump: {e}", path, cause=e) from e

    try:
        data = json.loads(raw)
        if isinstance(data, dict):
            data = data.get("Metrics") or []
        if not isinstance(data, list):
            raise ValueError("dump must be a JSON array")
        return [DumpedMetric.model_validate(item) for item in data]
    except (ValueError, ValidationError) as e:
        raise DumpIOError(f"failed to parse dump: {e}", path, cause=e) from e


def write_dump(path: str, metrics: List[DumpedMetric]) -> None:
    """
    Overwrite the dump file.

    Writes a sibling temp file first and swaps it in, so a crash
    mid-write never leaves a truncated dump behind.

    Raises:
        DumpIOError
    """
    payload = json.dumps(
        [metric.model_dump() for metric in metrics],
        indent=3,
    )
    target = Path(path)
    temp_path = target.with_name(target.name + ".tmp")
    try:
        if target.parent and not target.parent.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_text(payload, encoding="utf-8")
        os.replace(temp_path, target)
    except OSError as e:
        raise DumpIOError(f"failed to save dump: {e}", path, cause=e) from e


# ============================================================
# DUMP WORKER
# ============================================================

class DumpWorker:
    """
    Periodically writes the store to a file.

    Runs as a background asyncio task between start() and stop().
    """

    def __init__(self, config: DumpConfig, storage: MetricStorage):
        """
        Initialize dump worker, restoring the file if configured.

        Args:
            config: Dump configuration
            storage: Store to snapshot and restore into
        """
        self._config = config
        self._storage = storage
        self._write_lock = threading.Lock()
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._dump_count = 0

        if config.restore:
            self.restore()

    @property
    def sync_mode(self) -> bool:
        return self._config.sync_mode

    @property
    def path(self) -> str:
        return self._config.file_storage_path

    @property
    def dump_count(self) -> int:
        return self._dump_count

    # --------------------------------------------------------
    # RESTORE
    # --------------------------------------------------------

    def restore(self) -> int:
        """
        Replay the dump file through the store.

        Returns:
            Number of records applied
        """
        try:
            metrics = read_dump(self.path)
        except DumpIOError as e:
            logger.error(f"failed to restore: {e}")
            return 0

        restored = 0
        for metric in metrics:
            try:
                self._storage.update_metric(metric.type, metric.name, metric.value)
                restored += 1
            except MetricsException as e:
                logger.error(f"failed to restore {metric.type}/{metric.name}: {e}")

        logger.info(f"Restored {restored} metrics from {self.path}")
        return restored

    # --------------------------------------------------------
    # DUMP
    # --------------------------------------------------------

    def snapshot(self) -> List[DumpedMetric]:
        """Current store content in dump form."""
        metrics: List[DumpedMetric] = []
        for kind in (COUNTER, GAUGE):
            values = self._storage.get_metric(kind) or {}
            for name, value in values.items():
                metrics.append(DumpedMetric(type=kind, name=name, value=value))
        return metrics

    def dump(self) -> bool:
        """
        Write the full metric set to the file.

        Returns:
            True if the file was written
        """
        with self._write_lock:
            try:
                write_dump(self.path, self.snapshot())
            except DumpIOError as e:
                logger.error(f"failed to save dump: {e}")
                return False
            self._dump_count += 1
            return True

    def dump_sync(self) -> None:
        """Dump right away when running in sync mode."""
        if self.sync_mode:
            self.dump()

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic dump task."""
        if self._running:
            return

        self._running = True
        if not self.sync_mode:
            self._task = asyncio.create_task(self._run())
        logger.info(
            f"Dump worker started (path={self.path}, "
            f"interval={self._config.store_interval}s)"
        )

    async def stop(self) -> None:
        """Stop the periodic task and flush one final dump."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        await asyncio.to_thread(self.dump)
        logger.info("Dump worker stopped")

    async def _run(self) -> None:
        """Main run loop."""
        while self._running:
            await asyncio.sleep(self._config.store_interval)
            logger.info("dumping to file")
            await asyncio.to_thread(self.dump)


def create_dump_worker(config: DumpConfig, storage: MetricStorage) -> Optional[DumpWorker]:
    """
    Build a dump worker, or None when no file path is configured.
    """
    if not config.enabled:
        logger.info("Dumping to file disabled")
        return None
    return DumpWorker(config, storage)
