"""
Storage - In-Memory Backend.

============================================================
PURPOSE
============================================================
Process-local metric store, optionally made durable by the
dump worker in storage.dump.

CONCURRENCY:
- One lock per store instance
- Every update is a single locked read-modify-write
- Reads copy under the same lock, never a half-applied update

BATCH SEMANTICS:
- Records applied in order
- First failure stops the batch
- Records applied before the failure are NOT rolled back
  (the relational backend rolls the whole batch back instead)

============================================================
"""

import logging
import threading
from typing import Dict, List, Optional

from core.constants import COUNTER, GAUGE
from core.exceptions import StorageUnavailableError, UnknownMetricTypeError
from core.models import MetricRecord

from .base import MetricStorage
from .metric import MetricValue, apply_update, format_value, record_raw_value


logger = logging.getLogger(__name__)


class MemStorage(MetricStorage):
    """Metric store backed by one dict per kind."""

    def __init__(self):
        self._metrics: Dict[str, Dict[str, MetricValue]] = {
            GAUGE: {},
            COUNTER: {},
        }
        self._lock = threading.Lock()

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    def get_metric(self, kind: str) -> Optional[Dict[str, str]]:
        with self._lock:
            values = self._metrics.get(kind)
            if values is None:
                return None
            return {name: format_value(value) for name, value in values.items()}

    def get_metrics(self) -> Dict[str, Dict[str, MetricValue]]:
        with self._lock:
            return {kind: dict(values) for kind, values in self._metrics.items()}

    # --------------------------------------------------------
    # WRITES
    # --------------------------------------------------------

    def update_metric(self, kind: str, name: str, raw_value: str) -> MetricValue:
        with self._lock:
            return self._apply(kind, name, raw_value)

    def update_metrics(self, records: List[MetricRecord]) -> None:
        applied = 0
        try:
            for record in records:
                raw_value = record_raw_value(record)
                self.update_metric(record.type, record.id, raw_value)
                applied += 1
        except Exception:
            logger.warning(
                f"Batch stopped after {applied}/{len(records)} records, "
                f"applied records are kept"
            )
            raise

    def _apply(self, kind: str, name: str, raw_value: str) -> MetricValue:
        values = self._metrics.get(kind)
        if values is None:
            raise UnknownMetricTypeError(kind)

        new_value = apply_update(values.get(name), kind, name, raw_value)
        values[name] = new_value
        return new_value

    # --------------------------------------------------------
    # HEALTH
    # --------------------------------------------------------

    def ping(self) -> None:
        raise StorageUnavailableError("database is not configured")
