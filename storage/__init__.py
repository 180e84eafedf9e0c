"""
Storage Package.

This package holds the metric model and the storage backends
that do not need a database.

Modules:
- metric: parsing, merge rules and text encoding
- base: MetricStorage interface
- memory: in-memory backend
- dump: file dump and restore for the in-memory backend
"""

from .base import MetricStorage
from .dump import DumpWorker, DumpedMetric, create_dump_worker, read_dump, write_dump
from .memory import MemStorage
from .metric import (
    MetricValue,
    apply_update,
    format_value,
    parse_value,
    record_raw_value,
    to_record,
)

__all__ = [
    "MetricStorage",
    "MemStorage",
    "DumpWorker",
    "DumpedMetric",
    "create_dump_worker",
    "read_dump",
    "write_dump",
    "MetricValue",
    "apply_update",
    "format_value",
    "parse_value",
    "record_raw_value",
    "to_record",
]
