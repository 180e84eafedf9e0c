"""
Agent - Runtime Metrics Collector.

============================================================
PURPOSE
============================================================
Samples runtime statistics of the agent process and keeps
the accumulated gauge and counter set between reports.

RUNTIME STATS (gauges, enumerated below):
- Garbage collector: per-generation pending counts and
  collections / collected / uncollectable totals
- Interpreter: allocated memory blocks
- Process (psutil): RSS, VMS, thread count, CPU times, open fds

SYSTEM STATS (gauges):
- TotalMemory, FreeMemory
- CPUutilization{N} per logical CPU

EXTRA:
- RandomValue gauge refreshed on every runtime poll
- PollCount counter incremented on every runtime poll

============================================================
"""

import gc
import logging
import random
import sys
import threading
from typing import Callable, Dict, List, Optional, Tuple

import psutil

from core.models import MetricRecord


logger = logging.getLogger(__name__)


# ============================================================
# RUNTIME STAT TABLE
# ============================================================

def _gc_count(generation: int) -> Callable[[psutil.Process], float]:
    return lambda process: float(gc.get_count()[generation])


def _gc_stat(generation: int, key: str) -> Callable[[psutil.Process], float]:
    return lambda process: float(gc.get_stats()[generation][key])


def _open_fds(process: psutil.Process) -> float:
    # num_fds() only exists on POSIX
    if hasattr(process, "num_fds"):
        return float(process.num_fds())
    return float(len(process.open_files()))


RUNTIME_STATS: Tuple[Tuple[str, Callable[[psutil.Process], float]], ...] = (
    ("GCGen0Count", _gc_count(0)),
    ("GCGen1Count", _gc_count(1)),
    ("GCGen2Count", _gc_count(2)),
    ("GCGen0Collections", _gc_stat(0, "collections")),
    ("GCGen1Collections", _gc_stat(1, "collections")),
    ("GCGen2Collections", _gc_stat(2, "collections")),
    ("GCGen0Collected", _gc_stat(0, "collected")),
    ("GCGen1Collected", _gc_stat(1, "collected")),
    ("GCGen2Collected", _gc_stat(2, "collected")),
    ("GCGen0Uncollectable", _gc_stat(0, "uncollectable")),
    ("GCGen1Uncollectable", _gc_stat(1, "uncollectable")),
    ("GCGen2Uncollectable", _gc_stat(2, "uncollectable")),
    ("AllocatedBlocks", lambda process: float(sys.getallocatedblocks())),
    ("ProcessRSS", lambda process: float(process.memory_info().rss)),
    ("ProcessVMS", lambda process: float(process.memory_info().vms)),
    ("NumThreads", lambda process: float(process.num_threads())),
    ("CPUUserTime", lambda process: float(process.cpu_times().user)),
    ("CPUSystemTime", lambda process: float(process.cpu_times().system)),
    ("OpenFDs", _open_fds),
)
"""(gauge name, reader) pairs sampled by update_runtime()."""

RUNTIME_STAT_NAMES: List[str] = [name for name, _ in RUNTIME_STATS]

RANDOM_VALUE = "RandomValue"
POLL_COUNT = "PollCount"
TOTAL_MEMORY = "TotalMemory"
FREE_MEMORY = "FreeMemory"
CPU_UTILIZATION_PREFIX = "CPUutilization"


# ============================================================
# COLLECTOR
# ============================================================

class RuntimeMetrics:
    """
    Accumulated agent metrics.

    Poll and report run as separate tasks, so every access to the
    gauge/counter maps goes through the lock.
    """

    def __init__(self, process: Optional[psutil.Process] = None):
        self._process = process or psutil.Process()
        self._lock = threading.Lock()
        self._gauges: Dict[str, float] = {}
        self._counters: Dict[str, int] = {}

    @property
    def gauges(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._gauges)

    @property
    def counters(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def update_runtime(self) -> None:
        """Sample runtime stats, refresh RandomValue, bump PollCount."""
        sampled: Dict[str, float] = {}
        for name, reader in RUNTIME_STATS:
            try:
                sampled[name] = reader(self._process)
            except (psutil.Error, OSError) as e:
                logger.warning(f"Unable to read runtime stat {name}: {e}")

        with self._lock:
            self._gauges.update(sampled)
            self._gauges[RANDOM_VALUE] = random.random()
            self._counters[POLL_COUNT] = self._counters.get(POLL_COUNT, 0) + 1

    def update_memory(self) -> None:
        """Sample system memory and per-CPU utilization."""
        sampled: Dict[str, float] = {}
        try:
            memory = psutil.virtual_memory()
            sampled[TOTAL_MEMORY] = float(memory.total)
            sampled[FREE_MEMORY] = float(memory.free)
        except (psutil.Error, OSError) as e:
            logger.warning(f"Unable to get virtual memory stat: {e}")

        try:
            for index, percent in enumerate(psutil.cpu_percent(percpu=True), start=1):
                sampled[f"{CPU_UTILIZATION_PREFIX}{index}"] = float(percent)
        except (psutil.Error, OSError) as e:
            logger.warning(f"Unable to get cpu stat: {e}")

        with self._lock:
            self._gauges.update(sampled)

    def update(self) -> None:
        """One full poll."""
        self.update_runtime()
        self.update_memory()

    def snapshot(self) -> List[MetricRecord]:
        """Every gauge and counter as wire records."""
        with self._lock:
            records = [
                MetricRecord.gauge(name, value)
                for name, value in self._gauges.items()
            ]
            records.extend(
                MetricRecord.counter(name, delta)
                for name, delta in self._counters.items()
            )
        return records
