"""
Storage - Metric Storage Interface.

============================================================
PURPOSE
============================================================
Abstract contract shared by every metric backend.

DESIGN PRINCIPLES:
- Request handlers only ever talk to this interface
- Backend is chosen once at startup
- Fully testable with the in-memory backend

============================================================
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from core.models import MetricRecord

from .metric import MetricValue


class MetricStorage(ABC):
    """
    Store of gauge and counter metrics.

    Implementations:
    - MemStorage: dict per kind behind one lock
    - DBStorage: SQL table, batch updates in one transaction
    """

    @abstractmethod
    def get_metric(self, kind: str) -> Optional[Dict[str, str]]:
        """
        Get all metrics of one kind.

        Returns:
            name -> canonical text value, or None if kind is unknown
        """

    @abstractmethod
    def get_metrics(self) -> Dict[str, Dict[str, MetricValue]]:
        """Typed snapshot: kind -> name -> value."""

    @abstractmethod
    def update_metric(self, kind: str, name: str, raw_value: str) -> MetricValue:
        """
        Apply one update with gauge-replace / counter-accumulate rules.

        Returns:
            The value stored after the update
        """

    @abstractmethod
    def update_metrics(self, records: List[MetricRecord]) -> None:
        """Apply a batch of wire records."""

    @abstractmethod
    def ping(self) -> None:
        """
        Check the backend is reachable.

        Raises:
            StorageUnavailableError
        """

    def close(self) -> None:
        """Release backend resources."""
