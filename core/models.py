"""
Pydantic Schemas for the Metric Wire Format.

One record shape is shared by the agent report path, the server
JSON endpoints and the batch update of both storage backends.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .constants import COUNTER, GAUGE


class MetricRecord(BaseModel):
    """
    Wire record ``{id, type, delta?, value?}``.

    ``delta`` is carried by counters, ``value`` by gauges.
    Absent fields are omitted when serialized.
    """

    id: str = ""
    type: str = ""
    delta: Optional[int] = None
    value: Optional[float] = None

    @classmethod
    def gauge(cls, name: str, value: float) -> "MetricRecord":
        return cls(id=name, type=GAUGE, value=value)

    @classmethod
    def counter(cls, name: str, delta: int) -> "MetricRecord":
        return cls(id=name, type=COUNTER, delta=delta)

    def to_wire(self) -> Dict[str, Any]:
        """Dict form with unset delta/value dropped."""
        return self.model_dump(exclude_none=True)


def records_to_wire(records: List[MetricRecord]) -> List[Dict[str, Any]]:
    """Array form used by the batch endpoint."""
    return [record.to_wire() for record in records]
