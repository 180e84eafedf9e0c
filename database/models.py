"""
Database ORM Models.

============================================================
METRICS TABLE
============================================================

One row per (type, name):
- counters keep their running total in ``delta``
- gauges keep their last value in ``value``

The (type, name) pair is unique; gauge upserts conflict on it
and concurrent counter inserts can collide on it.

============================================================
"""

from typing import Optional

from sqlalchemy import BigInteger, Double, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import METRIC_UNIQUE_CONSTRAINT, METRICS_TABLE

from .engine import Base


class StoredMetric(Base):
    """
    A single metric.

    Source: server update endpoints
    Update Frequency: every report from every agent
    """

    __tablename__ = METRICS_TABLE
    __table_args__ = (
        UniqueConstraint("type", "name", name=METRIC_UNIQUE_CONSTRAINT),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    delta: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    value: Mapped[Optional[float]] = mapped_column(Double, nullable=True)

    def __repr__(self) -> str:
        return f"<StoredMetric {self.type}/{self.name} delta={self.delta} value={self.value}>"
