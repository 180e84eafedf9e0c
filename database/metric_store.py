"""
Database - Relational Metric Store.

============================================================
PURPOSE
============================================================
MetricStorage backed by the ``metrics`` table.

UPDATE STRATEGY:
- Gauge: one INSERT ... ON CONFLICT (type, name) DO UPDATE
- Counter: SELECT current total, add in Python, then INSERT
  when absent or UPDATE when present

BATCH SEMANTICS:
- The whole batch runs in one transaction
- Any failing record rolls back every record of the batch

KNOWN GAP:
The counter read-then-write takes no row lock and runs at the
database's default isolation. Two transactions updating the
same counter can both read the old total and one increment is
lost, or both insert and one fails on the unique constraint
(surfaced as UniqueConstraintRaceError for the caller to retry).

============================================================
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from core.constants import COUNTER, GAUGE, METRIC_TYPES, METRIC_UNIQUE_CONSTRAINT
from core.exceptions import StorageError
from core.models import MetricRecord
from storage.base import MetricStorage
from storage.metric import MetricValue, apply_update, format_value, record_raw_value

from .engine import (
    create_session_factory,
    get_db_session,
    transaction_scope,
    verify_database_connection,
)
from .models import StoredMetric


logger = logging.getLogger(__name__)


class DBStorage(MetricStorage):
    """
    Metric store on a SQL database.

    The engine is owned by the caller; close() disposes it.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    def get_metric(self, kind: str) -> Optional[Dict[str, str]]:
        if kind not in METRIC_TYPES:
            return None

        try:
            with get_db_session(self._session_factory) as session:
                rows = session.execute(
                    select(StoredMetric.name, StoredMetric.delta, StoredMetric.value)
                    .where(StoredMetric.type == kind)
                ).all()
        except StorageError as e:
            logger.error(f"failed to select {kind} metrics: {e}")
            return None

        if kind == COUNTER:
            return {name: format_value(int(delta or 0)) for name, delta, _ in rows}
        return {name: format_value(float(value or 0.0)) for name, _, value in rows}

    def get_metrics(self) -> Dict[str, Dict[str, MetricValue]]:
        snapshot: Dict[str, Dict[str, MetricValue]] = {GAUGE: {}, COUNTER: {}}

        try:
            with get_db_session(self._session_factory) as session:
                rows = session.execute(
                    select(StoredMetric.type, StoredMetric.name, StoredMetric.delta, StoredMetric.value)
                ).all()
        except StorageError as e:
            logger.error(f"failed to select metrics: {e}")
            return snapshot

        for kind, name, delta, value in rows:
            if kind == COUNTER:
                snapshot[COUNTER][name] = int(delta or 0)
            elif kind == GAUGE:
                snapshot[GAUGE][name] = float(value or 0.0)
        return snapshot

    # --------------------------------------------------------
    # WRITES
    # --------------------------------------------------------

    def update_metric(self, kind: str, name: str, raw_value: str) -> MetricValue:
        with transaction_scope(self._session_factory) as session:
            return self._apply(session, kind, name, raw_value)

    def update_metrics(self, records: List[MetricRecord]) -> None:
        with transaction_scope(self._session_factory) as session:
            for record in records:
                self._apply(session, record.type, record.id, record_raw_value(record))
        logger.debug(f"Committed batch of {len(records)} metrics")

    def _apply(self, session: Session, kind: str, name: str, raw_value: str) -> MetricValue:
        # Validates kind, name and value before touching the table
        parsed = apply_update(None, kind, name, raw_value)

        if kind == GAUGE:
            self._upsert_gauge(session, name, float(parsed))
            return parsed
        return self._accumulate_counter(session, name, int(parsed))

    def _upsert_gauge(self, session: Session, name: str, value: float) -> None:
        dialect = session.get_bind().dialect.name

        if dialect == "postgresql":
            stmt = postgresql.insert(StoredMetric).values(type=GAUGE, name=name, value=value)
            stmt = stmt.on_conflict_do_update(
                constraint=METRIC_UNIQUE_CONSTRAINT,
                set_={"value": stmt.excluded.value},
            )
        elif dialect == "sqlite":
            stmt = sqlite.insert(StoredMetric).values(type=GAUGE, name=name, value=value)
            stmt = stmt.on_conflict_do_update(
                index_elements=["type", "name"],
                set_={"value": stmt.excluded.value},
            )
        else:
            raise StorageError(f"gauge upsert not supported on {dialect}")

        session.execute(stmt)

    def _accumulate_counter(self, session: Session, name: str, delta: int) -> int:
        current = session.execute(
            select(StoredMetric).where(
                StoredMetric.type == COUNTER,
                StoredMetric.name == name,
            )
        ).scalar_one_or_none()

        if current is None:
            session.add(StoredMetric(type=COUNTER, name=name, delta=delta))
            session.flush()
            return delta

        total = apply_update(current.delta, COUNTER, name, str(delta))
        current.delta = total
        session.flush()
        return total

    # --------------------------------------------------------
    # HEALTH
    # --------------------------------------------------------

    def ping(self) -> None:
        verify_database_connection(self._engine)

    def close(self) -> None:
        self._engine.dispose()
