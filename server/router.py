"""
FastAPI Router for Metric Endpoints.

Provides the HTTP surface of the collector:
- HTML overview of every metric
- JSON single and batch updates
- JSON value lookup
- Storage health check
- Deprecated path-parameter update and lookup
"""

import html
import logging
from typing import Any, Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from core.constants import COUNTER, GAUGE, METRIC_TYPES
from core.exceptions import MetricsException, MissingValueError, StorageUnavailableError
from core.models import MetricRecord
from core.retry import RetryPolicy, RetryResult, attempt_store_call
from storage.base import MetricStorage
from storage.dump import DumpWorker
from storage.metric import parse_value, record_raw_value, to_record

from .routing import MetricsRoute


logger = logging.getLogger(__name__)

router = APIRouter(route_class=MetricsRoute)


# =============================================================
# HELPER: Dependencies
# =============================================================

def get_storage(request: Request) -> MetricStorage:
    return request.app.state.storage


def get_dump_worker(request: Request) -> Optional[DumpWorker]:
    return request.app.state.dump_worker


def get_retry_policy(request: Request) -> RetryPolicy:
    return request.app.state.retry_policy


# =============================================================
# HELPER: Update plumbing
# =============================================================

def _update_with_retry(
    policy: RetryPolicy,
    operation: Callable[[], Any],
    warning: str,
) -> RetryResult:
    return policy.run(lambda: attempt_store_call(operation), warning)


def _dump_after_update(dump_worker: Optional[DumpWorker]) -> None:
    # Only writes when the dump worker runs with store_interval == 0
    if dump_worker is not None:
        dump_worker.dump_sync()


# =============================================================
# HTML OVERVIEW
# =============================================================

METRICS_PAGE = """<!DOCTYPE html>
<html lang="en">
<body>
<table>
    <tr>
        <th>Type</th>
        <th>Name</th>
        <th>Value</th>
    </tr>
{rows}
</table>
</body>
</html>"""

METRICS_ROW = """    <tr>
        <td>{kind}</td>
        <td>{name}</td>
        <td>{value}</td>
    </tr>"""


def render_metrics_page(storage: MetricStorage) -> str:
    rows = []
    for kind, label in ((COUNTER, "Counter"), (GAUGE, "Gauge")):
        for name, value in sorted((storage.get_metric(kind) or {}).items()):
            rows.append(METRICS_ROW.format(
                kind=label,
                name=html.escape(name),
                value=html.escape(value),
            ))
    return METRICS_PAGE.format(rows="\n".join(rows))


@router.get("/", response_class=HTMLResponse)
def list_metrics(storage: MetricStorage = Depends(get_storage)):
    """HTML table of all metrics."""
    return HTMLResponse(render_metrics_page(storage))


# =============================================================
# JSON ENDPOINTS
# =============================================================

@router.post("/value/")
def get_metric_json(
    record: MetricRecord,
    storage: MetricStorage = Depends(get_storage),
):
    """Return the record populated with its current value."""
    if record.type not in METRIC_TYPES:
        raise HTTPException(status_code=404, detail="incorrect metric type")

    metrics = storage.get_metric(record.type)
    if metrics is None or record.id not in metrics:
        raise HTTPException(status_code=404, detail="not found")

    try:
        value = parse_value(record.type, metrics[record.id])
    except MetricsException as e:
        raise HTTPException(status_code=400, detail=f"Can't parse data: {e}")

    return JSONResponse(to_record(record.type, record.id, value).to_wire())


@router.post("/update/")
def update_metric_json(
    record: MetricRecord,
    storage: MetricStorage = Depends(get_storage),
    dump_worker: Optional[DumpWorker] = Depends(get_dump_worker),
    retry_policy: RetryPolicy = Depends(get_retry_policy),
):
    """Apply one update and echo the resulting record."""
    if record.type not in METRIC_TYPES:
        raise HTTPException(status_code=404, detail="incorrect metric type")

    try:
        raw_value = record_raw_value(record)
    except MissingValueError:
        raise HTTPException(status_code=400, detail="incorrect metric value")

    result = _update_with_retry(
        retry_policy,
        lambda: storage.update_metric(record.type, record.id, raw_value),
        "failed to update metric",
    )
    failure = result.retry_error or result.error
    if failure is not None:
        raise HTTPException(status_code=400, detail=str(failure))

    _dump_after_update(dump_worker)
    return JSONResponse(to_record(record.type, record.id, result.value).to_wire())


@router.post("/updates/")
def update_metrics_json(
    records: List[MetricRecord],
    storage: MetricStorage = Depends(get_storage),
    dump_worker: Optional[DumpWorker] = Depends(get_dump_worker),
    retry_policy: RetryPolicy = Depends(get_retry_policy),
):
    """Apply a batch of updates."""
    result = _update_with_retry(
        retry_policy,
        lambda: storage.update_metrics(records),
        "failed to update metrics",
    )
    failure = result.retry_error or result.error
    if failure is not None:
        raise HTTPException(status_code=400, detail=f"Unable to update batch: {failure}")

    _dump_after_update(dump_worker)
    return Response(status_code=200, media_type="application/json")


# =============================================================
# HEALTH
# =============================================================

@router.get("/ping")
def ping_storage(storage: MetricStorage = Depends(get_storage)):
    """Storage health check."""
    try:
        storage.ping()
    except StorageUnavailableError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(status_code=200)


# =============================================================
# DEPRECATED PATH-PARAMETER ENDPOINTS
# =============================================================

@router.get("/value/{kind}/{name}", response_class=PlainTextResponse)
def get_metric(
    kind: str,
    name: str,
    storage: MetricStorage = Depends(get_storage),
):
    """Plain-text value of one metric (deprecated)."""
    kind = kind.lower()
    if kind not in METRIC_TYPES:
        raise HTTPException(status_code=404, detail="incorrect metric type")

    metrics = storage.get_metric(kind)
    if metrics is None or name not in metrics:
        raise HTTPException(status_code=404, detail="not found")

    return PlainTextResponse(metrics[name])


@router.post("/update/{kind}/{name}/{value}")
def update_metric(
    kind: str,
    name: str,
    value: str,
    storage: MetricStorage = Depends(get_storage),
    dump_worker: Optional[DumpWorker] = Depends(get_dump_worker),
    retry_policy: RetryPolicy = Depends(get_retry_policy),
):
    """Apply one update from path parameters (deprecated)."""
    kind = kind.lower()
    if kind not in METRIC_TYPES:
        raise HTTPException(status_code=400, detail="incorrect metric type")

    result = _update_with_retry(
        retry_policy,
        lambda: storage.update_metric(kind, name, value),
        "failed to update metric",
    )
    failure = result.retry_error or result.error
    if failure is not None:
        raise HTTPException(status_code=400, detail=str(failure))

    _dump_after_update(dump_worker)
    return Response(status_code=200)
