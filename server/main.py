"""
Collector Server - Application Factory.

============================================================
RESPONSIBILITY
============================================================
Wires configuration, storage and routes into a FastAPI app.

- Chooses the storage backend once, at startup
- Starts the dump worker with the app and flushes it on shutdown
- Installs gzip, request logging and plain-text error handling

STORAGE SELECTION:
1. DATABASE_DSN set and database reachable -> DBStorage
2. Otherwise -> MemStorage (+ DumpWorker when a file is configured)

============================================================
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional, Tuple

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from core.config import ServerConfig
from core.exceptions import StorageUnavailableError
from core.retry import RetryPolicy
from database.engine import initialize_database
from database.metric_store import DBStorage
from storage.base import MetricStorage
from storage.dump import DumpWorker, create_dump_worker
from storage.memory import MemStorage

from .middleware import RequestLoggingMiddleware, install_error_handlers
from .router import router


logger = logging.getLogger(__name__)


def build_storage(config: ServerConfig) -> Tuple[MetricStorage, Optional[DumpWorker]]:
    """
    Select the storage backend.

    Database initialization failures are logged and fall back to
    the in-memory store.
    """
    if config.database_dsn:
        try:
            engine = initialize_database(config.database_dsn)
        except StorageUnavailableError as e:
            logger.error(f"failed to initialize db: {e}")
        else:
            logger.info("Using database storage")
            return DBStorage(engine), None

    logger.info("Using in-memory storage")
    storage = MemStorage()
    return storage, create_dump_worker(config.dump, storage)


def create_app(
    config: ServerConfig,
    storage: Optional[MetricStorage] = None,
    dump_worker: Optional[DumpWorker] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> FastAPI:
    """
    Create the collector application.

    Args:
        config: Server configuration
        storage: Pre-built store (default: chosen by build_storage)
        dump_worker: Dump worker for a pre-built store
        retry_policy: Retry policy for updates (default: 3 attempts, 1s/3s)
    """
    if storage is None:
        storage, dump_worker = build_storage(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if dump_worker is not None:
            await dump_worker.start()
        try:
            yield
        finally:
            if dump_worker is not None:
                await dump_worker.stop()
            storage.close()
            logger.info("Server stopped")

    app = FastAPI(
        title="Metrics Collector",
        description="Collects gauge and counter metrics reported by agents.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.storage = storage
    app.state.dump_worker = dump_worker
    app.state.retry_policy = retry_policy or RetryPolicy()

    app.add_middleware(GZipMiddleware, minimum_size=1)
    app.add_middleware(RequestLoggingMiddleware)
    install_error_handlers(app)

    app.include_router(router)
    return app
