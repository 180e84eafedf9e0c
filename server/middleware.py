"""
Server - Middleware and Error Handlers.

Every request is logged with uri, method, duration, status and
size. Errors are answered in plain text.
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per handled request."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"uri={request.url.path} method={request.method} "
            f"duration={duration_ms:.2f}ms status={response.status_code} "
            f"size={response.headers.get('content-length', '0')}"
        )
        return response


def format_validation_errors(exc: RequestValidationError) -> str:
    """Short human-readable summary of a body validation failure."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "invalid")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    return PlainTextResponse(
        f"Unable to decode json: {format_validation_errors(exc)}",
        status_code=400,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def install_error_handlers(app: FastAPI) -> None:
    """Answer validation and HTTP errors with plain text bodies."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
