"""
Server - Route Class.

============================================================
PURPOSE
============================================================
Request/response body handling shared by every metrics route.

- Request bodies sent with Content-Encoding: gzip are
  decompressed before FastAPI parses them
- With a signing key configured, a HashSHA256 request header
  is checked against the decompressed body
- With a signing key configured, response bodies are signed

Response compression is left to GZipMiddleware.

============================================================
"""

import gzip
import logging
from typing import Callable

from fastapi import HTTPException, Request, Response
from fastapi.routing import APIRoute

from core.constants import GZIP_ENCODING, SIGNATURE_HEADER
from core.signing import sign_payload, verify_payload


logger = logging.getLogger(__name__)


def _signing_key(request: Request) -> str:
    return request.app.state.config.key


class MetricsRequest(Request):
    """Request whose body() is decompressed and signature-checked."""

    async def body(self) -> bytes:
        if not hasattr(self, "_body"):
            body = await super().body()

            if GZIP_ENCODING in self.headers.get("Content-Encoding", ""):
                try:
                    body = gzip.decompress(body)
                except (OSError, EOFError) as e:
                    raise HTTPException(status_code=400, detail=f"Unable to decompress body: {e}")

            key = _signing_key(self)
            signature = self.headers.get(SIGNATURE_HEADER)
            if key and signature and not verify_payload(body, key, signature):
                logger.warning(f"Rejected request to {self.url.path}: signature mismatch")
                raise HTTPException(status_code=400, detail="signature mismatch")

            self._body = body
        return self._body


class MetricsRoute(APIRoute):
    """APIRoute that swaps in MetricsRequest and signs responses."""

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def metrics_route_handler(request: Request) -> Response:
            request = MetricsRequest(request.scope, request.receive)
            response = await original_route_handler(request)

            key = _signing_key(request)
            body = getattr(response, "body", b"")
            if key and body:
                response.headers[SIGNATURE_HEADER] = sign_payload(body, key)
            return response

        return metrics_route_handler
