"""
Agent - Metrics Reporter.

============================================================
PURPOSE
============================================================
Sends the collector snapshot to the server batch endpoint.

REQUEST:
    POST http://{address}/updates/
    Content-Type: application/json
    Content-Encoding: gzip         (when compression is on)
    HashSHA256: base64(hmac)       (when a key is set)

The signature covers the JSON body BEFORE compression.

RETRY:
- Network errors and 5xx answers are retried by RetryPolicy
- 4xx answers are final
- A failed report is logged and dropped; the next report
  carries the same accumulated totals

============================================================
"""

import asyncio
import gzip
import json
import logging
from typing import List, Optional

import aiohttp

from core.config import AgentConfig
from core.constants import GZIP_ENCODING, SIGNATURE_HEADER
from core.exceptions import MetricsException, ReportError, ServerUnavailableError
from core.models import MetricRecord, records_to_wire
from core.retry import AttemptResult, RetryPolicy, RetryResult
from core.signing import sign_payload


logger = logging.getLogger(__name__)


class MetricsReporter:
    """
    aiohttp client for the batch update endpoint.
    """

    def __init__(
        self,
        config: AgentConfig,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_seconds: float = 10.0,
    ):
        self._config = config
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None
        self._reports_sent = 0

    @property
    def url(self) -> str:
        return self._config.updates_url

    @property
    def reports_sent(self) -> int:
        return self._reports_sent

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    # --------------------------------------------------------
    # REQUEST BUILDING
    # --------------------------------------------------------

    def encode(self, records: List[MetricRecord]) -> tuple:
        """
        Build the request body and headers.

        Returns:
            (body bytes, headers dict)
        """
        payload = json.dumps(records_to_wire(records)).encode()
        headers = {"Content-Type": "application/json"}

        if self._config.key:
            headers[SIGNATURE_HEADER] = sign_payload(payload, self._config.key)

        if self._config.compress:
            payload = gzip.compress(payload)
            headers["Content-Encoding"] = GZIP_ENCODING

        return payload, headers

    # --------------------------------------------------------
    # SENDING
    # --------------------------------------------------------

    async def _post(self, body: bytes, headers: dict) -> None:
        session = await self._get_session()
        try:
            async with session.post(self.url, data=body, headers=headers) as response:
                if response.status == 200:
                    return
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ServerUnavailableError(f"request failed: {e}", self.url, cause=e) from e

        message = f"server answered {response.status}: {text.strip()}"
        if response.status >= 500:
            raise ServerUnavailableError(message, self.url, status=response.status)
        raise ReportError(message, self.url, status=response.status)

    async def _attempt(self, body: bytes, headers: dict) -> AttemptResult:
        try:
            await self._post(body, headers)
        except MetricsException as e:
            if e.is_retryable:
                return AttemptResult(retry_error=e)
            return AttemptResult(error=e)
        return AttemptResult(value=True)

    async def report(self, records: List[MetricRecord]) -> RetryResult:
        """
        Send one batch under the retry policy.

        Returns:
            RetryResult; failures are logged, never raised
        """
        if not records:
            logger.debug("Nothing to report")
            return RetryResult(value=False)

        body, headers = self.encode(records)
        result = await self._retry_policy.run_async(
            lambda: self._attempt(body, headers),
            "failed to send metrics",
        )

        if result.ok:
            self._reports_sent += 1
            logger.info(f"Report is sent ({len(records)} metrics)")
        else:
            logger.error(f"Report failed: {result.retry_error or result.error}")
        return result
