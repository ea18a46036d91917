"""Retrying request helper shared by every outbound httpx client."""

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Retry configuration for transient failures (connection errors, 5xx).
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds; exponential: 1s, 2s, 4s


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    """Execute an HTTP request, retrying transient failures.

    Retries on connection errors, timeouts and 5xx responses with exponential
    backoff. Responses below 500 are returned as-is so the caller can map
    4xx statuses to its own errors. Raises the last ``httpx.HTTPError`` once
    the retries are exhausted.
    """
    last_exc: Exception | None = None

    for attempt in range(MAX_RETRIES):
        try:
            resp = await client.request(method, url, **kwargs)
            if resp.status_code < 500:
                return resp
            last_exc = httpx.HTTPStatusError(
                f"Server error {resp.status_code}",
                request=resp.request,
                response=resp,
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            last_exc = exc

        if attempt < MAX_RETRIES - 1:
            delay = RETRY_BASE_DELAY * (2 ** attempt)
            logger.warning(
                "Request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                method, url, attempt + 1, MAX_RETRIES, delay, last_exc,
            )
            await asyncio.sleep(delay)

    raise last_exc  # type: ignore[misc]
