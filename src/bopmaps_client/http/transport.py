"""Single-attempt HTTP transport that classifies every outcome into a ResponseEnvelope."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from bopmaps_client.constants import DEFAULT_CONCURRENCY_LIMIT, DEFAULT_REQUEST_TIMEOUT
from bopmaps_client.http.envelope import SUCCESS_RANGE, ErrorKind, ResponseEnvelope, classify_status

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json"}


class RetryingTransport:
    """Performs exactly one HTTP attempt per ``call`` and never raises for I/O failures.

    Connection failures become ``network``, requests that run out of time ``timeout``,
    undecodable success bodies ``parse`` and non-2xx statuses are classified by
    :func:`classify_status`. Retrying is left to :class:`RetryPolicy`; this
    class knows nothing about tokens.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        success_range: range = SUCCESS_RANGE,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(concurrency_limit)
        self._success_range = success_range

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def call(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
        form: Mapping[str, str] | None = None,
        files: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        """Send one request and return its classified outcome.

        ``files`` makes the body multipart, with ``form`` sent as its plain fields.
        """
        request_headers = {**DEFAULT_HEADERS, **(headers or {})}
        try:
            async with self._semaphore:
                response = await self._client.request(
                    method,
                    url,
                    headers=request_headers,
                    params=params,
                    json=json_body,
                    data=form,
                    files=files,
                    timeout=timeout if timeout is not None else self._timeout,
                )
        except httpx.TimeoutException as exc:
            logger.debug("%s %s timed out: %s", method, url, exc)
            return ResponseEnvelope.failure(ErrorKind.TIMEOUT, "Request timed out")
        except httpx.TransportError as exc:
            logger.debug("%s %s failed to connect: %s", method, url, exc)
            return ResponseEnvelope.failure(ErrorKind.NETWORK, "No internet connection")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("%s %s failed unexpectedly: %s", method, url, exc)
            return ResponseEnvelope.failure(ErrorKind.UNKNOWN, f"Unknown error: {exc}")

        return self._to_envelope(response)

    def _to_envelope(self, response: httpx.Response) -> ResponseEnvelope:
        status = response.status_code
        error_kind = classify_status(status, self._success_range)

        decoded = True
        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                decoded = False

        if error_kind is None:
            if not decoded:
                return ResponseEnvelope.failure(
                    ErrorKind.PARSE, "Failed to process response", status_code=status
                )
            return ResponseEnvelope.ok(status, body)

        return ResponseEnvelope.failure(
            error_kind,
            _error_detail(body, response),
            status_code=status,
            data=body,
        )


def _error_detail(body: Any, response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response."""
    if isinstance(body, dict):
        for key in ("message", "detail", "error_description", "error"):
            value = body.get(key)
            # Spotify nests its message: {"error": {"status": 401, "message": "..."}}
            if isinstance(value, dict):
                value = value.get("message")
            if isinstance(value, str) and value:
                return value
    if response.text:
        return response.text[:200]
    return f"HTTP {response.status_code}"
