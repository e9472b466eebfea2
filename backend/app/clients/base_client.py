"""Base async HTTP client with bounded retry for transient failures."""

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

# Status codes worth another attempt: timeouts, rate limits, upstream hiccups
TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class APIError(Exception):
    """Non-retryable HTTP failure (4xx other than rate limiting, bad payloads)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientAPIError(APIError):
    """Timeout, transport error or retryable status code."""

    attempts: int = 1


class BaseAPIClient:
    """
    Async HTTP client base using httpx.AsyncClient.
    Features: configurable auth headers, timeout, bounded retry with exponential backoff.
    Only TransientAPIError is retried; the retry bound is per instance.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_min: float = 2.0,
        backoff_max: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url
        self._headers = headers or {}
        self._timeout = timeout
        self.max_attempts = max_attempts
        self._backoff_min = backoff_min
        self._backoff_max = backoff_max
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "API request failed, retrying",
            base_url=self.base_url,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            error=str(exc),
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request, retrying transient failures up to max_attempts."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(min=self._backoff_min, max=self._backoff_max),
            retry=retry_if_exception_type(TransientAPIError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, path, params=params, json=json)
        except TransientAPIError as e:
            e.attempts = self.max_attempts
            raise
        raise AssertionError("unreachable")  # pragma: no cover

    async def _send_once(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()

        logger.debug("API request", method=method, path=path)

        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise TransientAPIError(f"Timeout calling {path}: {e}") from e
        except httpx.TransportError as e:
            raise TransientAPIError(f"Transport error calling {path}: {e}") from e
        except httpx.RequestError as e:
            # Decoding errors, redirect loops
            raise TransientAPIError(f"Request error calling {path}: {e!r}") from e

        logger.debug(
            "API response",
            method=method,
            path=path,
            status=response.status_code,
        )

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientAPIError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise APIError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        return response.json()

    async def post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        response = await self._request("POST", path, params=params, json=json)
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"POST {path} returned a non-JSON body") from e

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
