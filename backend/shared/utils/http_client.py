"""
Async HTTP client wrapper for upstream provider requests.
Includes bounded retry with exponential backoff, timeout management, and metrics.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from shared.errors import ExternalServiceError, TransientNetworkError
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class ProviderHTTPClient:
    """
    Async HTTP client tailored for sports data provider APIs.

    Every failed attempt (non-2xx, timeout, transport error, undecodable body)
    is retried until ``max_retries`` attempts have been made. The delay before
    attempt ``n + 1`` is ``retry_delay_s * 2 ** (n - 1)``.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float = 30.0,
        max_retries: int = 3,
        retry_delay_s: float = 2.0,
        sleep: SleepFn | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s
        self._max_retries = max(1, max_retries)
        self._retry_delay_s = retry_delay_s
        self._default_headers = headers or {}
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def timeout_s(self) -> float:
        return self._timeout

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def backoff_delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return self._retry_delay_s * (2 ** (attempt - 1))

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        Perform a GET request and decode the JSON body, retrying on failure.

        Args:
            path: API path relative to base_url.
            params: Query parameters.

        Returns:
            The decoded JSON payload.

        Raises:
            ExternalServiceError: When every attempt failed.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        last_exc: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            start_time = time.perf_counter()
            status = "error"
            try:
                payload = await self._attempt(path, params)
                status = "ok"
                logger.debug(
                    "provider_request_success",
                    provider=self._provider,
                    path=path,
                    attempt=attempt,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return payload

            except TransientNetworkError as exc:
                last_exc = exc
                status = str(exc.status_code) if exc.status_code else "error"

            finally:
                PROVIDER_REQUESTS.labels(provider=self._provider, status=status).inc()
                PROVIDER_LATENCY.labels(provider=self._provider).observe(
                    time.perf_counter() - start_time
                )

            if attempt < self._max_retries:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "provider_request_retry",
                    provider=self._provider,
                    path=path,
                    attempt=attempt,
                    max_attempts=self._max_retries,
                    delay_s=delay,
                    error=str(last_exc),
                )
                await self._sleep(delay)

        logger.error(
            "provider_request_failed",
            provider=self._provider,
            path=path,
            attempts=self._max_retries,
            error=str(last_exc),
        )
        raise ExternalServiceError(
            f"Failed to fetch data from API: {last_exc}",
            attempts=self._max_retries,
            last_error=str(last_exc),
        ) from last_exc

    async def _attempt(self, path: str, params: dict[str, Any] | None) -> Any:
        if self._client is None:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")
        try:
            resp = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise TransientNetworkError(f"Request timed out after {self._timeout}s") from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"{type(exc).__name__}: {exc}") from exc
        if not resp.is_success:
            raise TransientNetworkError(
                f"HTTP {resp.status_code}: {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise TransientNetworkError(f"Invalid JSON body: {exc}") from exc
