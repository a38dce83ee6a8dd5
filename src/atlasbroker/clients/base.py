from __future__ import annotations

from typing import Any

import httpx
import structlog
from circuitbreaker import CircuitBreaker, CircuitBreakerError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

FAILURE_THRESHOLD = 5
RECOVERY_TIMEOUT = 60

_breakers: dict[str, CircuitBreaker] = {}


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


class PermanentHTTPError(Exception):
    """HTTP errors that should not be retried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


def breaker_for(name: str) -> CircuitBreaker:
    """Return the circuit breaker shared by every client using ``name``."""
    breaker = _breakers.get(name)
    if breaker is None:
        breaker = CircuitBreaker(
            failure_threshold=FAILURE_THRESHOLD,
            recovery_timeout=RECOVERY_TIMEOUT,
            expected_exception=RetryableHTTPError,
            name=name,
        )
        _breakers[name] = breaker
    return breaker


class BaseHTTPClient:
    """Base HTTP client with retry logic and circuit breaker.

    ``max_retries`` is the total number of attempts per request. Clients that
    share a ``circuit_name`` share one circuit breaker; it defaults to the
    base URL.
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth: httpx.Auth | None = None,
        user_agent: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        circuit_name: str | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._user_agent = user_agent
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff_factor = backoff_factor
        self._breaker = breaker_for(circuit_name or self._base_url)

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        return headers

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(RetryableHTTPError),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff_factor, min=1, max=30),
            reraise=True,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Execute HTTP request with retry and circuit breaker."""
        if self._breaker.opened:
            raise CircuitBreakerError(self._breaker)
        return await self._breaker.call_async(
            self._request_with_retry, method, path, params=params, json=json, headers=headers
        )

    async def _request_with_retry(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        async for attempt in self._retrying():
            with attempt:
                return await self._send(method, path, **kwargs)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        req_headers = self._headers()
        if headers:
            req_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, auth=self._auth) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=req_headers,
                )

                if is_retryable_status(response.status_code):
                    logger.warning(
                        "http_retryable_error",
                        status=response.status_code,
                        method=method,
                        url=url,
                    )
                    raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")

                response.raise_for_status()

        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if is_retryable_status(status_code):
                raise RetryableHTTPError(str(exc)) from exc
            log = logger.info if status_code == 404 else logger.error
            log(
                "http_permanent_error",
                status=status_code,
                method=method,
                url=url,
                error=str(exc),
            )
            raise PermanentHTTPError(str(exc), status_code=status_code) from exc
        except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            logger.error(
                "http_invalid_body",
                status=response.status_code,
                method=method,
                url=url,
                content_type=response.headers.get("Content-Type"),
            )
            raise PermanentHTTPError(
                f"HTTP {response.status_code}: response body is not JSON",
                status_code=response.status_code,
            ) from exc

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Execute GET request."""
        return await self._request("GET", path, params=params, headers=headers)
