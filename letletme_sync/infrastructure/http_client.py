"""HTTP client with rate limiting, status classification and backoff retry."""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from types import TracebackType
from typing import Any, Self, cast

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt

from letletme_sync.errors import RateLimitExceeded
from letletme_sync.infrastructure.metrics import HTTPMetrics, RequestMetric
from letletme_sync.infrastructure.outcome import (
    Failure,
    FailureKind,
    HTTPResult,
    JsonValue,
    RetryExhausted,
    Success,
)
from letletme_sync.infrastructure.rate_limiter import TokenBucketRateLimiter
from letletme_sync.infrastructure.retry import RetryPolicy, wait_backoff

logger = logging.getLogger(__name__)


class Timeout(float, Enum):
    """Per-attempt timeout presets, in seconds."""

    SHORT = 5.0
    DEFAULT = 30.0
    LONG = 60.0


DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Expires": "0",
}

CACHE_BUST_PARAM = "_t"


def classify_response(response: httpx.Response) -> HTTPResult:
    """Turn a completed response into Success or a typed Failure."""
    status = response.status_code
    if 200 <= status < 300:
        return Success(status=status, body=_parse_body(response), headers=dict(response.headers))

    message = f"{response.request.method} {response.request.url.path} returned {status}"
    if status == 429:
        return Failure(FailureKind.RATE_LIMITED, message, status=status)
    if status >= 500:
        return Failure(FailureKind.SERVER_ERROR, message, status=status)
    return Failure(FailureKind.CLIENT_ERROR, message, status=status)


def classify_exception(exc: Exception) -> Failure:
    """Map a transport exception (no response) to a Failure."""
    if isinstance(exc, httpx.TimeoutException):
        return Failure(FailureKind.TIMEOUT, f"Request timed out: {exc!r}", cause=exc)
    if isinstance(exc, RateLimitExceeded):
        return Failure(FailureKind.RATE_LIMITED, str(exc), cause=exc)
    return Failure(FailureKind.NETWORK, f"Network error: {exc!r}", cause=exc)


def _parse_body(response: httpx.Response) -> JsonValue:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ResilientHTTPClient:
    """Wraps outbound calls to one upstream base URL.

    Each attempt consults the shared rate limiter, runs with its own timeout
    and is classified by status. Retryable failures are retried by a bounded
    tenacity loop; 4xx responses are returned after a single attempt.

    Usage:
        async with ResilientHTTPClient(base_url, limiter, RetryPolicy()) as client:
            result = await client.get("/bootstrap-static/")
            if result.ok:
                data = result.body
    """

    def __init__(
        self,
        base_url: str,
        rate_limiter: TokenBucketRateLimiter,
        retry_policy: RetryPolicy,
        timeout: Timeout | float = Timeout.DEFAULT,
        headers: dict[str, str] | None = None,
        wait_for_tokens: bool = True,
        cache_bust: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        metrics: HTTPMetrics | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy
        self.timeout = float(timeout)
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.wait_for_tokens = wait_for_tokens
        self.cache_bust = cache_bust
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._metrics = metrics or HTTPMetrics()
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            follow_redirects=True,
        )
        logger.debug(f"HTTP client connected to {self.base_url}")

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.debug(f"HTTP client for {self.base_url} closed")

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def get(self, path: str, **kwargs: Any) -> HTTPResult:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> HTTPResult:
        return await self.request("POST", path, body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> HTTPResult:
        return await self.request("PUT", path, body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> HTTPResult:
        return await self.request("PATCH", path, body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> HTTPResult:
        return await self.request("DELETE", path, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: Timeout | float | None = None,
    ) -> HTTPResult:
        """Issue ``method path`` with retries; never raises for expected failures."""
        if self._client is None:
            await self.connect()

        policy = self.retry_policy
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_backoff(policy, self._rng),
            retry=retry_if_result(
                lambda result: isinstance(result, Failure) and policy.is_retryable(result)
            ),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            retry_error_callback=self._exhausted,
        )

        return await retrying(
            self._attempt,
            method.upper(),
            path,
            body,
            params,
            headers,
            float(timeout) if timeout is not None else self.timeout,
        )

    async def _attempt(
        self,
        method: str,
        path: str,
        body: Any,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        timeout: float,
    ) -> HTTPResult:
        client = self._client
        if client is None:
            raise RuntimeError("HTTP client is not connected")

        throttled = await self._take_token()
        if throttled is not None:
            self._record(path, method, 0.0, throttled)
            return throttled

        if self.cache_bust:
            params = {**(params or {}), CACHE_BUST_PARAM: str(int(time.time() * 1000))}

        started = time.perf_counter()
        try:
            response = await client.request(
                method,
                path,
                json=body,
                params=params,
                headers=headers,
                timeout=timeout,
            )
        except httpx.RequestError as exc:
            result: HTTPResult = classify_exception(exc)
        else:
            result = classify_response(response)

        self._record(path, method, time.perf_counter() - started, result)
        return result

    async def _take_token(self) -> Failure | None:
        if self.wait_for_tokens:
            await self.rate_limiter.acquire(1, sleep=self._sleep)
            return None
        try:
            self.rate_limiter.consume(1)
        except RateLimitExceeded as exc:
            return classify_exception(exc)
        return None

    def _record(self, path: str, method: str, duration: float, result: HTTPResult) -> None:
        error = None if isinstance(result, Success) else result.kind.value
        self._metrics.record(
            RequestMetric(
                path=path,
                method=method,
                duration=duration,
                status=result.status,
                error=error,
            )
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        failure = _last_failure(retry_state)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.retry_policy.max_attempts} failed "
            f"({failure.kind.value}): {failure.message}; retrying in {delay:.2f}s"
        )

    def _exhausted(self, retry_state: RetryCallState) -> RetryExhausted:
        last = _last_failure(retry_state)
        logger.error(
            f"Retries exhausted after {retry_state.attempt_number} attempts: {last.message}"
        )
        return RetryExhausted(last=last, attempts=retry_state.attempt_number)


def _last_failure(retry_state: RetryCallState) -> Failure:
    # retry callbacks only run after an attempt returned a retryable Failure
    if retry_state.outcome is None:
        raise RuntimeError("retry callback invoked before any attempt finished")
    return cast(Failure, retry_state.outcome.result())
